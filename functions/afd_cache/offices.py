"""
The static list of forecast offices the refresh daemon preloads.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional
import json
import logging

logger = logging.getLogger(__name__)

DEFAULT_OFFICES_PATH = Path(__file__).resolve().parent / "wfos.json"


def load_offices(path: Optional[str | Path] = None) -> list[str]:
    """
    Read a JSON array of office codes. Missing or malformed files yield [].
    """
    path = Path(path) if path else DEFAULT_OFFICES_PATH
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Could not read office list %s: %s", path, exc)
        return []
    if not isinstance(data, list):
        logger.warning("Office list %s is not a JSON array", path)
        return []
    return [str(code).strip().upper() for code in data if str(code).strip()]
