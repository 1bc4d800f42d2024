"""
HTML card for a cached product. Read-only; never touches upstream.
"""

from __future__ import annotations

from datetime import datetime
from html import escape
from typing import Optional

from afd_cache.cache import CachedProduct

UNKNOWN = "(unknown)"


def _format_time(value: Optional[str]) -> str:
    if not value:
        return UNKNOWN
    if not isinstance(value, str):
        return escape(str(value))
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return escape(value)
    return parsed.strftime("%Y-%m-%d %H:%M %Z").strip()


def render_product_html(product: CachedProduct) -> str:
    return f"""
<div class="card">
  <h3 style="margin-top:0;">Forecast Discussion (Original)</h3>
  <div class="muted">
    Office: <b>{escape(product.office)}</b><br/>
    Issued: {_format_time(product.issued)}<br/>
    Cached/Updated: {_format_time(product.updated_at)}<br/>
    <small class="muted">Product: {escape(str(product.product_id or UNKNOWN))}</small>
  </div>
  <pre>{escape(str(product.original_text or ""), quote=False)}</pre>
</div>"""
