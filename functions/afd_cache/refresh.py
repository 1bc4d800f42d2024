"""
Conditional refresh of cached AFD products.

Each office is refreshed independently:

1. Read the office's RefreshMeta.
2. Ask upstream for the latest product, conditionally on the stored
   `lastListModified` unless `force` is set.
3. On "not modified", stop if a payload is cached; otherwise fetch once more
   unconditionally to backfill the lost payload.
4. On content, compare the product id with `lastProductId` and write the
   payload (then meta) only for a new product or a missing payload.

The payload is always written before meta, so `lastProductId` never points at
a payload that was not stored. A payload write that only reached the local
fallback leaves meta alone and fails the office. There is no locking between
concurrent refreshes of the same office; the last write wins.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional
import logging

from afd_cache.cache import (
    CachedProduct,
    RefreshMeta,
    get_meta,
    get_payload,
    normalize_office,
    set_meta,
    set_payload,
)
from afd_cache.storage import StoreError, StoreHandle
from afd_cache.upstream import NotModified, ProductContent, UpstreamClient

logger = logging.getLogger(__name__)


class RefreshReason(str, Enum):
    NOT_MODIFIED = "Not modified"
    NO_PRODUCT = "No product"
    NO_CHANGE = "No change"
    UPDATED = "Updated"
    BACKFILLED = "Updated (backfilled)"


@dataclass
class RefreshOutcome:
    office: str
    updated: bool
    reason: Optional[RefreshReason] = None
    error: Optional[str] = None

    def as_dict(self) -> dict:
        result = {"office": self.office, "updated": self.updated}
        if self.reason is not None:
            result["reason"] = self.reason.value
        if self.error is not None:
            result["error"] = self.error
        return result


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _advance_token(
    store: StoreHandle, office: str, meta: RefreshMeta, token: Optional[str]
) -> None:
    # Only lastListModified moves; lastProductId stays tied to the stored payload.
    if token and token != meta.last_list_modified:
        set_meta(store, office, replace(meta, last_list_modified=token))


def _write_product(
    store: StoreHandle, office: str, content: ProductContent, meta: RefreshMeta
) -> None:
    product = CachedProduct(
        office=office,
        original_text=content.text,
        issued=content.issued,
        product_id=content.product_id,
        updated_at=_now_iso(),
    )
    written_to = set_payload(store, office, product)
    if written_to != store.mode:
        # Meta would land on the primary backend while the payload did not,
        # leaving lastProductId pointing at a payload readers never see.
        raise StoreError(
            f"Payload for {office} only reached the {written_to} store; "
            "metadata not advanced"
        )
    logger.info("[%s] Cached product %s", office, content.product_id)
    set_meta(
        store,
        office,
        RefreshMeta(
            last_list_modified=content.freshness_token or meta.last_list_modified,
            last_product_id=content.product_id,
        ),
    )


def refresh_office(
    office: str,
    *,
    store: StoreHandle,
    upstream: UpstreamClient,
    force: bool = False,
) -> RefreshOutcome:
    """
    Refresh one office. Upstream and store errors propagate to the caller;
    `run_refresh` turns them into per-office error outcomes.
    """
    office = normalize_office(office)
    meta = get_meta(store, office)

    conditional_token = None if force else meta.last_list_modified
    result = upstream.fetch_latest(office, conditional_token)
    cached: Optional[CachedProduct] = None

    if isinstance(result, NotModified):
        cached = get_payload(store, office)
        if cached is not None and cached.original_text:
            return RefreshOutcome(office, False, RefreshReason.NOT_MODIFIED)
        logger.info("[%s] Not modified upstream but nothing cached, backfilling", office)
        result = upstream.fetch_latest(office, None)
        if isinstance(result, NotModified):
            return RefreshOutcome(office, False, RefreshReason.NOT_MODIFIED)

    if not result.text:
        _advance_token(store, office, meta, result.freshness_token)
        return RefreshOutcome(office, False, RefreshReason.NO_PRODUCT)

    if result.product_id is not None and result.product_id == meta.last_product_id:
        if cached is None:
            cached = get_payload(store, office)
        if cached is not None and cached.original_text:
            _advance_token(store, office, meta, result.freshness_token)
            return RefreshOutcome(office, False, RefreshReason.NO_CHANGE)
        _write_product(store, office, result, meta)
        return RefreshOutcome(office, True, RefreshReason.BACKFILLED)

    _write_product(store, office, result, meta)
    return RefreshOutcome(office, True, RefreshReason.UPDATED)


def _dedupe_offices(offices: Iterable[str]) -> list[str]:
    seen = []
    for office in offices:
        code = normalize_office(office)
        if code and code not in seen:
            seen.append(code)
    return seen


def run_refresh(
    offices: Optional[Iterable[str]] = None,
    *,
    store: StoreHandle,
    upstream: UpstreamClient,
    known_offices: Iterable[str],
    force: bool = False,
) -> list[RefreshOutcome]:
    """
    Refresh `offices` (default: every known office) and return one outcome per
    requested office. A failing office never stops the rest of the batch.
    """
    known = _dedupe_offices(known_offices)
    requested = _dedupe_offices(offices) if offices is not None else known

    results: list[RefreshOutcome] = []
    for office in requested:
        if office not in known:
            results.append(RefreshOutcome(office, False, error="Unknown office"))
            continue
        try:
            outcome = refresh_office(office, store=store, upstream=upstream, force=force)
        except Exception as exc:
            logger.exception("[%s] Refresh failed: %s", office, exc)
            outcome = RefreshOutcome(office, False, error=str(exc) or type(exc).__name__)
        else:
            logger.info(
                "[%s] %s", office, outcome.reason.value if outcome.reason else "done"
            )
        results.append(outcome)
    return results
