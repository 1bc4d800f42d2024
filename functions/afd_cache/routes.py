"""
HTTP routes for the AFD cache API.

Read routes only ever consult the store; `/refresh` is the one route that
calls upstream.
"""

from __future__ import annotations

from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse

from afd_cache.cache import PAYLOAD_PREFIX, get_payload, list_offices_with_payload
from afd_cache.dependencies import (
    get_known_offices,
    get_store_handle,
    get_upstream_client,
)
from afd_cache.refresh import run_refresh
from afd_cache.render import render_product_html
from afd_cache.schemas import (
    OfficesResponse,
    RefreshRequest,
    RefreshResponse,
    StoreStatusResponse,
)
from afd_cache.storage import StoreHandle
from afd_cache.upstream import UpstreamClient

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/offices", response_model=OfficesResponse)
def list_offices(store: StoreHandle = Depends(get_store_handle)):
    """Offices that currently have a cached product, for the dropdown."""
    return OfficesResponse(offices=list_offices_with_payload(store))


@router.get("/afd", response_class=HTMLResponse)
def get_afd(
    office: Optional[str] = Query(default=None),
    store: StoreHandle = Depends(get_store_handle),
):
    office = (office or "").strip().upper()
    if not office:
        raise HTTPException(status_code=400, detail="office query param is required")
    product = get_payload(store, office)
    if product is None or not product.original_text:
        raise HTTPException(status_code=404, detail="No cached AFD for this office yet.")
    return HTMLResponse(render_product_html(product))


@router.post(
    "/refresh", response_model=RefreshResponse, response_model_exclude_none=True
)
def refresh(
    payload: Optional[RefreshRequest] = None,
    store: StoreHandle = Depends(get_store_handle),
    upstream: UpstreamClient = Depends(get_upstream_client),
    known_offices: list[str] = Depends(get_known_offices),
):
    """
    Run one refresh cycle. Per-office failures are reported in the results.
    """
    payload = payload or RefreshRequest()
    if not known_offices:
        raise HTTPException(status_code=400, detail="No offices configured")
    outcomes = run_refresh(
        payload.offices,
        store=store,
        upstream=upstream,
        known_offices=known_offices,
        force=payload.force,
    )
    updated = sum(1 for outcome in outcomes if outcome.updated)
    logger.info("Refresh finished: %d/%d updated", updated, len(outcomes))
    return RefreshResponse(ok=True, results=[o.as_dict() for o in outcomes])


@router.get("/debug/store", response_model=StoreStatusResponse)
def store_status(store: StoreHandle = Depends(get_store_handle)):
    return StoreStatusResponse(
        mode=store.mode, count=len(store.list_keys(PAYLOAD_PREFIX))
    )
