"""
Dependency wiring for the API and the refresh daemon.
"""

from __future__ import annotations

from afd_cache.config import get_settings
from afd_cache.offices import load_offices
from afd_cache.storage import StoreHandle, select_store
from afd_cache.upstream import NwsClient, UpstreamClient

_store_handle: StoreHandle | None = None
_upstream_client: UpstreamClient | None = None
_known_offices: list[str] | None = None


def get_store_handle() -> StoreHandle:
    """
    Return the process-wide store. Backend selection happens once; a failed
    S3 bucket check pins the process to the local store.
    """
    global _store_handle
    if _store_handle:
        return _store_handle

    _store_handle = select_store(get_settings())
    return _store_handle


def get_upstream_client() -> UpstreamClient:
    global _upstream_client
    if _upstream_client:
        return _upstream_client

    settings = get_settings()
    _upstream_client = NwsClient(
        base_url=settings.nws_base_url,
        user_agent=settings.nws_user_agent,
        timeout=settings.nws_timeout_seconds,
    )
    return _upstream_client


def get_known_offices() -> list[str]:
    global _known_offices
    if _known_offices is not None:
        return _known_offices

    _known_offices = load_offices(get_settings().offices_path)
    return _known_offices
