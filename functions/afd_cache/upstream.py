"""
Client for the api.weather.gov products API.

The per-office listing endpoint (`/products/types/AFD/locations/{office}`) is
the source of truth. Its `Last-Modified` header is the freshness token we send
back as `If-Modified-Since`; the newest listed product is then fetched for its
text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Union
from urllib.parse import quote

import requests

REQUEST_TIMEOUT = 30  # seconds
DEFAULT_BASE_URL = "https://api.weather.gov"
DEFAULT_USER_AGENT = "RYFF/1.0 (no-contact@invalid)"


class UpstreamError(RuntimeError):
    """Transport failure or unexpected status from the upstream API."""


@dataclass
class NotModified:
    freshness_token: Optional[str] = None


@dataclass
class ProductContent:
    product_id: Optional[str] = None
    issued: Optional[str] = None
    text: Optional[str] = None
    freshness_token: Optional[str] = None


FetchResult = Union[NotModified, ProductContent]


class UpstreamClient(Protocol):
    """What the refresh orchestrator needs from the upstream provider."""

    def fetch_latest(
        self, office: str, conditional_token: Optional[str] = None
    ) -> FetchResult:
        ...


@dataclass
class NwsClient:
    base_url: str = DEFAULT_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = REQUEST_TIMEOUT
    session: requests.Session = None

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")
        if self.session is None:
            self.session = requests.Session()

    def _get_json(self, url: str, headers: Optional[dict] = None):
        """
        Returns (json, headers). json is None when the server answered 304.

        Raises:
            UpstreamError: on transport errors, non-2xx status or a non-JSON body.
        """
        request_headers = {"User-Agent": self.user_agent, **(headers or {})}
        try:
            response = self.session.get(
                url, headers=request_headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise UpstreamError(f"NWS request failed: {exc}") from exc

        if response.status_code == 304:
            return None, response.headers
        if not response.ok:
            raise UpstreamError(f"NWS {response.status_code}: {response.text[:200]}")
        try:
            return response.json(), response.headers
        except ValueError as exc:
            raise UpstreamError(f"NWS returned invalid JSON for {url}") from exc

    def _product_url(self, entry: dict, product_id: Optional[str]) -> Optional[str]:
        url = entry.get("@id")
        if not url and str(entry.get("id", "")).startswith("http"):
            url = entry["id"]
        if not url and product_id:
            url = f"{self.base_url}/products/{quote(product_id)}"
        return url

    def fetch_latest(
        self, office: str, conditional_token: Optional[str] = None
    ) -> FetchResult:
        office = office.upper()
        list_url = (
            f"{self.base_url}/products/types/AFD/locations/{quote(office)}?limit=1"
        )
        headers = {"If-Modified-Since": conditional_token} if conditional_token else {}
        listing, response_headers = self._get_json(list_url, headers)
        token = response_headers.get("Last-Modified")
        if listing is None:
            return NotModified(freshness_token=token or conditional_token)

        # JSON-LD responses list products under @graph, GeoJSON under features.
        entries = listing.get("@graph") or listing.get("features") or []
        if not entries:
            return ProductContent(freshness_token=token)

        latest = entries[0]
        props = latest.get("properties") or latest
        product_id = props.get("id") or latest.get("id")
        issued = props.get("issuanceTime") or latest.get("issued")
        product_url = self._product_url(latest, product_id)
        if not product_url:
            return ProductContent(issued=issued, freshness_token=token)

        product, _ = self._get_json(product_url)
        product = product or {}
        text = product.get("productText") or ""
        return ProductContent(
            product_id=product_id,
            issued=issued or product.get("issuanceTime"),
            text=text,
            freshness_token=token,
        )
