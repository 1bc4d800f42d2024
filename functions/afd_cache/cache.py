"""
Cached AFD products and per-office refresh metadata on top of a StoreHandle.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from afd_cache.storage import StoreHandle

PAYLOAD_PREFIX = "AFD:"
META_PREFIX = "AFD_META:"


def normalize_office(office: str) -> str:
    return str(office or "").strip().upper()


def payload_key(office: str) -> str:
    return f"{PAYLOAD_PREFIX}{normalize_office(office)}"


def meta_key(office: str) -> str:
    return f"{META_PREFIX}{normalize_office(office)}"


@dataclass
class CachedProduct:
    office: str
    original_text: str
    issued: Optional[str] = None
    product_id: Optional[str] = None
    updated_at: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "office": self.office,
            "issued": self.issued,
            "productId": self.product_id,
            "originalText": self.original_text,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CachedProduct":
        return cls(
            office=normalize_office(data.get("office")),
            original_text=data.get("originalText") or "",
            issued=data.get("issued"),
            product_id=data.get("productId"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class RefreshMeta:
    last_list_modified: Optional[str] = None
    last_product_id: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "lastListModified": self.last_list_modified,
            "lastProductId": self.last_product_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RefreshMeta":
        return cls(
            last_list_modified=data.get("lastListModified"),
            last_product_id=data.get("lastProductId"),
        )


def get_payload(store: StoreHandle, office: str) -> Optional[CachedProduct]:
    data = store.get(payload_key(office))
    if not isinstance(data, dict):
        return None
    return CachedProduct.from_dict(data)


def set_payload(store: StoreHandle, office: str, product: CachedProduct) -> str:
    if not product.original_text:
        raise ValueError("Refusing to cache a product without text")
    return store.set(payload_key(office), product.as_dict())


def list_offices_with_payload(store: StoreHandle) -> list[str]:
    keys = store.list_keys(PAYLOAD_PREFIX)
    return sorted(key[len(PAYLOAD_PREFIX) :] for key in keys)


def get_meta(store: StoreHandle, office: str) -> RefreshMeta:
    """Absent or unreadable metadata behaves as all-null fields."""
    data = store.get(meta_key(office))
    if not isinstance(data, dict):
        return RefreshMeta()
    return RefreshMeta.from_dict(data)


def set_meta(store: StoreHandle, office: str, meta: RefreshMeta) -> str:
    return store.set(meta_key(office), meta.as_dict())
