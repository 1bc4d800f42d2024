"""
Pydantic schemas for the AFD cache API.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class OfficesResponse(BaseModel):
    offices: list[str]


class RefreshRequest(BaseModel):
    offices: Optional[list[str]] = Field(default=None, max_length=200)
    force: bool = False


class RefreshResult(BaseModel):
    office: str
    updated: bool
    reason: Optional[str] = None
    error: Optional[str] = None


class RefreshResponse(BaseModel):
    ok: bool
    results: list[RefreshResult]


class StoreStatusResponse(BaseModel):
    mode: str
    count: int
