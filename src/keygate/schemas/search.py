"""Search schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class SearchRequest(BaseModel):
    type: str | None = None
    query: str | None = None


class SearchResponse(BaseModel):
    credits: str = "CSINT Network"
    scan_type: str
    query: str | None = None
    timestamp: datetime
    csint: Any
