from __future__ import annotations

import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dashboard.errors import FailureKind


class CacheEntry(BaseModel):
    """Envelope persisted as ``{data, timestamp, expiresIn}``.

    ``expires_in`` is an absolute epoch-millisecond deadline, not a duration.
    """

    model_config = ConfigDict(populate_by_name=True)

    data: Any = None
    timestamp: int
    expires_in: int = Field(alias="expiresIn")

    def expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_in


class FetchStatus(str, Enum):
    FRESH = "fresh"
    CACHED = "cached"
    STALE = "stale"
    STALE_RATE_LIMITED = "stale_rate_limited"
    UNAVAILABLE = "unavailable"


class FetchResult(BaseModel):
    key: str = ""
    status: FetchStatus = FetchStatus.UNAVAILABLE
    data: Any = None
    message: str = ""
    failure: FailureKind | None = None
    status_code: int | None = None
    retry_after_seconds: int | None = None
    latency_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.status is not FetchStatus.UNAVAILABLE

    @property
    def stale(self) -> bool:
        return self.status in (FetchStatus.STALE, FetchStatus.STALE_RATE_LIMITED)


class Article(BaseModel):
    title: str = ""
    description: str = ""
    published_at: str = ""
    url: str = ""
    image_url: str = ""
    source_name: str = ""
    translated_title: str | None = None
    translated_description: str | None = None


class StockBar(BaseModel):
    date: str
    open: float
    high: float
    low: float
    close: float
    volume: float = 0


class StockQuote(BaseModel):
    symbol: str
    name: str = ""
    date: str = ""
    open: float
    high: float
    low: float
    close: float
    volume: float = 0
    change: float = 0.0
    change_percent: float = 0.0


class ExchangeRates(BaseModel):
    usd_to_cny: float
    cny_to_jpy: float | None = None
    cny_to_krw: float | None = None
    last_update: str = ""


class UsdCnyRate(BaseModel):
    rate: float


class TranslateRequest(BaseModel):
    title: str = Field(default="", max_length=2000)
    description: str = Field(default="", max_length=10000)


class Translation(BaseModel):
    title: str = ""
    description: str = ""


class OverviewResponse(BaseModel):
    trace_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    panels: dict[str, FetchResult] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    latency_ms: float = 0.0
