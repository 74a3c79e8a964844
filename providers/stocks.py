from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta
from typing import Callable

import httpx

from config import STOCK_SYMBOLS
from dashboard.errors import ShapeError
from dashboard.schemas import StockBar, StockQuote
from providers.proxy_client import ProxyClient, json_body

logger = logging.getLogger(__name__)

# days of history, Tiingo resampleFreq (None = plain daily bars)
TIME_RANGES: dict[str, tuple[int, str | None]] = {
    "daily": (30, None),
    "weekly": (120, "weekly"),
    "monthly": (365, "monthly"),
    "3months": (90, None),
}


async def _fetch_bars(
    client: httpx.AsyncClient, symbol: str, params: dict[str, str] | None = None
) -> list[StockBar]:
    resp = await client.get(f"/stocks/daily/{symbol}/prices", params=params)
    payload = json_body(resp)
    if not isinstance(payload, list) or not payload:
        raise ShapeError(f"{symbol}: empty price series")
    return [StockBar.model_validate(bar) for bar in payload]


def quote_from_bars(symbol: str, name: str, bars: list[StockBar]) -> StockQuote:
    """Latest bar plus change against the bar before it."""
    if not bars:
        raise ShapeError(f"{symbol}: empty price series")
    latest = bars[-1]

    change = 0.0
    change_percent = 0.0
    if len(bars) > 1:
        previous = bars[-2]
        change = latest.close - previous.close
        if previous.close:
            change_percent = change / previous.close * 100

    return StockQuote(
        symbol=symbol,
        name=name,
        date=latest.date[:10],
        open=latest.open,
        high=latest.high,
        low=latest.low,
        close=latest.close,
        volume=latest.volume,
        change=change,
        change_percent=change_percent,
    )


class StocksProvider(ProxyClient):
    name = "stocks"
    description = "Latest daily quotes for the tracked ETFs (Tiingo)."
    ttl_minutes = 3

    def __init__(self, symbols: list[tuple[str, str]] | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self._symbols = symbols if symbols is not None else STOCK_SYMBOLS

    def cache_key(self, **params) -> str:
        return "stocks_data"

    async def load(self, **params) -> list[dict]:
        async with self._client() as client:
            series = await asyncio.gather(
                *(_fetch_bars(client, symbol) for symbol, _ in self._symbols)
            )

        quotes = [
            quote_from_bars(symbol, label, bars)
            for (symbol, label), bars in zip(self._symbols, series)
        ]
        return [q.model_dump(mode="json") for q in quotes]


class ChartProvider(ProxyClient):
    name = "chart"
    description = "Price history for one symbol over a daily/weekly/monthly/3months range."
    ttl_minutes = 5

    def __init__(self, today: Callable[[], date] = date.today, **kwargs) -> None:
        super().__init__(**kwargs)
        self._today = today

    def cache_key(self, symbol: str = "", time_range: str = "daily", **params) -> str:
        if not symbol:
            raise ValueError("symbol is required")
        if time_range not in TIME_RANGES:
            raise ValueError(
                f"Unknown time range '{time_range}', expected one of {', '.join(TIME_RANGES)}"
            )
        return f"chart_{symbol.upper()}_{time_range}"

    def query_params(self, time_range: str) -> dict[str, str]:
        days, resample = TIME_RANGES[time_range]
        end = self._today()
        params = {
            "startDate": (end - timedelta(days=days)).isoformat(),
            "endDate": end.isoformat(),
        }
        if resample:
            params["resampleFreq"] = resample
        return params

    async def load(self, symbol: str = "", time_range: str = "daily", **params) -> list[dict]:
        symbol = symbol.upper()
        async with self._client() as client:
            bars = await _fetch_bars(client, symbol, self.query_params(time_range))
        logger.info(f"Loaded {len(bars)} {time_range} bars for {symbol}")
        return [b.model_dump(mode="json") for b in bars]
