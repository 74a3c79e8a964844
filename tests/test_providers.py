"""Provider shape validation and derived values, with upstream faked by MockTransport."""

from __future__ import annotations

from datetime import date

import httpx
import pytest
from pydantic import ValidationError

from dashboard.errors import ShapeError
from providers.exchange import ExchangeProvider, UsdCnyProvider, derive_rates
from providers.news import NewsProvider
from providers.stocks import ChartProvider, StocksProvider, quote_from_bars
from dashboard.schemas import StockBar

BASE = "http://proxy.test/proxy"


def _bar(day: int, close: float, **extra) -> dict:
    bar = {
        "date": f"2024-03-{day:02d}T00:00:00.000Z",
        "open": close - 1,
        "high": close + 1,
        "low": close - 2,
        "close": close,
        "volume": 1000 * day,
        "adjClose": close,
    }
    bar.update(extra)
    return bar


def _transport(routes: dict[str, object], seen: list[httpx.Request] | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        body = routes.get(request.url.path)
        if body is None:
            return httpx.Response(404, json={"error": "not found"})
        if isinstance(body, httpx.Response):
            return body
        return httpx.Response(200, json=body)

    return httpx.MockTransport(handler)


async def test_stocks_quotes_with_change() -> None:
    seen: list[httpx.Request] = []
    transport = _transport(
        {
            "/proxy/stocks/daily/SPY/prices": [_bar(4, 500.0), _bar(5, 505.0)],
            "/proxy/stocks/daily/QQQ/prices": [_bar(4, 400.0), _bar(5, 396.0)],
        },
        seen,
    )
    provider = StocksProvider(
        symbols=[("SPY", "S&P 500 ETF"), ("QQQ", "Nasdaq-100 ETF")],
        base_url=BASE,
        transport=transport,
    )

    quotes = await provider.load()

    assert [q["symbol"] for q in quotes] == ["SPY", "QQQ"]
    spy, qqq = quotes
    assert spy["close"] == 505.0
    assert spy["change"] == pytest.approx(5.0)
    assert spy["change_percent"] == pytest.approx(1.0)
    assert spy["date"] == "2024-03-05"
    assert qqq["change"] == pytest.approx(-4.0)
    assert qqq["change_percent"] == pytest.approx(-1.0)
    assert provider.cache_key() == "stocks_data"
    assert len(seen) == 2


def test_single_bar_has_no_change() -> None:
    quote = quote_from_bars("SPY", "S&P 500 ETF", [StockBar.model_validate(_bar(5, 505.0))])
    assert quote.change == 0
    assert quote.change_percent == 0


async def test_stocks_empty_series_is_shape_error() -> None:
    transport = _transport(
        {
            "/proxy/stocks/daily/SPY/prices": [],
        }
    )
    provider = StocksProvider(symbols=[("SPY", "")], base_url=BASE, transport=transport)

    with pytest.raises(ShapeError):
        await provider.load()


async def test_stocks_bar_missing_close_is_invalid() -> None:
    bad = _bar(5, 505.0)
    del bad["close"]
    transport = _transport({"/proxy/stocks/daily/SPY/prices": [bad]})
    provider = StocksProvider(symbols=[("SPY", "")], base_url=BASE, transport=transport)

    with pytest.raises(ValidationError):
        await provider.load()


async def test_stocks_rate_limit_surfaces_as_status_error() -> None:
    transport = _transport(
        {"/proxy/stocks/daily/SPY/prices": httpx.Response(429, json={"detail": "slow down"})}
    )
    provider = StocksProvider(symbols=[("SPY", "")], base_url=BASE, transport=transport)

    with pytest.raises(httpx.HTTPStatusError) as info:
        await provider.load()
    assert info.value.response.status_code == 429


async def test_chart_requests_resampled_range() -> None:
    seen: list[httpx.Request] = []
    transport = _transport(
        {"/proxy/stocks/daily/QQQ/prices": [_bar(1, 390.0), _bar(8, 395.0)]}, seen
    )
    provider = ChartProvider(today=lambda: date(2024, 3, 31), base_url=BASE, transport=transport)

    bars = await provider.load(symbol="qqq", time_range="weekly")

    assert [b["close"] for b in bars] == [390.0, 395.0]
    params = seen[0].url.params
    assert params["startDate"] == "2023-12-02"
    assert params["endDate"] == "2024-03-31"
    assert params["resampleFreq"] == "weekly"


def test_chart_daily_range_has_no_resample() -> None:
    provider = ChartProvider(today=lambda: date(2024, 3, 31))
    assert provider.query_params("3months") == {"startDate": "2024-01-01", "endDate": "2024-03-31"}


def test_chart_cache_key_and_validation() -> None:
    provider = ChartProvider()
    assert provider.cache_key(symbol="spy", time_range="monthly") == "chart_SPY_monthly"
    with pytest.raises(ValueError):
        provider.cache_key(symbol="SPY", time_range="hourly")
    with pytest.raises(ValueError):
        provider.cache_key(symbol="", time_range="daily")


def test_derive_cross_rates() -> None:
    rates = derive_rates({"USD": 0.138, "JPY": 20.853, "KRW": 185.6}, "Mon, 04 Mar 2024")
    assert rates.usd_to_cny == pytest.approx(7.2464)
    assert rates.cny_to_jpy == pytest.approx(20.85)
    assert rates.cny_to_krw == 186.0
    assert rates.last_update == "Mon, 04 Mar 2024"


def test_derive_rates_tolerates_missing_minor_currencies() -> None:
    rates = derive_rates({"USD": 0.125})
    assert rates.usd_to_cny == 8.0
    assert rates.cny_to_jpy is None
    assert rates.cny_to_krw is None


async def test_exchange_providers_share_endpoint() -> None:
    payload = {
        "result": "success",
        "base_code": "CNY",
        "time_last_update_utc": "Mon, 04 Mar 2024 00:00:01 +0000",
        "conversion_rates": {"CNY": 1, "USD": 0.1389, "JPY": 20.85, "KRW": 185.6},
    }
    transport = _transport({"/proxy/exchange/latest/CNY": payload})

    full = await ExchangeProvider(base_url=BASE, transport=transport).load()
    single = await UsdCnyProvider(base_url=BASE, transport=transport).load()

    assert full["usd_to_cny"] == single["rate"] == pytest.approx(7.1994)
    assert full["last_update"].startswith("Mon, 04 Mar 2024")


async def test_exchange_error_result_is_shape_error() -> None:
    transport = _transport(
        {"/proxy/exchange/latest/CNY": {"result": "error", "error-type": "invalid-key"}}
    )
    with pytest.raises(ShapeError):
        await ExchangeProvider(base_url=BASE, transport=transport).load()


async def test_news_maps_articles() -> None:
    seen: list[httpx.Request] = []
    payload = {
        "status": "ok",
        "articles": [
            {
                "source": {"id": None, "name": "Reuters"},
                "title": "Stocks rally",
                "description": "Markets rose.",
                "url": "https://example.com/a",
                "urlToImage": "https://example.com/a.jpg",
                "publishedAt": "2024-03-05T12:00:00Z",
            },
            {"title": "Bare", "source": None},
        ],
    }
    provider = NewsProvider(base_url=BASE, transport=_transport({"/proxy/news": payload}, seen))

    articles = await provider.load()

    assert articles[0]["source_name"] == "Reuters"
    assert articles[0]["image_url"] == "https://example.com/a.jpg"
    assert articles[0]["published_at"] == "2024-03-05T12:00:00Z"
    assert articles[1]["source_name"] == ""
    assert articles[1]["description"] == ""
    assert seen[0].url.params["category"] == "business"


async def test_news_without_articles_is_shape_error() -> None:
    provider = NewsProvider(base_url=BASE, transport=_transport({"/proxy/news": {"status": "ok"}}))
    with pytest.raises(ShapeError):
        await provider.load()


async def test_non_json_body_is_shape_error() -> None:
    transport = _transport({"/proxy/news": httpx.Response(200, text="<html>oops</html>")})
    with pytest.raises(ShapeError):
        await NewsProvider(base_url=BASE, transport=transport).load()
