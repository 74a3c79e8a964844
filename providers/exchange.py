from __future__ import annotations

import httpx

from dashboard.errors import ShapeError
from dashboard.schemas import ExchangeRates, UsdCnyRate
from providers.proxy_client import ProxyClient, json_body

BASE_CURRENCY = "CNY"


async def _latest_rates(client: httpx.AsyncClient) -> tuple[dict[str, float], str]:
    resp = await client.get(f"/exchange/latest/{BASE_CURRENCY}")
    payload = json_body(resp)
    if not isinstance(payload, dict) or payload.get("result") != "success":
        raise ShapeError("Exchange payload is not a success result")

    rates = payload.get("conversion_rates")
    if not isinstance(rates, dict):
        raise ShapeError("Exchange payload has no conversion_rates")
    usd = rates.get("USD")
    if not isinstance(usd, (int, float)) or usd <= 0:
        raise ShapeError("Exchange payload has no usable USD rate")
    return rates, payload.get("time_last_update_utc") or ""


def usd_to_cny(rates: dict[str, float]) -> float:
    # rates are quoted per 1 CNY, so 1 USD = 1 / rates[USD] CNY
    return round(1 / rates["USD"], 4)


def derive_rates(rates: dict[str, float], last_update: str = "") -> ExchangeRates:
    jpy = rates.get("JPY")
    krw = rates.get("KRW")
    return ExchangeRates(
        usd_to_cny=usd_to_cny(rates),
        cny_to_jpy=round(jpy, 2) if jpy else None,
        cny_to_krw=float(round(krw)) if krw else None,
        last_update=last_update,
    )


class ExchangeProvider(ProxyClient):
    name = "exchange"
    description = "CNY cross rates against USD, JPY and KRW."
    ttl_minutes = 5

    def cache_key(self, **params) -> str:
        return "exchange_rates_multiple"

    async def load(self, **params) -> dict:
        async with self._client() as client:
            rates, last_update = await _latest_rates(client)
        return derive_rates(rates, last_update).model_dump(mode="json")


class UsdCnyProvider(ProxyClient):
    name = "usd_cny"
    description = "USD to CNY rate used to convert quote prices."
    ttl_minutes = 5

    def cache_key(self, **params) -> str:
        return "exchange_rate_usd_cny"

    async def load(self, **params) -> dict:
        async with self._client() as client:
            rates, _ = await _latest_rates(client)
        return UsdCnyRate(rate=usd_to_cny(rates)).model_dump(mode="json")
