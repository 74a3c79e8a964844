from __future__ import annotations

from typing import Any

import httpx

from config import HTTP_TIMEOUT, PROXY_BASE_URL
from dashboard.errors import ShapeError


class ProxyClient:
    """Base for providers that reach upstream APIs through the credential proxy."""

    def __init__(
        self,
        base_url: str = PROXY_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = HTTP_TIMEOUT,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            headers={"User-Agent": "Market-Dashboard/1.0"},
        )


def json_body(resp: httpx.Response) -> Any:
    resp.raise_for_status()
    try:
        return resp.json()
    except ValueError as e:
        raise ShapeError(f"{resp.request.url.path} returned non-JSON body") from e
