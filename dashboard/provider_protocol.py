from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Provider(Protocol):
    name: str
    description: str
    ttl_minutes: float

    def cache_key(self, **params) -> str: ...

    async def load(self, **params) -> Any: ...


class ProviderRegistry:
    def __init__(self) -> None:
        self._providers: dict[str, Provider] = {}

    def register(self, provider: Provider) -> None:
        self._providers[provider.name] = provider

    def get(self, name: str) -> Provider | None:
        return self._providers.get(name)

    def panel_descriptions(self) -> dict[str, str]:
        return {p.name: p.description for p in self._providers.values()}


registry = ProviderRegistry()
