from __future__ import annotations

import asyncio
import logging
import time
import uuid

from dashboard.fallback import StaleFallbackPolicy
from dashboard.provider_protocol import ProviderRegistry, registry as default_registry
from dashboard.schemas import Article, FetchResult, OverviewResponse, Translation
from providers.translate import TranslationClient

logger = logging.getLogger(__name__)

OVERVIEW_PANELS = ("stocks", "usd_cny", "exchange", "news")


def _ts(t0: float) -> str:
    """Wall-clock seconds since t0, formatted for logging."""
    return f"+{time.time() - t0:.1f}s"


class UnknownPanelError(KeyError):
    pass


class DashboardService:
    """Routes panel requests through the fallback policy and keeps the
    current article list, which translations are attached to."""

    def __init__(
        self,
        policy: StaleFallbackPolicy,
        registry: ProviderRegistry = default_registry,
        translator: TranslationClient | None = None,
    ) -> None:
        self._policy = policy
        self._registry = registry
        self._translator = translator or TranslationClient()
        self._articles: list[Article] = []

    @property
    def articles(self) -> list[Article]:
        return list(self._articles)

    @property
    def panels(self) -> dict[str, str]:
        return self._registry.panel_descriptions()

    def _provider(self, panel: str):
        provider = self._registry.get(panel)
        if provider is None:
            raise UnknownPanelError(panel)
        return provider

    def _remember(self, panel: str, result: FetchResult) -> FetchResult:
        if panel == "news" and result.data is not None:
            fetched = [Article.model_validate(a) for a in result.data]
            # keep translations already attached to the same headlines
            known = {
                (a.url, a.title): a for a in self._articles if a.translated_title is not None
            }
            self._articles = [known.get((a.url, a.title), a) for a in fetched]
            result = result.model_copy(
                update={"data": [a.model_dump(mode="json") for a in self._articles]}
            )
        return result

    async def fetch(self, panel: str, **params) -> FetchResult:
        provider = self._provider(panel)
        key = provider.cache_key(**params)
        result = await self._policy.fetch(
            key, lambda: provider.load(**params), provider.ttl_minutes
        )
        return self._remember(panel, result)

    async def refresh(self, panel: str, **params) -> FetchResult:
        provider = self._provider(panel)
        key = provider.cache_key(**params)
        result = await self._policy.refresh(
            key, lambda: provider.load(**params), provider.ttl_minutes
        )
        return self._remember(panel, result)

    async def clear_cache(self) -> None:
        await self._policy.cache.clear()

    async def translate(self, title: str, description: str) -> Translation:
        return await self._translator.translate(title, description)

    async def translate_article(self, index: int) -> Article:
        if not 0 <= index < len(self._articles):
            raise IndexError(f"No article at position {index}")
        original = self._articles[index]
        key = (original.url, original.title)
        article = await self._translator.translate_article(original)

        # the list may have been replaced while the translation was running
        for i, current in enumerate(self._articles):
            if (current.url, current.title) == key:
                self._articles[i] = article
                break
        else:
            logger.info(f"Article '{original.title}' dropped before translation finished")
        return article

    async def overview(self) -> OverviewResponse:
        trace_id = uuid.uuid4().hex[:12]
        t0 = time.time()
        logger.info(f"[{trace_id}] [{_ts(t0)}] Overview START")

        panels = [p for p in OVERVIEW_PANELS if self._registry.get(p) is not None]
        results = await asyncio.gather(
            *(self.fetch(p) for p in panels), return_exceptions=True
        )

        response = OverviewResponse(trace_id=trace_id)
        for panel, result in zip(panels, results):
            if isinstance(result, Exception):
                logger.error(f"[{trace_id}] {panel} exception: {result}")
                response.errors.append(f"{panel}: {result}")
                continue
            response.panels[panel] = result
            if not result.success:
                logger.warning(f"[{trace_id}] {panel} unavailable: {result.message}")
                response.errors.append(f"{panel}: {result.message}")
            elif result.stale:
                logger.warning(f"[{trace_id}] {panel} stale: {result.message}")

        ok = sum(1 for r in response.panels.values() if r.success)
        response.latency_ms = round((time.time() - t0) * 1000, 1)
        logger.info(f"[{trace_id}] [{_ts(t0)}] Overview FINISH: {ok}/{len(panels)} panels ok")
        return response
