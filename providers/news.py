from __future__ import annotations

import logging

from config import NEWS_CATEGORY, NEWS_COUNTRY, NEWS_PAGE_SIZE
from dashboard.errors import ShapeError
from dashboard.schemas import Article
from providers.proxy_client import ProxyClient, json_body

logger = logging.getLogger(__name__)


def _to_article(raw: dict) -> Article:
    source = raw.get("source")
    if not isinstance(source, dict):
        source = {}
    return Article(
        title=raw.get("title") or "",
        description=raw.get("description") or "",
        published_at=raw.get("publishedAt") or "",
        url=raw.get("url") or "",
        image_url=raw.get("urlToImage") or "",
        source_name=source.get("name") or "",
    )


class NewsProvider(ProxyClient):
    name = "news"
    description = "Top business headlines from NewsAPI."
    ttl_minutes = 5

    def cache_key(self, **params) -> str:
        return "news_headlines"

    async def load(self, **params) -> list[dict]:
        async with self._client() as client:
            resp = await client.get(
                "/news",
                params={
                    "country": NEWS_COUNTRY,
                    "category": NEWS_CATEGORY,
                    "pageSize": NEWS_PAGE_SIZE,
                },
            )
            payload = json_body(resp)

        articles = payload.get("articles") if isinstance(payload, dict) else None
        if not isinstance(articles, list):
            raise ShapeError("News payload has no articles list")

        parsed = [_to_article(a) for a in articles if isinstance(a, dict)]
        logger.info(f"Loaded {len(parsed)} headlines")
        return [a.model_dump(mode="json") for a in parsed]
