from __future__ import annotations

import json
import logging
import re

from dashboard.errors import ShapeError, classify
from dashboard.schemas import Article, Translation
from providers.proxy_client import ProxyClient, json_body

logger = logging.getLogger(__name__)

_LABEL = re.compile(r"^\s*(title|description|标题|描述)\s*[:：]\s*", re.IGNORECASE)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def _message_text(payload: dict) -> str:
    """First text block of a passed-through LLM message."""
    blocks = payload.get("content") if isinstance(payload, dict) else None
    if isinstance(blocks, list):
        for block in blocks:
            if isinstance(block, dict) and block.get("type") == "text":
                return block.get("text", "")
    raise ShapeError("Translation response has no text content")


def parse_translation(text: str) -> Translation:
    """Parse the model's answer, preferring an embedded JSON object.

    Falls back to line splitting: first non-empty line is the title, the
    rest is the description.
    """
    raw = text.strip()
    raw = re.sub(r"^```(?:json)?\s*", "", raw)
    raw = re.sub(r"\s*```$", "", raw)

    match = _JSON_OBJECT.search(raw)
    if match:
        try:
            data = json.loads(match.group(0))
            if isinstance(data, dict) and ("title" in data or "description" in data):
                return Translation(
                    title=str(data.get("title") or ""),
                    description=str(data.get("description") or ""),
                )
        except json.JSONDecodeError:
            logger.warning("Translation was not valid JSON, splitting lines instead")

    lines = [_LABEL.sub("", line).strip() for line in raw.splitlines()]
    lines = [line for line in lines if line]
    if not lines:
        return Translation()
    return Translation(title=lines[0], description="\n".join(lines[1:]))


class TranslationClient(ProxyClient):
    """On-demand translation through the proxy. Results are never cached."""

    async def translate(self, title: str, description: str) -> Translation:
        try:
            async with self._client() as client:
                resp = await client.post(
                    "/translate", json={"title": title, "description": description}
                )
                payload = json_body(resp)
            return parse_translation(_message_text(payload))
        except Exception as e:
            error = classify(e)
            logger.error(f"Translation failed ({error.kind.value}): {error.message}")
            if error is e:
                raise
            raise error from e

    async def translate_article(self, article: Article) -> Article:
        translation = await self.translate(article.title, article.description)
        return article.model_copy(
            update={
                "translated_title": translation.title,
                "translated_description": translation.description,
            }
        )
