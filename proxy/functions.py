"""Credential-injecting proxy in front of the upstream providers.

Clients call these endpoints without credentials; the server attaches the
keys it holds, forwards the request and passes the provider body through.

- missing credential   -> 500 {"error", "kind": "configuration"}
- provider success     -> 200, body passed through
- provider failure     -> 500 {"error", "message", "upstream_status"}
"""

from __future__ import annotations

import logging

import httpx
from anthropic import AsyncAnthropic
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from config import (
    ANTHROPIC_API_KEY,
    ANTHROPIC_MODEL,
    EXCHANGE_API_KEY,
    HTTP_TIMEOUT,
    NEWS_API_KEY,
    TIINGO_API_TOKEN,
    TRANSLATE_TARGET_LANGUAGE,
)
from dashboard.schemas import TranslateRequest

logger = logging.getLogger(__name__)

NEWS_API = "https://newsapi.org/v2/top-headlines"
TIINGO_API = "https://api.tiingo.com/tiingo"
EXCHANGE_API = "https://v6.exchangerate-api.com/v6"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}

TRANSLATE_PROMPT = """Translate the following English news item into {language}. Keep the tone professional and accurate.

Title: {title}

Description: {description}

Respond with ONLY a JSON object with "title" and "description" fields."""

router = APIRouter(prefix="/proxy", tags=["proxy"])

# swapped out in tests
upstream_transport: httpx.AsyncBaseTransport | None = None


def _llm_client(api_key: str) -> AsyncAnthropic:
    return AsyncAnthropic(api_key=api_key, timeout=HTTP_TIMEOUT)


def _respond(status_code: int, body: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body, headers=CORS_HEADERS)


def _masked(url: str, secret: str) -> str:
    return url.replace(secret, "***") if secret else url


def _missing(what: str) -> JSONResponse:
    logger.error(f"{what} not configured")
    return _respond(500, {"error": f"{what} not configured", "kind": "configuration"})


def _failure(label: str, exc: Exception, status: int | None = None) -> JSONResponse:
    logger.error(f"{label} proxy error: {exc}")
    return _respond(
        500,
        {"error": f"Failed to fetch {label}", "message": str(exc), "upstream_status": status},
    )


async def _forward(label: str, url: str, secret: str, params: dict | None = None) -> JSONResponse:
    try:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, transport=upstream_transport) as client:
            request = client.build_request("GET", url, params=params)
            logger.info(f"Fetching {label} from: {_masked(str(request.url), secret)}")
            resp = await client.send(request)
            if resp.is_error:
                raise httpx.HTTPStatusError(
                    f"{label} API responded with status: {resp.status_code}",
                    request=request,
                    response=resp,
                )
            return _respond(200, resp.json())
    except httpx.HTTPStatusError as e:
        return _failure(label, e, e.response.status_code)
    except Exception as e:
        return _failure(label, e)


@router.options("/{path:path}")
async def preflight(path: str) -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@router.get("/news")
async def news(country: str = "us", category: str = "business", pageSize: str = "20"):
    if not NEWS_API_KEY:
        return _missing("News API key")
    params = {"country": country, "category": category, "pageSize": pageSize, "apiKey": NEWS_API_KEY}
    return await _forward("news", NEWS_API, NEWS_API_KEY, params)


@router.get("/stocks/{path:path}")
async def stocks(path: str, request: Request):
    if not TIINGO_API_TOKEN:
        return _missing("Tiingo API token")
    params = {"token": TIINGO_API_TOKEN}
    for name in ("startDate", "endDate", "resampleFreq"):
        value = request.query_params.get(name)
        if value:
            params[name] = value
    return await _forward("stock data", f"{TIINGO_API}/{path}", TIINGO_API_TOKEN, params)


@router.get("/exchange/{path:path}")
async def exchange(path: str):
    if not EXCHANGE_API_KEY:
        return _missing("Exchange API key")
    url = f"{EXCHANGE_API}/{EXCHANGE_API_KEY}/{path}"
    return await _forward("exchange rates", url, EXCHANGE_API_KEY)


@router.post("/translate")
async def translate(body: TranslateRequest):
    if not ANTHROPIC_API_KEY:
        return _missing("Translation API key")
    if not body.title and not body.description:
        return _respond(400, {"error": "Title or description is required"})

    prompt = TRANSLATE_PROMPT.format(
        language=TRANSLATE_TARGET_LANGUAGE,
        title=body.title or "(no title)",
        description=body.description or "(no description)",
    )
    logger.info("Calling LLM for translation...")
    try:
        response = await _llm_client(ANTHROPIC_API_KEY).messages.create(
            model=ANTHROPIC_MODEL,
            max_tokens=1000,
            temperature=0.3,
            messages=[{"role": "user", "content": prompt}],
        )
        return _respond(200, response.model_dump(mode="json"))
    except Exception as e:
        logger.error(f"Translate proxy error: {e}")
        return _respond(
            500,
            {
                "error": "Translation failed",
                "message": str(e),
                "upstream_status": getattr(e, "status_code", None),
            },
        )
