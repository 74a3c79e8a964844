import os
from dotenv import load_dotenv

load_dotenv(override=True)


def _secret(name: str) -> str:
    # .env.example ships "your_..." placeholders; treat them as unset
    value = os.getenv(name, "").strip()
    return "" if value.startswith("your_") else value


NEWS_API_KEY: str = _secret("NEWS_API_KEY")
TIINGO_API_TOKEN: str = _secret("TIINGO_API_TOKEN")
EXCHANGE_API_KEY: str = _secret("EXCHANGE_API_KEY")
ANTHROPIC_API_KEY: str = _secret("ANTHROPIC_API_KEY")
ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")

HTTP_TIMEOUT: int = int(os.getenv("HTTP_TIMEOUT", "15"))
PROXY_BASE_URL: str = os.getenv("PROXY_BASE_URL", "http://localhost:8000/proxy").rstrip("/")

CACHE_DIR: str = os.getenv("CACHE_DIR", "")
CACHE_PREFIX: str = os.getenv("CACHE_PREFIX", "cache_")
RATE_LIMIT_COOLDOWN: int = int(os.getenv("RATE_LIMIT_COOLDOWN", "3600"))

NEWS_COUNTRY: str = os.getenv("NEWS_COUNTRY", "us")
NEWS_CATEGORY: str = os.getenv("NEWS_CATEGORY", "business")
NEWS_PAGE_SIZE: int = int(os.getenv("NEWS_PAGE_SIZE", "20"))

STOCK_SYMBOLS: list[tuple[str, str]] = [
    (sym.strip().upper(), label.strip())
    for sym, _, label in (
        p.partition(":")
        for p in os.getenv("STOCK_SYMBOLS", "SPY:S&P 500 ETF,QQQ:Nasdaq-100 ETF").split(",")
    )
    if sym.strip()
]

TRANSLATE_TARGET_LANGUAGE: str = os.getenv("TRANSLATE_TARGET_LANGUAGE", "Simplified Chinese")
