import asyncio
import json
import logging
import sys

logging.basicConfig(level=logging.INFO, format="%(message)s")

import providers  # noqa: F401

from config import CACHE_DIR
from dashboard.cache import build_cache
from dashboard.fallback import StaleFallbackPolicy
from dashboard.service import DashboardService


async def main():
    refresh = "--refresh" in sys.argv[1:]
    service = DashboardService(StaleFallbackPolicy(build_cache(CACHE_DIR)))

    print(f"{'=' * 60}")
    print("Market Dashboard Snapshot")
    print(f"Cache:   {CACHE_DIR or 'memory only'}")
    print(f"Refresh: {refresh}")
    print(f"{'=' * 60}\n")

    if refresh:
        for panel in ("stocks", "usd_cny", "exchange", "news"):
            await service.refresh(panel)
    response = await service.overview()

    print(json.dumps(response.model_dump(mode="json"), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    asyncio.run(main())
