import logging
import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import providers  # noqa: F401 (registers the dashboard panels)

from config import CACHE_DIR
from dashboard.cache import build_cache
from dashboard.errors import UpstreamError
from dashboard.fallback import StaleFallbackPolicy
from dashboard.schemas import Article, FetchResult, OverviewResponse, TranslateRequest, Translation
from dashboard.service import DashboardService, UnknownPanelError
from proxy.functions import router as proxy_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


def create_app(service: DashboardService | None = None) -> FastAPI:
    app = FastAPI(title="Market Dashboard", version="0.1.0")
    app.state.dashboard = service or DashboardService(
        StaleFallbackPolicy(build_cache(CACHE_DIR))
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(proxy_router)

    def dashboard() -> DashboardService:
        return app.state.dashboard

    def _panel_response(result: FetchResult):
        if not result.success:
            return JSONResponse(status_code=503, content=result.model_dump(mode="json"))
        return result

    @app.get("/health")
    async def health():
        return {"status": "ok", "panels": dashboard().panels}

    @app.get("/dashboard/overview", response_model=OverviewResponse)
    async def overview():
        return await dashboard().overview()

    @app.delete("/dashboard/cache")
    async def clear_cache():
        await dashboard().clear_cache()
        return {"status": "cleared"}

    @app.post("/dashboard/translate", response_model=Translation)
    async def translate(request: TranslateRequest):
        if not request.title and not request.description:
            raise HTTPException(status_code=400, detail="Title or description is required")
        try:
            return await dashboard().translate(request.title, request.description)
        except UpstreamError as e:
            raise HTTPException(status_code=502, detail=e.message)

    @app.post("/dashboard/news/{index}/translate", response_model=Article)
    async def translate_article(index: int):
        try:
            return await dashboard().translate_article(index)
        except IndexError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except UpstreamError as e:
            raise HTTPException(status_code=502, detail=e.message)

    @app.get("/dashboard/{panel}", response_model=FetchResult)
    async def panel(panel: str, symbol: str = "", time_range: str = "daily"):
        params = {"symbol": symbol, "time_range": time_range} if panel == "chart" else {}
        try:
            result = await dashboard().fetch(panel, **params)
        except UnknownPanelError:
            raise HTTPException(status_code=404, detail=f"Unknown panel: {panel}")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _panel_response(result)

    @app.post("/dashboard/{panel}/refresh", response_model=FetchResult)
    async def refresh(panel: str, symbol: str = "", time_range: str = "daily"):
        params = {"symbol": symbol, "time_range": time_range} if panel == "chart" else {}
        try:
            result = await dashboard().refresh(panel, **params)
        except UnknownPanelError:
            raise HTTPException(status_code=404, detail=f"Unknown panel: {panel}")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _panel_response(result)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
