"""FastAPI transport for chart, market prices and spot candles."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from predcharts.api.schemas import CacheStatsResponse, ErrorResponse, HealthResponse, SpotCandlesResponse
from predcharts.config import get_settings
from predcharts.config.settings import Settings
from predcharts.errors import PredChartsError, TickerParseError, UpstreamUnavailable
from predcharts.models.chart import ChartResponse, MarketSummary
from predcharts.service import ChartQuery, Runtime, open_runtime
from predcharts.spot.ticker import parse_ticker

log = structlog.get_logger(__name__)

# Set by run_api() so the module-level app picks up the chosen profile.
_config_profile: str | None = None


def _error_json(code: str, message: str, status_code: int = 404) -> JSONResponse:
    """Return consistent error JSON: { detail, code }."""
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "code": code},
    )


def _runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """App factory. transport replaces the network for every upstream call (tests)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = settings or get_settings(_config_profile)
        async with open_runtime(cfg, transport=transport, start_warmer=True) as runtime:
            app.state.runtime = runtime
            log.info("api_started", backend=cfg.backend_mode, warmer=cfg.warmer_enabled)
            yield
        log.info("api_stopped")

    app = FastAPI(title="predcharts API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.exception_handler(UpstreamUnavailable)
    async def upstream_unavailable(request: Request, exc: UpstreamUnavailable) -> JSONResponse:
        log.warning("upstream_unavailable", path=request.url.path, source=exc.source, error=str(exc))
        return _error_json("upstream_unavailable", str(exc), 502)

    @app.exception_handler(PredChartsError)
    async def predcharts_error(request: Request, exc: PredChartsError) -> JSONResponse:
        return _error_json("bad_request", str(exc), 400)

    @app.get("/health", response_model=HealthResponse)
    def health(request: Request) -> HealthResponse:
        cfg = _runtime(request).settings
        return HealthResponse(status="ok", backend=cfg.backend_mode, warmer_enabled=cfg.warmer_enabled)

    @app.get(
        "/api/v2/proposals/{proposal_id}/chart",
        response_model=ChartResponse,
        responses={502: {"description": "Registry or candles upstream unavailable", "model": ErrorResponse}},
    )
    async def proposal_chart(
        request: Request,
        proposal_id: str,
        min_timestamp: int | None = Query(None, alias="minTimestamp"),
        max_timestamp: int | None = Query(None, alias="maxTimestamp"),
        include_spot: bool = Query(True, alias="includeSpot"),
    ) -> ChartResponse:
        """Market summary plus gap-filled YES/NO candles and the spot series."""
        query = ChartQuery(
            proposal_id=proposal_id,
            min_timestamp=min_timestamp or 0,
            max_timestamp=max_timestamp or None,
            include_spot=include_spot,
        )
        return await _runtime(request).service.get_chart(query)

    @app.get(
        "/api/v1/market-events/proposals/{proposal_id}/prices",
        response_model=MarketSummary,
        responses={502: {"description": "Registry upstream unavailable", "model": ErrorResponse}},
    )
    async def proposal_prices(request: Request, proposal_id: str) -> MarketSummary:
        return await _runtime(request).service.get_prices(proposal_id)

    @app.get(
        "/api/v1/spot-candles",
        response_model=SpotCandlesResponse,
        responses={400: {"description": "Missing or malformed ticker", "model": ErrorResponse}},
    )
    async def spot_candles(
        request: Request,
        ticker: str | None = Query(None),
        min_timestamp: int | None = Query(None, alias="minTimestamp"),
        max_timestamp: int | None = Query(None, alias="maxTimestamp"),
    ) -> Any:
        if not ticker:
            return _error_json("ticker_required", "ticker required", 400)
        try:
            parse_ticker(ticker)
        except TickerParseError as e:
            return _error_json("bad_ticker", str(e), 400)
        candles, error = await _runtime(request).service.get_spot_candles(
            ticker, min_timestamp or 0, max_timestamp or None
        )
        if error:
            return JSONResponse(
                status_code=502,
                content={"detail": error, "code": "spot_unavailable", "spotCandles": []},
            )
        return SpotCandlesResponse(spotCandles=candles)

    @app.get("/cache/stats", response_model=CacheStatsResponse)
    def cache_stats(request: Request) -> CacheStatsResponse:
        runtime = _runtime(request)
        return CacheStatsResponse(
            backend=runtime.settings.backend_mode,
            tiers=runtime.tiers.stats(),
            warm_list=len(runtime.warm_list),
        )

    @app.get("/warmer/status")
    def warmer_status(request: Request) -> dict[str, Any]:
        runtime = _runtime(request)
        return {"enabled": runtime.settings.warmer_enabled, **runtime.warmer.get_status()}

    return app


app = create_app()


def run_api(host: str = "127.0.0.1", port: int = 8000, profile: str | None = None) -> None:
    global _config_profile
    _config_profile = profile
    import uvicorn

    uvicorn.run("predcharts.api.main:app", host=host, port=port, reload=False)
