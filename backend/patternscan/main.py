"""
Pattern Scan — FastAPI Application Entry Point

Serves pattern overlays (bowl curves, narrow-range lines, breakout markers)
computed from price candles and detector markers.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from patternscan.config import OverlayConfig, get_settings
from patternscan.routes import chart_router, health_router, overlay_router, scan_router

log = structlog.get_logger("patternscan.startup")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    settings = get_settings()

    # ── Overlay config validation ──
    overlay = OverlayConfig.from_settings(settings)
    log.info(
        "startup",
        env=settings.app_env,
        palette=len(overlay.palette),
        cluster_gap_seconds=overlay.cluster_gap_seconds,
        curve_extension_seconds=overlay.curve_extension_seconds,
        session_limit=settings.chart_session_limit,
    )

    yield

    log.info("shutdown")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    app = FastAPI(
        title="Pattern Scan",
        description="""# Pattern Scan Overlay API

Turns detected chart-pattern events into drawable chart overlays.

## Features
- **Bowl curves** — one smooth U-shaped line per rounding-bottom pattern
- **Narrow-range lines** — high/low bounds of each NRB regime
- **Breakout markers** — direction-styled arrows on the candles
- **Chart sessions** — line-series handles reused across renders
""",
        version="1.0.0",
        debug=settings.app_debug,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "Health", "description": "Service health checks"},
            {"name": "Overlays", "description": "Stateless overlay computation and HTML export"},
            {"name": "Charts", "description": "Persistent chart sessions"},
            {"name": "Scans", "description": "Pattern-scan payload normalization"},
        ],
    )

    # ── Global Error Handlers ──
    from patternscan.error_handlers import register_error_handlers
    register_error_handlers(app)

    # ── CORS (configurable from settings) ──
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Custom Middleware ──
    from patternscan.middleware.request_logger import RequestLoggerMiddleware
    app.add_middleware(RequestLoggerMiddleware)

    # ── GZip Response Compression ──
    from starlette.middleware.gzip import GZipMiddleware
    app.add_middleware(GZipMiddleware, minimum_size=500)

    # ── Routes (unversioned) ──
    app.include_router(health_router, tags=["Health"])

    # ── Routes (v1 API) ──
    API_V1 = "/v1/api"
    app.include_router(overlay_router, prefix=API_V1, tags=["Overlays"])
    app.include_router(chart_router, prefix=API_V1, tags=["Charts"])
    app.include_router(scan_router, prefix=API_V1, tags=["Scans"])

    # ── API Version Header ──
    @app.middleware("http")
    async def add_api_version_header(request, call_next):
        response = await call_next(request)
        response.headers["X-API-Version"] = "v1"
        return response

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn (`patternscan-api` console script)."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "patternscan.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_debug and not settings.is_production,
    )


if __name__ == "__main__":
    run()
