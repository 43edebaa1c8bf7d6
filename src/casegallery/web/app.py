"""FastAPI application backing the case study gallery."""

from __future__ import annotations

import asyncio
import hmac
import logging
import time
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from casegallery.config import AppConfig
from casegallery.index.catalog import Catalog
from casegallery.utils.paths import AccessDeniedError
from casegallery.web.frontend import router as frontend_router
from casegallery.web.middleware import RateLimiter, install_frame_headers, install_rate_limit

LOGGER = logging.getLogger(__name__)


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def get_catalog(request: Request) -> Catalog:
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        raise HTTPException(status_code=503, detail="Gallery is still starting")
    return catalog


def create_app(config: AppConfig | None = None, catalog: Catalog | None = None) -> FastAPI:
    """Build the gallery application.

    When ``catalog`` is omitted one is initialized from ``config.md_root`` at
    startup. Startup runs a first scan and, if the interval is positive,
    starts background rescans.
    """
    config = config or AppConfig.from_env()
    app = FastAPI(title="Case Study Gallery", version="0.1.0")
    app.state.config = config
    app.state.catalog = catalog

    install_rate_limit(
        app,
        RateLimiter(config.rate_limit_window_ms / 1000, config.max_requests_per_window),
    )
    install_frame_headers(app, config.frame_allowed_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.origin_list(),
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Admin-Token"],
        max_age=86400,
    )

    @app.on_event("startup")
    async def startup_event() -> None:
        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
        if app.state.catalog is None:
            app.state.catalog = Catalog.initialize(
                config.md_root, max_workers=config.scan_workers
            )
        active: Catalog = app.state.catalog
        await asyncio.to_thread(active.scanner.scan)
        active.scanner.start(config.scan_interval)

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        if app.state.catalog is not None:
            app.state.catalog.scanner.stop()

    @app.get("/api/casestudies")
    async def list_case_studies(catalog: Catalog = Depends(get_catalog)) -> dict[str, Any]:
        return {"success": True, "data": catalog.list_records(), "timestamp": _timestamp_ms()}

    @app.get("/api/casestudy/{record_id}")
    async def get_case_study(
        record_id: str, catalog: Catalog = Depends(get_catalog)
    ) -> dict[str, Any]:
        record = catalog.get_record(record_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Case study not found")
        return {"success": True, "data": record.detail()}

    @app.post("/api/refresh", status_code=202)
    async def refresh(
        request: Request,
        x_admin_token: str | None = Header(default=None),
        catalog: Catalog = Depends(get_catalog),
    ) -> dict[str, Any]:
        if not config.admin_token:
            raise HTTPException(
                status_code=403, detail="Server misconfiguration: admin token required"
            )
        provided = (x_admin_token or "").encode("utf-8")
        if not hmac.compare_digest(provided, config.admin_token.encode("utf-8")):
            client = request.client.host if request.client else "unknown"
            LOGGER.warning("Unauthorized refresh attempt from %s", client)
            raise HTTPException(status_code=403, detail="Unauthorized")

        LOGGER.info("Manual refresh requested")
        accepted = catalog.request_scan()
        message = "Scan started" if accepted else "Scan already in progress"
        return {"success": True, "accepted": accepted, "message": message}

    @app.get("/api/status")
    async def status(catalog: Catalog = Depends(get_catalog)) -> dict[str, Any]:
        return {"success": True, "data": catalog.get_status().as_dict()}

    @app.get("/api/image")
    async def image(
        path: str | None = Query(default=None),
        catalog: Catalog = Depends(get_catalog),
    ):
        if not path or not path.strip():
            raise HTTPException(status_code=400, detail="Invalid or missing path parameter")
        try:
            resolved, media_type = catalog.resolve_image(path)
        except AccessDeniedError:
            return JSONResponse(status_code=403, content={"error": "Access denied"})
        except FileNotFoundError:
            raise HTTPException(status_code=404, detail="Image not found")

        return FileResponse(
            resolved,
            media_type=media_type,
            headers={
                "Cache-Control": f"public, max-age={config.cache_max_age}",
                "X-Content-Type-Options": "nosniff",
            },
        )

    app.include_router(frontend_router)
    return app


app = create_app()
