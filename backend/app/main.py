"""Punto de entrada principal para el host del panel."""

import logging
from pathlib import Path

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from starlette.staticfiles import StaticFiles

from app.api.routes.health import router as health_router
from app.core.config import Settings, settings
from app.core.logging import configure_logging, get_logger, resolve_log_level
from app.core.middleware import RequestLoggingMiddleware

PLACEHOLDER_MESSAGE = "WhatsApp Manager API funcionando correctamente"


def _spa_router(build_dir: Path) -> APIRouter:
    """Sirve archivos del build y cae en `index.html` para el enrutado del panel."""
    router = APIRouter(include_in_schema=False)
    root = build_dir.resolve()
    index = root / "index.html"

    @router.get("/{full_path:path}")
    def spa(full_path: str) -> FileResponse:
        candidate = (root / full_path).resolve()
        if full_path and candidate.is_file() and candidate.is_relative_to(root):
            return FileResponse(candidate)
        return FileResponse(index)

    return router


def create_app(config: Settings | None = None) -> FastAPI:
    """Crea y configura la instancia de FastAPI."""
    config = config or settings
    default_log_level = logging.INFO if config.is_production else logging.DEBUG
    log_level = resolve_log_level(config.log_level, default=default_log_level)
    per_logger_files = None
    if config.log_file_path:
        log_dir = Path(config.log_file_path).parent
        per_logger_files = {
            "app.request": str(log_dir / "request.log"),
            "app.dashboard": str(log_dir / "dashboard.log"),
        }
    configure_logging(
        level=log_level,
        log_file=config.log_file_path,
        per_logger_files=per_logger_files,
    )

    app = FastAPI(title="WhatsApp Manager", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health_router, prefix="/api")

    log = get_logger("app")
    build_dir = Path(config.client_build_dir)
    if config.is_production and (build_dir / "index.html").is_file():
        assets = build_dir / "static"
        if assets.is_dir():
            app.mount("/static", StaticFiles(directory=str(assets)), name="static")
        app.include_router(_spa_router(build_dir))
        log.info("panel.static_mounted", extra={"path": str(build_dir)})
        return app

    if config.is_production:
        log.warning("panel.build_missing", extra={"expected_path": str(build_dir)})

    @app.get("/", tags=["info"])
    def root() -> dict[str, str]:
        return {"message": PLACEHOLDER_MESSAGE}

    return app


app = create_app()
