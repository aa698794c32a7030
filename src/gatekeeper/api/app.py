from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from gatekeeper.api.routes import router as api_router
from gatekeeper.config import get_settings
from gatekeeper.core.pending import PendingSubmissions
from gatekeeper.core.runtime import Services, build_services
from gatekeeper.db.init import init_database
from gatekeeper.db.session import SessionLocal
from gatekeeper.logging_config import configure_logging


def create_app(services: Services | None = None) -> FastAPI:
    configure_logging()
    settings = services.settings if services else get_settings()

    app = FastAPI(title=settings.app_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.services = services or build_services(SessionLocal, settings=settings)
    app.state.submissions = PendingSubmissions(settings.manual_recovery_ttl_sec)

    @app.on_event("startup")
    def _startup() -> None:
        init_database()

    @app.get("/health")
    def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    app.include_router(api_router)

    settings.asset_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/assets", StaticFiles(directory=str(settings.asset_dir)), name="assets")
    return app
