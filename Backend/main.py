import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

import models  # noqa: F401  (registers tables on Base.metadata)
from config import AppConfig, load_config
from database import Base, build_engine, build_session_factory
from routers import jobs_router, prescriptions_router, settings_router
from services.firebase_app import init_firebase
from services.notification_scanner import NotificationScanner
from services.tracing import configure_langfuse_decorators, configure_logging

logs_path = os.path.join(os.path.dirname(__file__), "logs")
logger = logging.getLogger("rxsupply.api")


def create_app(config: AppConfig | None = None, session_factory: sessionmaker | None = None) -> FastAPI:
    config = config or load_config()
    if session_factory is None:
        session_factory = build_session_factory(build_engine(config.database_url))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Base.metadata.create_all(bind=session_factory.kw["bind"])
        yield

    app = FastAPI(
        title="RxSupply API",
        description="Prescription supply forecasting and daily reorder reminders",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.session_factory = session_factory
    app.state.scanner = NotificationScanner.from_config(config, session_factory)

    app.include_router(jobs_router)
    app.include_router(prescriptions_router)
    app.include_router(settings_router)

    @app.middleware("http")
    async def _capture_unhandled_errors(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:  # pragma: no cover
            logger.exception("Unhandled server error on %s %s: %s", request.method, request.url.path, exc)
            return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/", tags=["Health"])
    def health_check():
        return {"status": "ok", "service": "RxSupply API", "version": "1.0.0"}

    return app


def build_app() -> FastAPI:
    """Process entrypoint: `uvicorn main:build_app --factory`."""
    configure_logging(logs_path)
    config = load_config()
    init_firebase(config)
    configure_langfuse_decorators(config)
    return create_app(config)

