# accessgate/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from accessgate.api.routes import access_codes as access_codes_routes
from accessgate.api.routes import activity_logs as activity_logs_routes
from accessgate.core.config import Settings, get_settings
from accessgate.core.errors import StoreError
from accessgate.core.logging_setup import configure_logging
from accessgate.db.database import create_db_engine, init_models, make_session_factory
from accessgate.repositories.access_code_repo import SqlCodeStore
from accessgate.repositories.code_store import CodeStore, UsageLogSink
from accessgate.repositories.usage_log_repo import SqlUsageLogSink
from accessgate.services.container import build_services
from accessgate.utils.time_utils import Clock, utcnow

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[CodeStore] = None,
    sink: Optional[UsageLogSink] = None,
    clock: Clock = utcnow,
) -> FastAPI:
    """
    App-Factory. Ohne store/sink wird die SQLAlchemy-Variante aus DB_URL gebaut;
    Tests reichen eigene Implementierungen herein.
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    engine = None
    if store is None or sink is None:
        engine = create_db_engine(settings.DB_URL)
        session_factory = make_session_factory(engine)
        store = store or SqlCodeStore(session_factory, engine)
        sink = sink or SqlUsageLogSink(session_factory)

    # =========================================================================
    # Startup: Tabellen anlegen, Spalten (Capabilities) einmalig ermitteln
    # =========================================================================
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine is not None:
            init_models(engine)
            app.state.services.store.refresh_capabilities()
        yield
        if engine is not None:
            engine.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        version="1.0.0",
        docs_url="/docs",
        redoc_url=None,
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = build_services(store, sink, settings, clock=clock)

    # =========================================================================
    # Router registrieren
    # =========================================================================
    app.include_router(access_codes_routes.router)
    app.include_router(activity_logs_routes.router)

    @app.get("/health", include_in_schema=False)
    def health() -> dict:
        return {"status": "ok"}

    # =========================================================================
    # Store-Fehler: Nutzer sieht nur "Internal server error"
    # =========================================================================
    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error("Store error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return app


app = create_app()
