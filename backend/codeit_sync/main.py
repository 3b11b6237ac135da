import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Mapping, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from .adapters import PlatformAdapter, build_adapters, build_http_client
from .cache import StatsCache, stats_cache
from .config import Settings, get_settings
from .db.session import get_engine, init_db
from .errors import SyncError
from .integration_routes import router as integration_router
from .integration_routes import sync_error_handler
from .link_store import LinkStore, link_store
from .logging_config import configure_logging
from .platform_models import Platform
from .scheduler import IntervalSweepScheduler, SweepScheduler
from .sync_engine import SyncOrchestrator
from .verification import VerificationManager


configure_logging()
logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    adapters: Optional[Mapping[Platform, PlatformAdapter]] = None,
    store: Optional[LinkStore] = None,
    cache: Optional[StatsCache] = None,
    scheduler: Optional[SweepScheduler] = None,
) -> FastAPI:
    """Build the service; collaborators default to the process-wide ones."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        resolved = settings or get_settings()
        resolved_store = store or link_store
        resolved_cache = cache or stats_cache
        if store is None:
            init_db()

        client = None
        resolved_adapters = adapters
        if resolved_adapters is None:
            client = build_http_client(resolved)
            resolved_adapters = build_adapters(client, resolved)

        app.state.settings = resolved
        app.state.verification = VerificationManager(
            resolved_adapters,
            store=resolved_store,
            cache=resolved_cache,
            settings=resolved,
        )
        app.state.orchestrator = SyncOrchestrator(
            resolved_adapters,
            store=resolved_store,
            cache=resolved_cache,
            settings=resolved,
        )

        sweeper = scheduler
        if sweeper is None and resolved.sweep_enabled:
            sweeper = IntervalSweepScheduler.from_settings(resolved)
        app.state.scheduler = sweeper
        if sweeper is not None:
            sweeper.start(app.state.orchestrator.sweep)

        logger.info(
            "Sync engine ready: platforms=%s demo_mode=%s sweep=%s",
            ",".join(platform.value for platform in resolved_adapters),
            resolved.demo_mode_enabled,
            sweeper is not None,
        )
        try:
            yield
        finally:
            if sweeper is not None:
                await sweeper.stop()
            if client is not None:
                await client.aclose()

    application = FastAPI(title="CodeIt Platform Sync", version="0.1.0", lifespan=lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(SyncError, sync_error_handler)  # type: ignore[arg-type]
    application.include_router(integration_router)

    @application.get("/healthz")
    def health(request: Request) -> Dict[str, Any]:
        return {
            "status": "ok",
            "demo_mode": request.app.state.settings.demo_mode_enabled,
            "sweep_scheduled": request.app.state.scheduler is not None,
        }

    @application.get("/healthz/database")
    def database_health(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
        try:
            with get_engine().connect() as connection:
                connection.execute(text("SELECT 1"))
        except Exception as exc:  # noqa: BLE001
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
        backend = (settings.database_url or "").split(":", 1)[0]
        return {"status": "ok", "backend": backend}

    return application


app = create_app()
