"""
FastAPI application factory
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from offshore.api.v1 import budgets
from offshore.application.dispatch import OwnerLoop
from offshore.application.registry import ViewStateRegistry, controller_factory
from offshore.application.scheduler import RefreshScheduler
from offshore.config import Settings, get_settings
from offshore.domain.period import PeriodCalendar
from offshore.errors import FetchError, NotFoundError, ValidationError
from offshore.infrastructure.changes import ChangeBroadcaster
from offshore.infrastructure.db.gateway import SqlRecordQueryGateway
from offshore.infrastructure.db.session import check_db_connection, get_engine
from offshore.infrastructure.preferences import SqlPreferencesStore

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, engine: Engine | None = None) -> FastAPI:
    """
    Application factory

    Args:
        settings: defaults to the cached environment settings
        engine: defaults to the engine built from DATABASE_URL

    Returns:
        Configured FastAPI app. The view-state engine (owner loop, fetch
        executor, registry, refresh scheduler) lives on ``app.state`` for the
        lifetime of the app.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db_engine = engine or get_engine()
        session_factory = sessionmaker(bind=db_engine, autoflush=False, autocommit=False)

        broadcaster = ChangeBroadcaster()
        broadcaster.attach(session_factory)

        loop = OwnerLoop()
        loop.start()
        executor = ThreadPoolExecutor(max_workers=settings.FETCH_WORKERS, thread_name_prefix="offshore-fetch")
        refresher = RefreshScheduler(delay_seconds=settings.REFRESH_DEBOUNCE_SECONDS)
        refresher.start()

        preferences = SqlPreferencesStore(session_factory, settings)
        registry = ViewStateRegistry(controller_factory(
            gateway=SqlRecordQueryGateway(session_factory),
            loop=loop,
            executor=executor,
            preferences=preferences,
            schedule_refresh=refresher.schedule,
        ))
        registry.attach(broadcaster)

        app.state.settings = settings
        app.state.engine = db_engine
        app.state.session_factory = session_factory
        app.state.broadcaster = broadcaster
        app.state.registry = registry
        app.state.preferences = preferences
        app.state.calendar = PeriodCalendar(first_weekday=settings.WEEK_STARTS_ON)
        logger.info("View-state engine started (%d fetch workers)", settings.FETCH_WORKERS)
        try:
            yield
        finally:
            registry.detach()
            registry.clear()
            refresher.shutdown()
            executor.shutdown(wait=False, cancel_futures=True)
            loop.stop()
            broadcaster.detach()
            logger.info("View-state engine stopped")

    app = FastAPI(
        title="Offshore Budgeting",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(FetchError)
    async def fetch_error_handler(request: Request, exc: FetchError):
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    # Routers
    app.include_router(budgets.router)

    # Health checks
    @app.get("/health", response_class=PlainTextResponse, tags=["system"])
    def health():
        """Health check endpoint"""
        return "ok"

    @app.get("/ready", response_class=PlainTextResponse, tags=["system"])
    def ready(request: Request):
        """Readiness check endpoint (database answers)"""
        check_db_connection(request.app.state.engine)
        return "ok"

    return app


def serve(host: str = "127.0.0.1", port: int = 8000) -> None:
    import uvicorn

    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    uvicorn.run(create_app(settings), host=host, port=port)


if __name__ == "__main__":
    serve()
