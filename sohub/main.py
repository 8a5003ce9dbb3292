import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy import text
import structlog

from .config import settings
from .db import Base, SessionLocal, engine
from .errors import register_error_handlers
from .logging import RequestIdMiddleware, setup_logging
from .auth.router import router as auth_router
from .routes.events import router as events_router
from .routes.notifications import router as notifications_router
from .routes.orders import router as orders_router
from .services.broadcaster import EventBroadcaster
from .services.change_feed import OrderChangeFeed
from .services.counter import ensure_counter


def create_app() -> FastAPI:
    setup_logging()
    log = structlog.get_logger("sohub.startup")
    app = FastAPI(title=settings.app_name)

    app.state.broadcaster = EventBroadcaster()
    app.state.change_feed = OrderChangeFeed(
        SessionLocal,
        app.state.broadcaster,
        interval=settings.change_feed_interval_seconds,
    )

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    register_error_handlers(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(orders_router)
    app.include_router(notifications_router)
    app.include_router(events_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/healthz", tags=["health"])
    def healthz():
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ok"}

    @app.on_event("startup")
    async def _startup():
        log.info("startup", environment=settings.environment)
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
        db = SessionLocal()
        try:
            ensure_counter(db, settings.order_counter_name)
        finally:
            db.close()
        if settings.enable_change_feed:
            app.state.change_feed.start()

    @app.on_event("shutdown")
    async def _shutdown():
        await app.state.change_feed.stop()

    return app


app = create_app()
