from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from starlette.middleware.sessions import SessionMiddleware

from helpdesk.api.routes import activities, auth, ping, stats, tickets, users
from helpdesk.core.config import Settings, get_settings
from helpdesk.core.errors import register_error_handlers
from helpdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from helpdesk.seed import seed_demo_data
from helpdesk.tickets.repository import InMemoryStore
from helpdesk.tickets.service import TicketService
from helpdesk.tickets.sql import SqlStore, to_async_dsn

logger = logging.getLogger(__name__)


async def _build_sql_service(settings: Settings) -> tuple[TicketService, AsyncEngine]:
    engine = create_async_engine(to_async_dsn(settings.database_url), future=True)
    try:
        store = SqlStore(async_sessionmaker(engine, expire_on_commit=False), engine=engine)
        await store.ensure_schema()
    except Exception:
        await engine.dispose()
        raise
    return TicketService(store), engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    app.state.logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    engine: AsyncEngine | None = None
    if settings.storage_backend == "sql":
        try:
            app.state.ticket_service, engine = await _build_sql_service(settings)
        except Exception:  # pragma: no cover - database unavailable at startup
            logger.exception("Could not initialise the SQL store; ticket routes will answer 503")
            app.state.ticket_service = None

    service: TicketService | None = app.state.ticket_service
    if service is not None and settings.seed_demo_data:
        await seed_demo_data(service.store)
    try:
        yield
    finally:
        if engine is not None:
            await engine.dispose()
        shutdown_tracer(tracer_provider)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    # The SQL store needs an event loop to set up, so it is built in the lifespan.
    app.state.ticket_service = TicketService(InMemoryStore()) if settings.storage_backend == "memory" else None

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=settings.session_cookie,
        max_age=settings.session_max_age,
        same_site="lax",
    )
    register_error_handlers(app)
    for module in (ping, auth, users, tickets, activities, stats):
        app.include_router(module.router, prefix="/api")
    return app


app = create_app()
