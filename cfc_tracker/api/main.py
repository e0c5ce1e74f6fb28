"""
FastAPI application for the CFC grade and competency tracker

Run with:
    uvicorn cfc_tracker.api.main:app --reload

The storage handle is created in the lifespan from DATABASE_URL unless one
is passed to create_app (tests pass their own).
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .. import __version__
from ..core.config import Settings
from ..core.logging_config import configure_logging
from ..database.config import Database, DatabaseConfig
from .deps import DatabaseSessionLookup
from .exceptions import register_exception_handlers
from .routers import competences, export, modules, public

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_database = getattr(app.state, "database", None) is None
        if owns_database:
            app.state.database = Database(DatabaseConfig.from_env())
            app.state.database.create_all()
        logger.info("CFC tracker API started", extra={"dialect": app.state.database.dialect_name})

        yield

        if owns_database:
            app.state.database.dispose()
            app.state.database = None
        logger.info("CFC tracker API stopped")

    app = FastAPI(
        title="CFC Tracker API",
        description="Notes per module and self-assessed competence levels for CFC apprentices",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.session_lookup = DatabaseSessionLookup(settings.session_cookie_name)

    register_exception_handlers(app)

    app.include_router(modules.router, prefix=API_PREFIX)
    app.include_router(competences.router, prefix=API_PREFIX)
    app.include_router(export.router, prefix=API_PREFIX)
    app.include_router(public.router)

    return app


app = create_app()
