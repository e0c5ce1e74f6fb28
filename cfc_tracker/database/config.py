"""
Database configuration and the storage handle

The storage handle (`Database`) is created explicitly by the application
(see api/main.py lifespan) or by the scripts, and passed to whoever needs it.
There is no engine created at import time.
"""
import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .base import Base

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./cfc_tracker.db"


@dataclass
class DatabaseConfig:
    """Connection settings, usually built from environment variables"""

    url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        return cls(
            url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            echo=os.getenv("DATABASE_ECHO", "false").lower() == "true",
            pool_size=int(os.getenv("DATABASE_POOL_SIZE", "5")),
            max_overflow=int(os.getenv("DATABASE_MAX_OVERFLOW", "10")),
        )

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Storage handle: owns the engine and the session factory.

    Usage:
        db = Database(DatabaseConfig.from_env())
        db.create_all()
        with db.session() as session:
            ...
        db.dispose()
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine = self._create_engine(config)
        self.session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        logger.info(
            "Database handle initialized",
            extra={"dialect": self.engine.dialect.name, "echo": config.echo},
        )

    @staticmethod
    def _create_engine(config: DatabaseConfig) -> Engine:
        if config.is_sqlite:
            engine = create_engine(
                config.url,
                echo=config.echo,
                connect_args={"check_same_thread": False},
            )
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
            return engine

        return create_engine(
            config.url,
            echo=config.echo,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_pre_ping=True,
        )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def create_all(self) -> None:
        """Create all tables (idempotent)"""
        # Import models so they register on Base.metadata
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def new_session(self) -> Session:
        return self.session_factory()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session scope that always closes; commits are left to the repositories"""
        session = self.session_factory()
        try:
            yield session
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database handle disposed")


def get_db(request: Request) -> Iterator[Session]:
    """FastAPI dependency: one session per request from the app's storage handle"""
    database: Database = request.app.state.database
    session = database.new_session()
    try:
        yield session
    finally:
        session.close()
