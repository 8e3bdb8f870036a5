"""
Database setup and connection management.

This module handles:
- SQLAlchemy engine creation
- Session management
- Table creation for the auth and legal models
"""

import logging
import os
from typing import Generator

import dotenv
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

dotenv.load_dotenv()

logger = logging.getLogger(__name__)

Base = declarative_base()


class DatabaseConfig:
    """Configuration for database connections"""

    def __init__(self, url: str = None):
        self.url = url or os.getenv("DATABASE_URL", "sqlite:///./litigation.db")

        # Connection pooling (ignored for SQLite)
        self.pool_size = int(os.getenv("DB_POOL_SIZE", "10"))
        self.max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "20"))
        self.pool_recycle = int(os.getenv("DB_POOL_RECYCLE", "1500"))

        # Echo SQL for debugging (set False in production)
        self.echo = os.getenv("DB_ECHO", "False").lower() == "true"

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class DatabaseManager:
    """
    Owns the engine and session factory for one application instance.

    Usage:
        db_manager = DatabaseManager(DatabaseConfig())
        db_manager.create_tables()
        with db_manager.session() as session:
            ...
    """

    def __init__(self, config: DatabaseConfig = None):
        self.config = config or DatabaseConfig()
        self.engine = self._create_engine()
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
            expire_on_commit=False,
        )
        logger.info(f"Database engine created ({self.engine.dialect.name})")

    def _create_engine(self):
        config = self.config
        if config.is_sqlite:
            kwargs = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in config.url or config.url == "sqlite://":
                # One shared connection, otherwise each session sees an empty database
                kwargs["poolclass"] = StaticPool
            return create_engine(config.url, echo=config.echo, **kwargs)

        return create_engine(
            config.url,
            echo=config.echo,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_recycle=config.pool_recycle,
            pool_pre_ping=True,
        )

    def create_tables(self) -> None:
        """Create all tables if they don't exist (idempotent)"""
        # Import models so they register on Base.metadata
        import auth.models  # noqa: F401
        import legal.models  # noqa: F401

        existing = set(inspect(self.engine).get_table_names())
        Base.metadata.create_all(bind=self.engine)
        created = sorted(set(Base.metadata.tables) - existing)
        if created:
            logger.info(f"Created tables: {created}")

    def session(self) -> Session:
        return self.SessionLocal()

    def get_session(self) -> Generator[Session, None, None]:
        """FastAPI dependency style generator"""
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()
