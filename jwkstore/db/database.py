"""Database connection and session management."""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from jwkstore.core.config import settings


def build_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine for ``url``; SQLite connections may cross threads."""
    return create_engine(
        url,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
        echo=echo,
    )


# Create engine
engine = build_engine(settings.database_url, echo=settings.debug)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def init_db(bind: Engine = None) -> int:
    """Bring the key table up to the current schema.

    Runs the migration registry rather than ``create_all`` so the table always
    has the migrated shape. Returns the number of steps applied.
    """
    from jwkstore.db.migrations import MigrationRegistry

    registry = MigrationRegistry(bind or engine, table_name=settings.migration_table)
    return registry.apply_schema()
