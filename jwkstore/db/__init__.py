"""Database models, migrations and connection management."""

from jwkstore.db.database import Base, SessionLocal, build_engine, engine, init_db
from jwkstore.db.migrations import MIGRATIONS, MigrationRegistry, MigrationStep
from jwkstore.db.models import JWKRecord

__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "engine",
    "init_db",
    "MIGRATIONS",
    "MigrationRegistry",
    "MigrationStep",
    "JWKRecord",
]
