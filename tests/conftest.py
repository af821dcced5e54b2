"""Pytest configuration and shared fixtures.

Engine-parametrized fixtures always run against in-memory SQLite and also
against PostgreSQL / MySQL when TEST_POSTGRES_URL / TEST_MYSQL_URL are set.
See README.md for starting both servers; unset engines show up as skips
under `pytest -rs`.
"""

import os
from typing import Generator

import pytest
import sqlalchemy as sa
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from jwkstore.core.cipher import AEADCipher
from jwkstore.core.manager import SQLManager
from jwkstore.db.migrations import MigrationRegistry
from jwkstore.models.jwk import JSONWebKey
from tests.fixtures.mock_cipher import MockCipher

TEST_MIGRATION_TABLE = "hydra_jwk_migration_test"
TEST_SECRET = "test-system-secret-0123456789abcdef"

ENGINE_URLS = {
    "sqlite": "sqlite:///:memory:",
    "postgres": os.getenv("TEST_POSTGRES_URL", ""),
    "mysql": os.getenv("TEST_MYSQL_URL", ""),
}


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url)


def make_key(kid: str, **extra) -> JSONWebKey:
    """Build a small symmetric JWK with the given kid."""
    return JSONWebKey(kid=kid, kty="oct", use="sig", alg="HS256", k=f"secret-for-{kid}", **extra)


def _teardown_schema(engine: Engine, registry: MigrationRegistry) -> None:
    registry.rollback()
    with engine.begin() as conn:
        conn.execute(sa.text(f"DROP TABLE IF EXISTS {registry.table_name}"))


@pytest.fixture
def sqlite_engine() -> Generator[Engine, None, None]:
    engine = make_engine(ENGINE_URLS["sqlite"])
    yield engine
    engine.dispose()


@pytest.fixture(params=sorted(ENGINE_URLS))
def any_engine(request) -> Generator[Engine, None, None]:
    """An engine per configured database; unconfigured engines are skipped."""
    url = ENGINE_URLS[request.param]
    if not url:
        pytest.skip(f"TEST_{request.param.upper()}_URL is not set (see README.md)")
    engine = make_engine(url)
    yield engine
    engine.dispose()


@pytest.fixture
def registry(sqlite_engine: Engine) -> MigrationRegistry:
    return MigrationRegistry(sqlite_engine, table_name=TEST_MIGRATION_TABLE)


@pytest.fixture
def migrated_engine(sqlite_engine: Engine) -> Generator[Engine, None, None]:
    """In-memory SQLite engine with every migration applied."""
    registry = MigrationRegistry(sqlite_engine, table_name=TEST_MIGRATION_TABLE)
    registry.apply_schema()
    yield sqlite_engine
    _teardown_schema(sqlite_engine, registry)


@pytest.fixture
def migrated_any_engine(any_engine: Engine) -> Generator[Engine, None, None]:
    registry = MigrationRegistry(any_engine, table_name=TEST_MIGRATION_TABLE)
    registry.apply_schema()
    yield any_engine
    _teardown_schema(any_engine, registry)


@pytest.fixture
def session_factory(migrated_engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=migrated_engine)


@pytest.fixture
def cipher() -> AEADCipher:
    return AEADCipher.from_secret(TEST_SECRET)


@pytest.fixture
def manager(session_factory: sessionmaker, cipher: AEADCipher) -> SQLManager:
    return SQLManager(session_factory, cipher)


@pytest.fixture
def mock_cipher() -> MockCipher:
    return MockCipher()
