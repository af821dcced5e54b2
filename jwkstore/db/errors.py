"""Normalize driver-level failures into key store errors.

SQLite, PostgreSQL and MySQL drivers raise different DBAPI exceptions for the
same condition; SQLAlchemy wraps them in a common hierarchy, which is mapped
here onto ``ConflictError`` / ``NotFoundError`` / ``StorageError``.
"""

from typing import Any

from sqlalchemy.exc import IntegrityError, NoResultFound, SQLAlchemyError

from jwkstore.core.exceptions import ConflictError, KeyStoreError, NotFoundError, StorageError


def handle_error(exc: BaseException, **details: Any) -> KeyStoreError:
    """Return the key store error for ``exc``.

    The caller raises the result ``from exc`` so the driver error stays
    chained.
    """
    if isinstance(exc, IntegrityError):
        return ConflictError(
            "Unable to insert or update resource because a resource with that value exists already",
            details=details,
        )
    if isinstance(exc, NoResultFound):
        return NotFoundError(details=details)
    if isinstance(exc, SQLAlchemyError):
        return StorageError(f"Database operation failed: {exc.__class__.__name__}", details=details)
    return StorageError(f"Unexpected storage failure: {exc}", details=details)
