"""Encrypted, transactional persistence for JSON Web Key sets.

Every key is serialized by a ``KeyCodec``, sealed as one opaque unit by a
``Cipher`` and stored as text in ``hydra_jwk``. Reads reverse the process.
Decrypted payloads live only for the duration of the call that produced them.

The manager borrows its session factory from the application and never
disposes of the engine behind it.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from jwkstore.core.cipher import Cipher, build_cipher
from jwkstore.core.exceptions import CryptoError, EncodingError, KeyStoreError, NotFoundError, RollbackError
from jwkstore.db.errors import handle_error
from jwkstore.db.migrations import MigrationRegistry
from jwkstore.db.models import JWKRecord
from jwkstore.models.jwk import JSONWebKeyCodec, JSONWebKeySet, KeyCodec

logger = logging.getLogger(__name__)


class SQLManager:
    """Create, read and delete key sets in a relational database."""

    def __init__(self, session_factory: sessionmaker, cipher: Cipher = None, codec: KeyCodec = None):
        self.session_factory = session_factory
        self.cipher = cipher or build_cipher()
        self.codec = codec or JSONWebKeyCodec()

    def create_schemas(self, registry: MigrationRegistry) -> int:
        """Apply pending schema migrations; returns the number applied."""
        return registry.apply_schema()

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        """Yield a session whose work is committed on exit or rolled back on any error."""
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except BaseException as exc:
            try:
                db.rollback()
            except Exception as rollback_exc:
                logger.error("Rollback failed after %s", exc.__class__.__name__)
                error = RollbackError(f"Rollback failed: {rollback_exc}", rollback_error=rollback_exc)
                raise error from exc
            raise
        finally:
            db.close()

    def _seal(self, set_id: str, key: Any) -> Dict[str, Any]:
        """Serialize and encrypt ``key`` into the column values of one row."""
        try:
            kid = self.codec.key_id(key)
            payload = self.codec.dumps(key)
        except Exception as exc:
            raise EncodingError(
                "Unable to serialize key", details={"operation": "encode", "set_id": set_id}
            ) from exc

        try:
            keydata = self.cipher.encrypt(payload)
        except Exception as exc:
            raise CryptoError(
                "Unable to encrypt key", details={"operation": "encrypt", "set_id": set_id, "kid": kid}
            ) from exc

        return {"sid": set_id, "kid": kid, "version": 0, "keydata": keydata}

    def _open(self, record: JWKRecord) -> Any:
        """Decrypt and deserialize a stored row."""
        details = {"set_id": record.sid, "kid": record.kid}
        try:
            payload = self.cipher.decrypt(record.keydata)
        except Exception as exc:
            raise CryptoError("Unable to decrypt key", details={"operation": "decrypt", **details}) from exc

        try:
            return self.codec.loads(payload)
        except Exception as exc:
            raise EncodingError("Unable to deserialize key", details={"operation": "decode", **details}) from exc

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    def add_key(self, set_id: str, key: Any) -> None:
        """Encrypt and insert a single key with ``version=0``."""
        row = self._seal(set_id, key)
        db = self.session_factory()
        try:
            db.execute(insert(JWKRecord).values(**row))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise handle_error(exc, operation="add_key", set_id=set_id, kid=row["kid"]) from exc
        finally:
            db.close()
        logger.debug("Added key", extra={"set_id": set_id, "kid": row["kid"]})

    def add_key_set(self, set_id: str, keys: Iterable[Any]) -> None:
        """Insert every key in ``keys`` or none of them."""
        if isinstance(keys, JSONWebKeySet):
            keys = keys.keys

        count = 0
        try:
            with self._transaction() as db:
                for key in keys:
                    db.execute(insert(JWKRecord).values(**self._seal(set_id, key)))
                    count += 1
        except KeyStoreError:
            raise
        except SQLAlchemyError as exc:
            raise handle_error(exc, operation="add_key_set", set_id=set_id) from exc
        logger.debug("Added key set", extra={"set_id": set_id, "key_count": count})

    def get_key(self, set_id: str, kid: str) -> Any:
        """Return the most recent key stored under ``(set_id, kid)``."""
        db = self.session_factory()
        try:
            record = db.execute(
                select(JWKRecord)
                .where(JWKRecord.sid == set_id, JWKRecord.kid == kid)
                .order_by(JWKRecord.created_at.desc())
                .limit(1)
            ).scalar_one()
        except SQLAlchemyError as exc:
            error = handle_error(exc, operation="get_key", set_id=set_id, kid=kid)
            if isinstance(error, NotFoundError):
                logger.warning("Key not found", extra={"set_id": set_id, "kid": kid})
            raise error from exc
        finally:
            db.close()

        return self.codec.bundle([self._open(record)])

    def get_key_set(self, set_id: str) -> Any:
        """Return every key in ``set_id``, most recent first."""
        db = self.session_factory()
        try:
            records: List[JWKRecord] = list(
                db.execute(
                    select(JWKRecord)
                    .where(JWKRecord.sid == set_id)
                    .order_by(JWKRecord.created_at.desc())
                ).scalars()
            )
        except SQLAlchemyError as exc:
            raise handle_error(exc, operation="get_key_set", set_id=set_id) from exc
        finally:
            db.close()

        if not records:
            logger.warning("Key set not found", extra={"set_id": set_id})
            raise NotFoundError(details={"operation": "get_key_set", "set_id": set_id})

        keys = self.codec.bundle([self._open(record) for record in records])
        if not len(keys):
            raise NotFoundError(details={"operation": "get_key_set", "set_id": set_id})
        return keys

    def delete_key(self, set_id: str, kid: str) -> None:
        """Delete every row for ``(set_id, kid)``. Deleting nothing is not an error."""
        db = self.session_factory()
        try:
            result = db.execute(delete(JWKRecord).where(JWKRecord.sid == set_id, JWKRecord.kid == kid))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise handle_error(exc, operation="delete_key", set_id=set_id, kid=kid) from exc
        finally:
            db.close()
        logger.debug("Deleted key", extra={"set_id": set_id, "kid": kid, "rows": result.rowcount})

    def delete_key_set(self, set_id: str) -> None:
        """Delete every row for ``set_id``. Deleting nothing is not an error."""
        db = self.session_factory()
        try:
            result = db.execute(delete(JWKRecord).where(JWKRecord.sid == set_id))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise handle_error(exc, operation="delete_key_set", set_id=set_id) from exc
        finally:
            db.close()
        logger.debug("Deleted key set", extra={"set_id": set_id, "rows": result.rowcount})
