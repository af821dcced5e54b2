"""Exception classes for the key store.

Each exception carries:
  error_code   : machine-readable code for callers that branch on failure kind
  message      : human-readable description
  details      : structured context (operation, set_id, kid); never key material
  recovery_hint: actionable guidance for the operator reading the error
"""

from typing import Any, Dict, Optional


class KeyStoreError(Exception):
    """Base exception for key store errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "KEYSTORE_ERROR"
        self.details = details or {}
        self.recovery_hint = recovery_hint or (
            "An unexpected key store error occurred. "
            "Inspect the chained cause for the underlying failure."
        )

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{k}={v}" for k, v in self.details.items() if v is not None)
        return f"{self.message} ({context})" if context else self.message


class EncodingError(KeyStoreError):
    """Raised when a key cannot be serialized or deserialized."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
    ):
        super().__init__(
            message,
            error_code="ENCODING_ERROR",
            details=details,
            recovery_hint=recovery_hint or (
                "The key payload does not match the expected key format. "
                "Verify the key object, or treat the stored row as corrupt."
            ),
        )


class CryptoError(KeyStoreError):
    """Raised when encryption or decryption of a key payload fails."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
    ):
        super().__init__(
            message,
            error_code="CRYPTO_ERROR",
            details=details,
            recovery_hint=recovery_hint or (
                "The ciphertext could not be processed. Check that SYSTEM_SECRET "
                "matches the secret the keys were written with."
            ),
        )


class StorageError(KeyStoreError):
    """Raised for connection, driver and constraint failures."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
    ):
        super().__init__(
            message,
            error_code=error_code or "STORAGE_ERROR",
            details=details,
            recovery_hint=recovery_hint or (
                "The database rejected the operation or is unreachable. "
                "Check DATABASE_URL and that the schema has been migrated."
            ),
        )


class ConflictError(StorageError):
    """Raised when a write violates a uniqueness constraint."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
    ):
        super().__init__(
            message,
            error_code="CONFLICT",
            details=details,
            recovery_hint=recovery_hint or (
                "A key with this set and kid already exists. "
                "Delete it first or use a different kid."
            ),
        )


class RollbackError(StorageError):
    """Raised when a failed transaction could not be rolled back.

    ``__cause__`` is the error that triggered the rollback; ``rollback_error``
    is the failure raised by the rollback itself. Storage state is suspect.
    """

    def __init__(
        self,
        message: str,
        rollback_error: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            error_code="ROLLBACK_FAILED",
            details=details,
            recovery_hint=(
                "The write failed and the rollback also failed. Partial rows may "
                "exist; inspect the set before retrying."
            ),
        )
        self.rollback_error = rollback_error


class NotFoundError(KeyStoreError):
    """Raised when no row matches. Absence, not failure."""

    def __init__(
        self,
        message: str = "Unable to locate the resource",
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
    ):
        super().__init__(
            message,
            error_code="NOT_FOUND",
            details=details,
            recovery_hint=recovery_hint or "No key matches the requested set or kid.",
        )


class MigrationError(KeyStoreError):
    """Raised when a schema migration step fails."""

    def __init__(
        self,
        message: str,
        applied: int = 0,
        step_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            error_code="MIGRATION_ERROR",
            details={"step_id": step_id, "applied": applied, **(details or {})},
            recovery_hint=(
                f"Migration step '{step_id}' failed after {applied} step(s) were applied. "
                "Fix the cause and re-run; applied steps are not repeated."
            ),
        )
        self.applied = applied
        self.step_id = step_id


class ConfigurationError(KeyStoreError):
    """Raised for invalid key store configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            error_code="CONFIGURATION_ERROR",
            details=details,
            recovery_hint=(
                f"The key store is misconfigured (key: '{config_key}'). "
                "Correct the environment or .env file and restart."
            ),
        )
        self.config_key = config_key
