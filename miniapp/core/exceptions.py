"""
Custom exception classes
Every failure the core can raise, each with a stable error code

Classification for users:
- ValidationError / BoundsError: nothing was applied
- PersistenceError: the local edit stays, its persistence failed
- NotFoundError / ConflictError: the referenced resource is missing or taken
"""

from typing import Any, Dict, Optional


class BaseApplicationError(Exception):
    """Base class of all application errors"""

    default_code = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.message)


class DatabaseError(BaseApplicationError):
    """Local cache database failure"""
    default_code = "DATABASE_ERROR"


class ValidationError(BaseApplicationError):
    """Malformed snapshot, missing fields, duplicate ids, non-positive price"""
    default_code = "VALIDATION_ERROR"


class BoundsError(BaseApplicationError):
    """Cart line count or total value above the configured maxima"""
    default_code = "BOUNDS_EXCEEDED"


class NotFoundError(BaseApplicationError):
    """Referenced product or category is absent from the snapshot"""
    default_code = "RESOURCE_NOT_FOUND"


class ConfigNotFoundError(NotFoundError):
    """The persistence endpoint has no stored snapshot"""
    default_code = "CONFIG_NOT_FOUND"


class ConflictError(BaseApplicationError):
    """Duplicate identity or id"""
    default_code = "DUPLICATE_RESOURCE"


class PermissionDeniedError(BaseApplicationError):
    """Actor is not on the operator whitelist"""
    default_code = "PERMISSION_DENIED"


class OrderStateError(BaseApplicationError):
    """Checkout step called from the wrong state"""
    default_code = "ORDER_STATE_INVALID"


class PersistenceError(BaseApplicationError):
    """Read or write of the snapshot failed"""
    default_code = "PERSISTENCE_ERROR"


class SnapshotUnavailableError(PersistenceError):
    """Neither the remote endpoint nor the cache yielded a valid snapshot"""
    default_code = "SNAPSHOT_UNAVAILABLE"


class RemoteConfigError(PersistenceError):
    """Remote endpoint unreachable, timed out or answered badly"""
    default_code = "REMOTE_CONFIG_ERROR"


class ConfigNotPersistedError(PersistenceError):
    """Endpoint storage is read-only, the write was not made durable"""
    default_code = "CONFIG_NOT_PERSISTED"
