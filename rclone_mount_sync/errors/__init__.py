"""Module de gestion des erreurs."""

from rclone_mount_sync.errors.base import ErrorHandler, ErrorHandlerChain
from rclone_mount_sync.errors.context import (
    CleanupSequence,
    CleanupStepResult,
)
from rclone_mount_sync.errors.exceptions import (
    ApplicationError,
    ConfigPersistenceError,
    ConfigurationError,
    DuplicateEntryError,
    EntryNotFoundError,
    ReconciliationError,
    RollbackError,
    ServiceControlError,
    TransactionError,
    UnitGenerationError,
    ValidationError,
)
from rclone_mount_sync.errors.logger_handler import LoggerErrorHandler

__all__ = [
    "ApplicationError",
    "ConfigurationError",
    "ConfigPersistenceError",
    "ValidationError",
    "DuplicateEntryError",
    "EntryNotFoundError",
    "UnitGenerationError",
    "ServiceControlError",
    "ReconciliationError",
    "RollbackError",
    "TransactionError",
    "ErrorHandler",
    "ErrorHandlerChain",
    "LoggerErrorHandler",
    "CleanupSequence",
    "CleanupStepResult",
]
