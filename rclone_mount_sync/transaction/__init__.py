"""Module de gestion transactionnelle des entrées."""

from rclone_mount_sync.models.transaction import (
    OperationKind,
    TransactionSnapshot,
    TransactionStep,
)
from rclone_mount_sync.transaction.manager import (
    RollbackReport,
    TransactionManager,
)

__all__ = [
    "OperationKind",
    "TransactionSnapshot",
    "TransactionStep",
    "RollbackReport",
    "TransactionManager",
]
