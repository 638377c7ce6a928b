"""Modèles de données des entrées de configuration."""

from rclone_mount_sync.models.entries import (
    Entry,
    MountEntry,
    MountOptions,
    ScheduleConfig,
    ScheduleType,
    SyncDirection,
    SyncEntry,
    SyncOptions,
    UnitKind,
    generate_id,
)
from rclone_mount_sync.models.transaction import (
    OperationKind,
    TransactionSnapshot,
    TransactionStep,
)

__all__ = [
    "Entry",
    "MountEntry",
    "MountOptions",
    "ScheduleConfig",
    "ScheduleType",
    "SyncDirection",
    "SyncEntry",
    "SyncOptions",
    "UnitKind",
    "generate_id",
    "OperationKind",
    "TransactionSnapshot",
    "TransactionStep",
]
