"""
rclone-mount-sync - Montages et synchronisations rclone pilotés par systemd.

Modules disponibles:
- models: Entrées de configuration (MountEntry, SyncEntry)
- config: Chargement et enregistrement de la configuration
- logging: Gestion des logs (Logger, FileLogger)
- errors: Exceptions et gestion des erreurs
- systemd: Nommage, génération, pilotage et réconciliation des unités
- transaction: Opérations create/update/delete avec rollback
"""

__version__ = "1.0.0"

from rclone_mount_sync.app import Application, build_application
from rclone_mount_sync.config import JsonConfigStore
from rclone_mount_sync.logging import FileLogger, Logger
from rclone_mount_sync.models import (
    MountEntry,
    MountOptions,
    ScheduleConfig,
    SyncEntry,
    SyncOptions,
    generate_id,
)
from rclone_mount_sync.systemd import (
    OrphanAdopter,
    Reconciler,
    SystemctlServiceController,
    UnitGenerator,
    UnitNamer,
)
from rclone_mount_sync.transaction import TransactionManager

__all__ = [
    "__version__",
    "Application",
    "build_application",
    "JsonConfigStore",
    "Logger",
    "FileLogger",
    "MountEntry",
    "MountOptions",
    "ScheduleConfig",
    "SyncEntry",
    "SyncOptions",
    "generate_id",
    "UnitNamer",
    "UnitGenerator",
    "SystemctlServiceController",
    "Reconciler",
    "OrphanAdopter",
    "TransactionManager",
]
