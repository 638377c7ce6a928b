"""Module de gestion des unités systemd utilisateur.

Ce module fournit :

- UnitNamer : noms d'unités déterministes (schéma actuel et historique)
- UnitGenerator : rendu et écriture des fichiers .service/.timer
- ServiceController / SystemctlServiceController : verbes systemctl --user
- Reconciler : détection des unités orphelines et manquantes
- OrphanAdopter : adoption ou suppression des orphelins

Exemple d'utilisation:
    from rclone_mount_sync.logging import FileLogger
    from rclone_mount_sync.systemd import (
        SystemctlServiceController,
        UnitGenerator,
    )

    logger = FileLogger("/tmp/rclone-mount-sync.log")
    generator = UnitGenerator(logger)
    controller = SystemctlServiceController(logger)

    generator.write_mount_unit(mount)
    controller.daemon_reload()
    controller.start(generator.namer.service_unit(mount.id, "mount"))
"""

from rclone_mount_sync.systemd.adoption import OrphanAdopter
from rclone_mount_sync.systemd.base import (
    DetailedUnitStatus,
    ServiceController,
    UnitStatus,
)
from rclone_mount_sync.systemd.executor import (
    SystemctlServiceController,
    parse_systemd_timestamp,
)
from rclone_mount_sync.systemd.generator import (
    UnitGenerator,
    default_unit_dir,
)
from rclone_mount_sync.systemd.naming import (
    DEFAULT_STRATEGIES,
    IdNamingStrategy,
    LegacyNameNamingStrategy,
    NamingStrategy,
    ParsedUnitName,
    UnitNamer,
    sanitize_name,
)
from rclone_mount_sync.systemd.reconcile import (
    MatchedUnit,
    MissingUnit,
    OrphanedUnit,
    ReconciliationResult,
    Reconciler,
)
from rclone_mount_sync.systemd.units import ServiceConfig, TimerConfig
from rclone_mount_sync.systemd.validators import validate_unit_name

__all__ = [
    "sanitize_name",
    "ParsedUnitName",
    "NamingStrategy",
    "IdNamingStrategy",
    "LegacyNameNamingStrategy",
    "DEFAULT_STRATEGIES",
    "UnitNamer",
    "ServiceConfig",
    "TimerConfig",
    "UnitGenerator",
    "default_unit_dir",
    "ServiceController",
    "UnitStatus",
    "DetailedUnitStatus",
    "SystemctlServiceController",
    "parse_systemd_timestamp",
    "Reconciler",
    "ReconciliationResult",
    "OrphanedUnit",
    "MatchedUnit",
    "MissingUnit",
    "OrphanAdopter",
    "validate_unit_name",
]
