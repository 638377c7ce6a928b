"""Assemblage des composants de l'application."""

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from rclone_mount_sync.config.store import ConfigStore, JsonConfigStore
from rclone_mount_sync.errors import (
    ErrorHandler,
    ErrorHandlerChain,
    LoggerErrorHandler,
)
from rclone_mount_sync.logging import FileLogger, Logger, default_log_file
from rclone_mount_sync.systemd.adoption import OrphanAdopter
from rclone_mount_sync.systemd.base import ServiceController
from rclone_mount_sync.systemd.executor import SystemctlServiceController
from rclone_mount_sync.systemd.generator import UnitGenerator
from rclone_mount_sync.systemd.reconcile import (
    ReconciliationResult,
    Reconciler,
)
from rclone_mount_sync.transaction.manager import TransactionManager


@dataclass
class Application:
    """Composants reliés à un même stockage de configuration.

    Attributes:
        store: Stockage des entrées.
        logger: Logger partagé.
        generator: Générateur des fichiers unit.
        controller: Pilotage de systemd.
        error_handler: Destinataires des erreurs de transaction.
        transactions: Opérations create/update/delete.
        reconciler: Détection des dérives.
        adopter: Adoption et suppression des orphelins.
    """

    store: ConfigStore
    logger: Logger
    generator: UnitGenerator
    controller: ServiceController
    error_handler: ErrorHandlerChain
    transactions: TransactionManager
    reconciler: Reconciler
    adopter: OrphanAdopter

    def reconcile(self) -> ReconciliationResult:
        """Compare le répertoire des unités à la configuration courante."""
        return self.reconciler.reconcile(
            self.generator.unit_dir,
            self.store.mounts,
            self.store.sync_jobs,
        )


def build_application(
    config_path: str | Path | None = None,
    logger: Logger | None = None,
    controller: ServiceController | None = None,
    console_output: bool = False,
    error_handlers: Sequence[ErrorHandler] = ()
) -> Application:
    """
    Charge la configuration et construit les composants.

    Args:
        config_path: Fichier de configuration (défaut: XDG)
        logger: Logger à utiliser (défaut: FileLogger selon les réglages)
        controller: Pilotage de systemd (défaut: systemctl --user)
        console_output: Dupliquer les logs sur la console
        error_handlers: Handlers ajoutés après le log des erreurs de
            transaction (ex: notification de l'interface)

    Returns:
        L'application assemblée

    Raises:
        ConfigurationError: Si la configuration est invalide.
    """
    store = JsonConfigStore.load(config_path)
    settings = store.settings

    if logger is None:
        logger = FileLogger(
            settings.logging.file or default_log_file(),
            config={
                "level": settings.logging.level,
                "format": settings.logging.format,
            },
            console_output=console_output,
        )

    generator = UnitGenerator(
        logger,
        unit_dir=settings.unit_dir or None,
        rclone_path=settings.rclone_binary_path or None,
        rclone_config_path=settings.rclone_config_path or None,
    )
    if controller is None:
        controller = SystemctlServiceController(
            logger, timeout=settings.systemctl_timeout
        )

    error_handler = ErrorHandlerChain()
    error_handler.add_handler(LoggerErrorHandler(logger))
    for handler in error_handlers:
        error_handler.add_handler(handler)

    logger.log_info(f"Configuration chargée depuis {store.path}")
    return Application(
        store=store,
        logger=logger,
        generator=generator,
        controller=controller,
        error_handler=error_handler,
        transactions=TransactionManager(
            store, generator, controller, logger, error_handler
        ),
        reconciler=Reconciler(generator.namer, logger),
        adopter=OrphanAdopter(store, generator, controller, logger),
    )
