"""
    LoggerErrorHandler
"""
from rclone_mount_sync.errors.base import ErrorHandler
from rclone_mount_sync.errors.exceptions import (
    ApplicationError,
    TransactionError,
)
from rclone_mount_sync.logging.base import Logger


class LoggerErrorHandler(ErrorHandler):
    """Handler pour logger les erreurs.

    Enregistre les erreurs dans le fichier de log via le Logger
    injecté au constructeur.
    """

    def __init__(self, logger: Logger) -> None:
        """Initialise le handler avec un logger.

        Args:
            logger: Instance de Logger pour l'enregistrement des erreurs.
        """
        self.logger = logger

    def handle(self, error: Exception) -> None:
        """Log l'erreur avec un message adapté à son type.

        Args:
            error: L'exception à logger.
        """
        if isinstance(error, TransactionError):
            state = "restaurée" if error.config_restored else "NON restaurée"
            self.logger.log_error(
                f"TransactionError [{error.operation} {error.kind} "
                f"{error.entry_id}] étape {error.step}: {error} "
                f"(configuration {state})"
            )
            if error.rollback_error is not None:
                self.logger.log_error(
                    f"RollbackError: {error.rollback_error}"
                )
        elif isinstance(error, ApplicationError):
            self.logger.log_error(f"{type(error).__name__}: {error}")
        else:
            self.logger.log_error(
                f"Erreur inattendue: {type(error).__name__}: {error}"
            )
