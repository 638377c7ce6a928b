"""Séquence d'actions « tenter et continuer » pour le nettoyage."""

from dataclasses import dataclass
from typing import Callable

from rclone_mount_sync.errors.exceptions import ApplicationError
from rclone_mount_sync.logging.base import Logger


@dataclass(frozen=True)
class CleanupStepResult:
    """Résultat d'une étape de nettoyage.

    Attributes:
        label: Description de l'étape.
        error: Exception levée par l'étape, None si succès.
    """

    label: str
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        """True si l'étape s'est terminée sans erreur."""
        return self.error is None


class CleanupSequence:
    """Liste ordonnée d'actions de nettoyage exécutées sans interruption.

    Chaque action est tentée même si les précédentes ont échoué.
    Les erreurs sont journalisées et retournées, jamais propagées :
    l'erreur primaire de l'opération explique déjà l'échec.
    """

    def __init__(self, logger: Logger) -> None:
        """Initialise une séquence vide.

        Args:
            logger: Instance de Logger pour tracer chaque étape.
        """
        self.logger = logger
        self.actions: list[tuple[Callable[[], object], str]] = []

    def add_action(self, action: Callable[[], object], label: str) -> None:
        """Ajoute une action avec un libellé descriptif.

        Args:
            action: Callable sans argument.
            label: Description de l'action pour les logs.
        """
        self.actions.append((action, label))

    def execute(self) -> list[CleanupStepResult]:
        """Exécute toutes les actions dans l'ordre d'ajout.

        Returns:
            Un CleanupStepResult par action.
        """
        results: list[CleanupStepResult] = []
        for action, label in self.actions:
            try:
                action()
            except (ApplicationError, OSError, ValueError) as e:
                self.logger.log_warning(f"Nettoyage ignoré ({label}): {e}")
                results.append(CleanupStepResult(label, e))
            else:
                self.logger.log_info(f"Nettoyage effectué: {label}")
                results.append(CleanupStepResult(label))

        failures = sum(1 for r in results if not r.succeeded)
        if failures:
            self.logger.log_warning(
                f"Nettoyage partiel: {failures}/{len(results)} étape(s) "
                "en échec."
            )
        return results
