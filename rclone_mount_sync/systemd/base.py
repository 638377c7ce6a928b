"""Interface abstraite du pilotage du gestionnaire de services."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


def with_suffix(unit_name: str, suffix: str) -> str:
    """Force l'extension d'un nom d'unité.

    Example:
        >>> with_suffix("sync-ab12cd34.service", ".timer")
        'sync-ab12cd34.timer'
    """
    for known in (".service", ".timer"):
        if unit_name.endswith(known):
            unit_name = unit_name[: -len(known)]
            break
    return unit_name + suffix


@dataclass(frozen=True)
class UnitStatus:
    """État courant d'une unité.

    Attributes:
        name: Nom de l'unité.
        active: True si ActiveState vaut "active".
        enabled: True si l'unité est activée.
        state: ActiveState (active, inactive, failed, activating).
        sub_state: SubState (running, dead, exited).
        load_state: LoadState (loaded, not-found).
    """

    name: str
    active: bool = False
    enabled: bool = False
    state: str = "inactive"
    sub_state: str = "dead"
    load_state: str = "not-found"

    @property
    def exists(self) -> bool:
        """True si systemd connaît l'unité."""
        return self.load_state != "not-found"


@dataclass(frozen=True)
class DetailedUnitStatus(UnitStatus):
    """État détaillé d'une unité, avec son timer éventuel.

    Attributes:
        main_pid: PID du processus principal (0 si aucun).
        exit_code: Code de sortie de la dernière exécution.
        activated_at: Date de la dernière activation.
        inactive_at: Date du dernier passage à l'état inactif.
        timer_active: True si le timer associé est actif.
        next_run: Prochain déclenchement du timer.
        last_run: Dernier déclenchement du timer.
    """

    main_pid: int = 0
    exit_code: int = 0
    activated_at: datetime | None = None
    inactive_at: datetime | None = None
    timer_active: bool = False
    next_run: datetime | None = None
    last_run: datetime | None = None


class ServiceController(ABC):
    """Interface de pilotage de systemd en mode utilisateur.

    Chaque méthode correspond à un seul verbe systemctl ; aucune
    n'enchaîne plusieurs étapes. Les échecs lèvent
    ``ServiceControlError``.
    """

    @abstractmethod
    def start(self, unit_name: str) -> None:
        """
        Démarre une unité.

        Args:
            unit_name: Nom de l'unité (avec extension)
        """
        pass

    @abstractmethod
    def stop(self, unit_name: str) -> None:
        """
        Arrête une unité.

        Args:
            unit_name: Nom de l'unité (avec extension)
        """
        pass

    @abstractmethod
    def restart(self, unit_name: str) -> None:
        """Redémarre une unité."""
        pass

    @abstractmethod
    def enable(self, unit_name: str) -> None:
        """Active une unité au démarrage de la session."""
        pass

    @abstractmethod
    def disable(self, unit_name: str) -> None:
        """Désactive une unité."""
        pass

    def start_timer(self, unit_name: str) -> None:
        """Démarre le timer associé à une unité."""
        self.start(with_suffix(unit_name, ".timer"))

    def stop_timer(self, unit_name: str) -> None:
        """Arrête le timer associé à une unité."""
        self.stop(with_suffix(unit_name, ".timer"))

    def enable_timer(self, unit_name: str) -> None:
        """Active le timer associé à une unité."""
        self.enable(with_suffix(unit_name, ".timer"))

    def disable_timer(self, unit_name: str) -> None:
        """Désactive le timer associé à une unité."""
        self.disable(with_suffix(unit_name, ".timer"))

    def run_now(self, unit_name: str) -> None:
        """Déclenche immédiatement le service d'une synchronisation."""
        self.start(with_suffix(unit_name, ".service"))

    @abstractmethod
    def daemon_reload(self) -> None:
        """Recharge les fichiers unit (daemon-reload)."""
        pass

    @abstractmethod
    def reset_failed(self, unit_name: str) -> None:
        """Efface l'état « failed » d'une unité."""
        pass

    @abstractmethod
    def status(self, unit_name: str) -> UnitStatus:
        """
        Récupère l'état d'une unité.

        Une unité inconnue retourne un état inactif et désactivé,
        pas une erreur.

        Args:
            unit_name: Nom de l'unité (avec extension)

        Returns:
            État de l'unité
        """
        pass

    @abstractmethod
    def detailed_status(self, unit_name: str) -> DetailedUnitStatus:
        """Récupère l'état détaillé d'une unité et de son timer."""
        pass

    @abstractmethod
    def logs(self, unit_name: str, max_lines: int = 50) -> str:
        """
        Récupère les dernières lignes du journal d'une unité.

        Args:
            unit_name: Nom de l'unité
            max_lines: Nombre maximal de lignes

        Returns:
            Texte du journal
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """True si le gestionnaire de services utilisateur répond."""
        pass
