"""Entrées de configuration : montages et tâches de synchronisation."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import ClassVar


class UnitKind(StrEnum):
    """Type d'unité générée pour une entrée."""

    MOUNT = "mount"
    SYNC = "sync"


class ScheduleType(StrEnum):
    """Intention de planification d'une tâche de synchronisation."""

    MANUAL = "manual"
    TIMER = "timer"
    ON_BOOT = "onboot"


class SyncDirection(StrEnum):
    """Commande rclone utilisée par une tâche de synchronisation."""

    SYNC = "sync"
    COPY = "copy"
    MOVE = "move"


def generate_id() -> str:
    """Génère un identifiant opaque et stable pour une nouvelle entrée.

    Returns:
        8 caractères hexadécimaux en minuscules.
    """
    return uuid.uuid4().hex[:8]


@dataclass(frozen=True)
class MountOptions:
    """Options rclone d'un point de montage."""

    # FUSE
    allow_other: bool = False
    allow_root: bool = False
    umask: str = ""
    uid: int = 0
    gid: int = 0
    # Performance
    buffer_size: str = ""
    dir_cache_time: str = ""
    vfs_read_chunk_size: str = ""
    vfs_cache_mode: str = ""
    vfs_cache_max_age: str = ""
    vfs_cache_max_size: str = ""
    vfs_write_back: str = ""
    # Comportement
    no_modtime: bool = False
    no_checksum: bool = False
    read_only: bool = False
    # Réseau
    connect_timeout: str = ""
    timeout: str = ""
    log_level: str = ""
    config: str = ""
    extra_args: str = ""


@dataclass(frozen=True)
class SyncOptions:
    """Options rclone d'une tâche de synchronisation."""

    direction: str = SyncDirection.SYNC
    conflict_resolution: str = ""
    delete_extraneous: bool = False
    delete_after: bool = False
    include_pattern: str = ""
    exclude_pattern: str = ""
    max_age: str = ""
    min_age: str = ""
    transfers: int = 0
    checkers: int = 0
    bandwidth_limit: str = ""
    checksum: bool = False
    dry_run: bool = False
    log_level: str = ""
    config: str = ""
    extra_args: str = ""

    def __post_init__(self) -> None:
        """Valide la direction de synchronisation."""
        if self.direction not in tuple(SyncDirection):
            raise ValueError(
                f"Direction invalide : {self.direction!r} "
                f"(valeurs acceptées : {', '.join(SyncDirection)})"
            )


@dataclass(frozen=True)
class ScheduleConfig:
    """Planification d'une tâche de synchronisation.

    Les types manual, timer et onboot sont mutuellement exclusifs :
    ``with_type`` efface les champs propres aux autres types.

    Attributes:
        type: Type de planification (ScheduleType).
        on_calendar: Expression calendaire systemd (type timer).
        on_boot_sec: Délai après le démarrage (type onboot).
        on_active_sec: Intervalle après la dernière exécution.
        randomized_delay_sec: Délai aléatoire ajouté.
        persistent: Rattraper les exécutions manquées.
        require_ac_power: N'exécuter que sur secteur.
        require_unmetered: N'exécuter que sur une connexion non facturée.
    """

    type: str = ScheduleType.MANUAL
    on_calendar: str = ""
    on_boot_sec: str = ""
    on_active_sec: str = ""
    randomized_delay_sec: str = ""
    persistent: bool = False
    require_ac_power: bool = False
    require_unmetered: bool = False

    def __post_init__(self) -> None:
        """Valide le type de planification."""
        if self.type not in tuple(ScheduleType):
            raise ValueError(
                f"Type de planification invalide : {self.type!r} "
                f"(valeurs acceptées : {', '.join(ScheduleType)})"
            )

    def with_type(
        self, schedule_type: str, value: str = ""
    ) -> "ScheduleConfig":
        """Sélectionne un type de planification.

        Args:
            schedule_type: Nouveau type (manual, timer, onboot).
            value: Expression calendaire (timer) ou délai (onboot).

        Returns:
            Nouvelle planification, champs des autres types effacés.
        """
        schedule_type = ScheduleType(schedule_type)
        return replace(
            self,
            type=schedule_type,
            on_calendar=value if schedule_type == ScheduleType.TIMER else "",
            on_boot_sec=(
                value if schedule_type == ScheduleType.ON_BOOT else ""
            ),
        )

    @property
    def needs_timer(self) -> bool:
        """True si la planification requiert une unité .timer."""
        return self.type != ScheduleType.MANUAL


@dataclass(frozen=True)
class Entry:
    """Entrée de configuration commune aux montages et synchronisations.

    L'identifiant est généré une seule fois et ne change jamais ; le nom
    d'affichage est modifiable et doit rester unique parmi les entrées
    du même type.

    Attributes:
        id: Identifiant opaque et stable.
        name: Nom d'affichage choisi par l'utilisateur.
        description: Description libre.
        enabled: Activer l'unité au démarrage de la session.
        auto_start: Démarrer l'unité dès son installation.
        created_at: Date de création (hors comparaison).
        modified_at: Date de dernière modification (hors comparaison).
    """

    KIND: ClassVar[UnitKind]

    id: str
    name: str
    description: str = ""
    enabled: bool = False
    auto_start: bool = False
    created_at: datetime = field(
        default_factory=datetime.now, compare=False, kw_only=True
    )
    modified_at: datetime = field(
        default_factory=datetime.now, compare=False, kw_only=True
    )

    @property
    def kind(self) -> UnitKind:
        """Type d'unité associé à l'entrée."""
        return self.KIND

    def touched(self) -> "Entry":
        """Retourne une copie avec ``modified_at`` mis à jour."""
        return replace(self, modified_at=datetime.now())


@dataclass(frozen=True)
class MountEntry(Entry):
    """Point de montage rclone persistant.

    Attributes:
        remote: Nom du remote rclone (ex: "gdrive:").
        remote_path: Chemin dans le remote (ex: "/Music").
        mount_point: Répertoire local de montage.
        mount_options: Options rclone du montage.
    """

    KIND: ClassVar[UnitKind] = UnitKind.MOUNT

    remote: str = ""
    remote_path: str = "/"
    mount_point: str = ""
    mount_options: MountOptions = field(default_factory=MountOptions)


@dataclass(frozen=True)
class SyncEntry(Entry):
    """Tâche de synchronisation rclone planifiée.

    Attributes:
        source: Source rclone (ex: "gdrive:/Photos").
        destination: Destination (ex: "~/Backup/Photos").
        sync_options: Options rclone de la synchronisation.
        schedule: Planification de la tâche.
        last_run: Date de la dernière exécution connue.
    """

    KIND: ClassVar[UnitKind] = UnitKind.SYNC

    source: str = ""
    destination: str = ""
    sync_options: SyncOptions = field(default_factory=SyncOptions)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    last_run: datetime | None = field(default=None, compare=False)
