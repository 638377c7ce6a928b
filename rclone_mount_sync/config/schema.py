"""Schéma Pydantic du fichier de configuration.

Les modèles valident le fichier chargé puis sont convertis en
dataclasses immuables (``rclone_mount_sync.models``) utilisées par le
reste de l'application. La conversion inverse sert à l'écriture.
"""

from dataclasses import asdict
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rclone_mount_sync.models import (
    MountEntry,
    MountOptions,
    ScheduleConfig,
    ScheduleType,
    SyncDirection,
    SyncEntry,
    SyncOptions,
)

CONFIG_VERSION = "1.0"


class _Section(BaseModel):
    """Base commune : clés inconnues ignorées."""

    model_config = ConfigDict(extra="ignore")


class MountOptionsModel(_Section):
    allow_other: bool = False
    allow_root: bool = False
    umask: str = ""
    uid: int = Field(default=0, ge=0)
    gid: int = Field(default=0, ge=0)
    buffer_size: str = ""
    dir_cache_time: str = ""
    vfs_read_chunk_size: str = ""
    vfs_cache_mode: str = ""
    vfs_cache_max_age: str = ""
    vfs_cache_max_size: str = ""
    vfs_write_back: str = ""
    no_modtime: bool = False
    no_checksum: bool = False
    read_only: bool = False
    connect_timeout: str = ""
    timeout: str = ""
    log_level: str = ""
    config: str = ""
    extra_args: str = ""


class SyncOptionsModel(_Section):
    direction: SyncDirection = SyncDirection.SYNC
    conflict_resolution: str = ""
    delete_extraneous: bool = False
    delete_after: bool = False
    include_pattern: str = ""
    exclude_pattern: str = ""
    max_age: str = ""
    min_age: str = ""
    transfers: int = Field(default=0, ge=0)
    checkers: int = Field(default=0, ge=0)
    bandwidth_limit: str = ""
    checksum: bool = False
    dry_run: bool = False
    log_level: str = ""
    config: str = ""
    extra_args: str = ""


class ScheduleModel(_Section):
    type: ScheduleType = ScheduleType.MANUAL
    on_calendar: str = ""
    on_boot_sec: str = ""
    on_active_sec: str = ""
    randomized_delay_sec: str = ""
    persistent: bool = False
    require_ac_power: bool = False
    require_unmetered: bool = False


class _EntryModel(_Section):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = ""
    enabled: bool = False
    auto_start: bool = False
    created_at: datetime = Field(default_factory=datetime.now)
    modified_at: datetime = Field(default_factory=datetime.now)


class MountEntryModel(_EntryModel):
    remote: str = ""
    remote_path: str = "/"
    mount_point: str = ""
    mount_options: MountOptionsModel = Field(
        default_factory=MountOptionsModel
    )

    def to_entry(self) -> MountEntry:
        """Convertit le modèle validé en MountEntry."""
        data = self.model_dump(exclude={"mount_options"})
        return MountEntry(
            **data,
            mount_options=MountOptions(**self.mount_options.model_dump()),
        )

    @classmethod
    def from_entry(cls, entry: MountEntry) -> "MountEntryModel":
        """Construit le modèle à partir d'une MountEntry."""
        return cls.model_validate(asdict(entry))


class SyncEntryModel(_EntryModel):
    source: str = ""
    destination: str = ""
    sync_options: SyncOptionsModel = Field(default_factory=SyncOptionsModel)
    schedule: ScheduleModel = Field(default_factory=ScheduleModel)
    last_run: datetime | None = None

    def to_entry(self) -> SyncEntry:
        """Convertit le modèle validé en SyncEntry."""
        data = self.model_dump(exclude={"sync_options", "schedule"})
        return SyncEntry(
            **data,
            sync_options=SyncOptions(**self.sync_options.model_dump()),
            schedule=ScheduleConfig(**self.schedule.model_dump()),
        )

    @classmethod
    def from_entry(cls, entry: SyncEntry) -> "SyncEntryModel":
        """Construit le modèle à partir d'une SyncEntry."""
        return cls.model_validate(asdict(entry))


class LoggingModel(_Section):
    level: str = "INFO"
    format: str = "%(asctime)s - %(levelname)s - %(message)s"
    file: str = ""

    @field_validator("level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Niveau de log invalide : {value!r}")
        return level


class SettingsModel(_Section):
    """Réglages globaux de l'application.

    Attributes:
        rclone_binary_path: Binaire rclone (vide = recherche dans PATH).
        rclone_config_path: Fichier rclone.conf (vide = défaut rclone).
        unit_dir: Répertoire des unités utilisateur (vide = XDG).
        default_mount_dir: Répertoire proposé pour les nouveaux montages.
        systemctl_timeout: Délai maximal d'une commande systemctl (s).
        logging: Section de configuration du logging.
    """

    rclone_binary_path: str = ""
    rclone_config_path: str = ""
    unit_dir: str = ""
    default_mount_dir: str = "~/mnt"
    systemctl_timeout: float = Field(default=30.0, gt=0)
    logging: LoggingModel = Field(default_factory=LoggingModel)


class ConfigFileModel(_Section):
    """Contenu complet du fichier de configuration."""

    version: str = CONFIG_VERSION
    mounts: list[MountEntryModel] = Field(default_factory=list)
    sync_jobs: list[SyncEntryModel] = Field(default_factory=list)
    settings: SettingsModel = Field(default_factory=SettingsModel)

    def to_json_dict(self) -> dict[str, Any]:
        """Sérialise le modèle en dict compatible JSON."""
        return self.model_dump(mode="json")
