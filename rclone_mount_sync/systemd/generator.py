"""Génération des fichiers unit systemd des montages et synchronisations."""

import os
import shlex
import shutil
from pathlib import Path

from rclone_mount_sync.errors import UnitGenerationError
from rclone_mount_sync.logging.base import Logger
from rclone_mount_sync.models import (
    MountEntry,
    MountOptions,
    ScheduleConfig,
    ScheduleType,
    SyncEntry,
    SyncOptions,
    UnitKind,
)
from rclone_mount_sync.systemd.naming import UnitNamer
from rclone_mount_sync.systemd.units import ServiceConfig, TimerConfig
from rclone_mount_sync.systemd.validators import validate_unit_filename

DEFAULT_RCLONE_PATH = "/usr/bin/rclone"
DOCUMENTATION = "man:rclone(1)"
UNIT_FILE_MODE = 0o644
_CONTINUATION = " \\\n    "
_DEFAULT_ENVIRONMENT = {"PATH": "/usr/local/bin:/usr/bin:/bin"}

# Refuse de s'exécuter lorsque NetworkManager signale une connexion
# facturée (Metered = 4, « guess-yes »).
METERED_GUARD = (
    "/bin/sh -c 'test \"$(dbus-send --system --print-reply=literal "
    "--dest=org.freedesktop.NetworkManager /org/freedesktop/NetworkManager "
    "org.freedesktop.DBus.Properties.Get "
    "string:org.freedesktop.NetworkManager string:Metered 2>/dev/null "
    "| grep -o \"\\\"[0-9]*\\\"\" | tr -d \"\\\"\")\" != \"4\" "
    "|| exit 0; exit 1'"
)


def default_unit_dir() -> Path:
    """Répertoire des unités utilisateur (XDG_CONFIG_HOME/systemd/user)."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else Path.home() / ".config"
    return base / "systemd" / "user"


def default_rclone_config_path() -> str:
    """Fichier de configuration rclone : ``$RCLONE_CONFIG`` ou défaut."""
    env_path = os.environ.get("RCLONE_CONFIG")
    if env_path:
        return env_path
    return str(Path.home() / ".config" / "rclone" / "rclone.conf")


def expand_path(path: str) -> str:
    """Développe ``~`` en tête d'un chemin local."""
    if path == "~" or path.startswith("~/"):
        return os.path.expanduser(path)
    return path


def quote_arg(arg: str) -> str:
    """Protège un argument pour la syntaxe de ligne de commande systemd.

    Les spécificateurs ``%`` et les références ``$`` sont doublés ;
    un argument contenant des espaces ou des guillemets est entouré de
    guillemets doubles.

    Example:
        >>> quote_arg("My Drive:/50%")
        '"My Drive:/50%%"'
    """
    escaped = arg.replace("%", "%%").replace("$", "$$")
    if not escaped or any(c.isspace() or c in "\"'\\" for c in escaped):
        escaped = escaped.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return escaped


def _join_command(args: list[str]) -> str:
    """Programme et sous-commande sur la première ligne, un argument
    par ligne de continuation ensuite."""
    head = " ".join(quote_arg(a) for a in args[:2])
    return _CONTINUATION.join([head] + [quote_arg(a) for a in args[2:]])


class UnitGenerator:
    """Produit et écrit les fichiers unit des entrées.

    L'écriture ne notifie jamais systemd : le daemon-reload reste à la
    charge de l'appelant.

    Attributes:
        logger: Instance de Logger pour le logging.
        namer: Calcul des noms d'unités.
        rclone_path: Binaire rclone utilisé dans ExecStart.
        rclone_config_path: Configuration rclone par défaut.
    """

    def __init__(
        self,
        logger: Logger,
        unit_dir: str | Path | None = None,
        rclone_path: str | None = None,
        rclone_config_path: str | None = None,
        namer: UnitNamer | None = None
    ) -> None:
        """
        Initialise le générateur.

        Args:
            logger: Instance de Logger pour le logging
            unit_dir: Répertoire des unités (défaut: XDG)
            rclone_path: Binaire rclone (défaut: recherche dans PATH)
            rclone_config_path: Configuration rclone (défaut:
                $RCLONE_CONFIG ou ~/.config/rclone/rclone.conf)
            namer: Calcul des noms d'unités
        """
        self.logger = logger
        self._unit_dir = Path(unit_dir) if unit_dir else default_unit_dir()
        self.rclone_path = (
            rclone_path or shutil.which("rclone") or DEFAULT_RCLONE_PATH
        )
        self.rclone_config_path = (
            rclone_config_path or default_rclone_config_path()
        )
        self.namer = namer or UnitNamer()

    @property
    def unit_dir(self) -> Path:
        """Répertoire où sont écrits les fichiers unit."""
        return self._unit_dir

    # -- Arguments rclone -------------------------------------------------

    def build_mount_args(self, options: MountOptions) -> list[str]:
        """Construit les options rclone d'un montage."""
        config_path = options.config or self.rclone_config_path
        args = [f"--config={expand_path(config_path)}"]

        if options.vfs_cache_mode:
            args.append(f"--vfs-cache-mode={options.vfs_cache_mode}")
        if options.vfs_cache_max_age:
            args.append(f"--vfs-cache-max-age={options.vfs_cache_max_age}")
        if options.vfs_cache_max_size:
            args.append(f"--vfs-cache-max-size={options.vfs_cache_max_size}")
        if options.vfs_read_chunk_size:
            args.append(
                f"--vfs-read-chunk-size={options.vfs_read_chunk_size}"
            )
        if options.vfs_write_back:
            args.append(f"--vfs-write-back={options.vfs_write_back}")
        if options.buffer_size:
            args.append(f"--buffer-size={options.buffer_size}")
        if options.dir_cache_time:
            args.append(f"--dir-cache-time={options.dir_cache_time}")

        if options.allow_other:
            args.append("--allow-other")
        if options.allow_root:
            args.append("--allow-root")
        if options.umask:
            args.append(f"--umask={options.umask}")
        if options.uid:
            args.append(f"--uid={options.uid}")
        if options.gid:
            args.append(f"--gid={options.gid}")

        if options.no_modtime:
            args.append("--no-modtime")
        if options.no_checksum:
            args.append("--no-checksum")
        if options.read_only:
            args.append("--read-only")

        if options.connect_timeout:
            args.append(f"--connect-timeout={options.connect_timeout}")
        if options.timeout:
            args.append(f"--timeout={options.timeout}")
        if options.log_level:
            args.append(f"--log-level={options.log_level}")

        args.extend(shlex.split(options.extra_args))
        return args

    def build_sync_args(self, options: SyncOptions) -> list[str]:
        """Construit les options rclone d'une synchronisation."""
        config_path = options.config or self.rclone_config_path
        args = [f"--config={expand_path(config_path)}"]

        if options.delete_extraneous or options.delete_after:
            args.append("--delete-after")

        if options.include_pattern:
            args.append(f"--include={options.include_pattern}")
        if options.exclude_pattern:
            args.append(f"--exclude={options.exclude_pattern}")
        if options.max_age:
            args.append(f"--max-age={options.max_age}")
        if options.min_age:
            args.append(f"--min-age={options.min_age}")

        if options.transfers > 0:
            args.append(f"--transfers={options.transfers}")
        if options.checkers > 0:
            args.append(f"--checkers={options.checkers}")
        if options.bandwidth_limit:
            args.append(f"--bwlimit={options.bandwidth_limit}")

        if options.checksum:
            args.append("--checksum")
        if options.dry_run:
            args.append("--dry-run")
        if options.log_level:
            args.append(f"--log-level={options.log_level}")

        args.append("--create-empty-src-dirs")
        args.extend(shlex.split(options.extra_args))
        return args

    # -- Configurations d'unités -------------------------------------------

    def build_mount_service(self, entry: MountEntry) -> ServiceConfig:
        """Construit la configuration .service d'un montage.

        Args:
            entry: Point de montage

        Returns:
            Configuration de l'unité service
        """
        mount_point = quote_arg(expand_path(entry.mount_point))
        command = [
            self.rclone_path,
            "mount",
            f"{entry.remote}{entry.remote_path}",
            expand_path(entry.mount_point),
        ] + self.build_mount_args(entry.mount_options)

        return ServiceConfig(
            description=f"Rclone mount: {entry.name}",
            documentation=DOCUMENTATION,
            after=("network-online.target",),
            wants=("network-online.target",),
            start_limit_interval_sec=30,
            start_limit_burst=5,
            type="notify",
            exec_start_pre=f"/bin/mkdir -p {mount_point}",
            exec_start=_join_command(command),
            exec_stop=f"/bin/fusermount -u {mount_point}",
            exec_stop_post=f"-/bin/rmdir {mount_point}",
            working_directory="%h",
            restart="on-failure",
            restart_sec="5s",
            environment=dict(_DEFAULT_ENVIRONMENT),
            extra_directives=(("NoNewPrivileges", "true"),),
        )

    def build_sync_service(self, entry: SyncEntry) -> ServiceConfig:
        """Construit la configuration .service d'une synchronisation.

        Args:
            entry: Tâche de synchronisation

        Returns:
            Configuration de l'unité service
        """
        options = entry.sync_options
        command = [
            self.rclone_path,
            str(options.direction or "sync"),
            entry.source,
            expand_path(entry.destination),
        ] + self.build_sync_args(options)

        schedule = entry.schedule
        return ServiceConfig(
            description=f"Rclone sync: {entry.name}",
            documentation=DOCUMENTATION,
            after=("network-online.target",),
            wants=("network-online.target",),
            condition_ac_power=schedule.require_ac_power,
            type="oneshot",
            exec_condition=(
                METERED_GUARD if schedule.require_unmetered else ""
            ),
            exec_start=_join_command(command),
            environment=dict(_DEFAULT_ENVIRONMENT),
            extra_directives=(
                ("MemoryMax", "1G"),
                ("CPUQuota", "50%"),
            ),
        )

    def build_sync_timer(self, entry: SyncEntry) -> TimerConfig:
        """Construit la configuration .timer d'une synchronisation.

        Args:
            entry: Tâche de synchronisation

        Returns:
            Configuration de l'unité timer
        """
        schedule: ScheduleConfig = entry.schedule
        return TimerConfig(
            description=f"Timer for rclone sync: {entry.name}",
            documentation=DOCUMENTATION,
            unit=self.namer.service_unit(entry.id, UnitKind.SYNC),
            on_calendar=(
                schedule.on_calendar
                if schedule.type == ScheduleType.TIMER else ""
            ),
            on_boot_sec=(
                schedule.on_boot_sec
                if schedule.type == ScheduleType.ON_BOOT else ""
            ),
            on_unit_active_sec=schedule.on_active_sec,
            randomized_delay_sec=schedule.randomized_delay_sec,
            persistent=schedule.persistent,
        )

    def generate_mount_service(self, entry: MountEntry) -> str:
        """Retourne le contenu du .service d'un montage."""
        return self.build_mount_service(entry).to_unit_file()

    def generate_sync_service(self, entry: SyncEntry) -> str:
        """Retourne le contenu du .service d'une synchronisation."""
        return self.build_sync_service(entry).to_unit_file()

    def generate_sync_timer(self, entry: SyncEntry) -> str:
        """Retourne le contenu du .timer d'une synchronisation."""
        return self.build_sync_timer(entry).to_unit_file()

    # -- Écriture et suppression --------------------------------------------

    def write_mount_unit(self, entry: MountEntry) -> Path:
        """Écrit le fichier .service d'un montage.

        Args:
            entry: Point de montage

        Returns:
            Chemin du fichier écrit

        Raises:
            UnitGenerationError: Si l'écriture échoue.
        """
        unit_name = self.namer.service_unit(entry.id, UnitKind.MOUNT)
        return self.write_unit_file(
            unit_name, self.generate_mount_service(entry)
        )

    def write_sync_units(
        self, entry: SyncEntry
    ) -> tuple[Path, Path | None]:
        """Écrit les fichiers .service et .timer d'une synchronisation.

        Une tâche manuelle n'a pas de timer : un timer résiduel d'une
        planification précédente est supprimé.

        Args:
            entry: Tâche de synchronisation

        Returns:
            Chemins du service et du timer (None si manuel)

        Raises:
            UnitGenerationError: Si une écriture échoue.
        """
        service_name = self.namer.service_unit(entry.id, UnitKind.SYNC)
        timer_name = self.namer.timer_unit(entry.id, UnitKind.SYNC)

        service_path = self.write_unit_file(
            service_name, self.generate_sync_service(entry)
        )
        if not entry.schedule.needs_timer:
            self.remove_unit(timer_name)
            return service_path, None

        timer_path = self.write_unit_file(
            timer_name, self.generate_sync_timer(entry)
        )
        return service_path, timer_path

    def write_unit_file(self, unit_name: str, content: str) -> Path:
        """Écrit un fichier unit dans le répertoire utilisateur.

        Les liens symboliques sont refusés (``O_NOFOLLOW``).

        Args:
            unit_name: Nom du fichier (avec extension)
            content: Contenu du fichier

        Returns:
            Chemin du fichier écrit

        Raises:
            UnitGenerationError: Si le nom est invalide ou l'écriture
                échoue.
        """
        unit_path = self._unit_path(unit_name)
        try:
            self._unit_dir.mkdir(parents=True, exist_ok=True)
            fd = os.open(
                unit_path,
                os.O_WRONLY | os.O_CREAT | os.O_TRUNC | os.O_NOFOLLOW,
                UNIT_FILE_MODE,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.chmod(unit_path, UNIT_FILE_MODE)
        except OSError as e:
            raise UnitGenerationError(
                f"Erreur lors de l'écriture de {unit_path}: {e}",
                unit_name=unit_name,
                path=str(unit_path),
            ) from e
        self.logger.log_info(f"Fichier unit utilisateur créé: {unit_path}")
        return unit_path

    def remove_unit(self, unit_name: str) -> bool:
        """Supprime un fichier unit ; un fichier absent n'est pas une erreur.

        Args:
            unit_name: Nom du fichier (avec extension)

        Returns:
            True si un fichier a été supprimé, False s'il était absent

        Raises:
            UnitGenerationError: Si la suppression échoue.
        """
        unit_path = self._unit_path(unit_name)
        try:
            unit_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise UnitGenerationError(
                f"Erreur lors de la suppression de {unit_path}: {e}",
                unit_name=unit_name,
                path=str(unit_path),
            ) from e
        self.logger.log_info(f"Fichier unit supprimé: {unit_path}")
        return True

    def _unit_path(self, unit_name: str) -> Path:
        try:
            validate_unit_filename(unit_name)
        except ValueError as e:
            raise UnitGenerationError(str(e), unit_name=unit_name) from e
        return self._unit_dir / unit_name
