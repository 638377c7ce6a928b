"""Adoption et suppression des unités orphelines.

Actions déclenchées par l'appelant après un scan de réconciliation :
importer une unité orpheline dans la configuration, ou la supprimer.
"""

import re
import shlex
from dataclasses import MISSING, fields, replace
from datetime import datetime

from rclone_mount_sync.config.store import ConfigStore
from rclone_mount_sync.errors import (
    CleanupSequence,
    ConfigPersistenceError,
    DuplicateEntryError,
    ReconciliationError,
)
from rclone_mount_sync.logging.base import Logger
from rclone_mount_sync.models import (
    Entry,
    MountEntry,
    MountOptions,
    ScheduleConfig,
    ScheduleType,
    SyncDirection,
    SyncEntry,
    SyncOptions,
    UnitKind,
)
from rclone_mount_sync.systemd.base import ServiceController, with_suffix
from rclone_mount_sync.systemd.generator import (
    METERED_GUARD,
    UnitGenerator,
    expand_path,
)
from rclone_mount_sync.systemd.reconcile import OrphanedUnit

_DESCRIPTION_RE = re.compile(
    r"^Description=Rclone\s+(?:mount|sync):\s*(.+)$", re.IGNORECASE
)

_SYNC_FLAG_ALIASES = {
    "bwlimit": "bandwidth_limit",
    "include": "include_pattern",
    "exclude": "exclude_pattern",
    "delete-after": "delete_extraneous",
}
_IGNORED_FLAGS = frozenset({"create-empty-src-dirs"})
_RESERVED_FIELDS = frozenset({"direction", "extra_args"})


def extract_description_name(content: str, kind: str) -> str:
    """Retrouve le nom d'affichage dans la ligne Description."""
    for line in content.splitlines():
        match = _DESCRIPTION_RE.match(line.strip())
        if match:
            return match.group(1).strip()
    return f"imported-{kind}"


def extract_exec_start(content: str) -> str:
    """Reconstitue la commande ExecStart, continuations comprises.

    Une ligne se poursuit si elle se termine par ``\\`` ou si la
    suivante est indentée.
    """
    lines = content.splitlines()
    for index, line in enumerate(lines):
        if line.startswith("ExecStart="):
            break
    else:
        return ""

    parts = [lines[index][len("ExecStart="):]]
    for line in lines[index + 1:]:
        if parts[-1].rstrip().endswith("\\") or line.startswith((" ", "\t")):
            parts.append(line)
        else:
            break
    cleaned = (p.strip().removesuffix("\\").strip() for p in parts)
    return " ".join(p for p in cleaned if p)


def split_command(command: str) -> list[str]:
    """Découpe une commande systemd et annule l'échappement ``%%``/``$$``."""
    return [
        token.replace("%%", "%").replace("$$", "$")
        for token in shlex.split(command)
    ]


def split_remote(remote_path: str) -> tuple[str, str]:
    """Sépare ``remote:chemin`` en (``remote:``, ``chemin``)."""
    remote, sep, path = remote_path.partition(":")
    if not sep:
        return remote_path, "/"
    return remote + sep, path or "/"


def parse_timer(content: str) -> ScheduleConfig:
    """Interprète les directives d'un fichier .timer."""
    values: dict[str, str] = {}
    for line in content.splitlines():
        key, sep, value = line.strip().partition("=")
        if sep:
            values[key] = value.strip()

    if values.get("OnBootSec") and not values.get("OnCalendar"):
        schedule = ScheduleConfig().with_type(
            ScheduleType.ON_BOOT, values["OnBootSec"]
        )
    else:
        schedule = ScheduleConfig().with_type(
            ScheduleType.TIMER, values.get("OnCalendar", "")
        )
    return replace(
        schedule,
        on_active_sec=values.get("OnUnitActiveSec", ""),
        randomized_delay_sec=values.get("RandomizedDelaySec", ""),
        persistent=values.get("Persistent", "").lower() == "true",
    )


def parse_flags(
    tokens: list[str],
    option_type: type,
    aliases: dict[str, str] | None = None
) -> tuple[dict[str, object], list[str]]:
    """Associe les options rclone aux champs d'une dataclass d'options.

    Args:
        tokens: Options de la ligne de commande.
        option_type: MountOptions ou SyncOptions.
        aliases: Options dont le nom diffère du champ.

    Returns:
        Valeurs reconnues et options restantes (extra_args).
    """
    aliases = aliases or {}
    defaults = {
        f.name: f.default for f in fields(option_type)
        if f.default is not MISSING and f.name not in _RESERVED_FIELDS
    }
    values: dict[str, object] = {}
    extra: list[str] = []

    for token in tokens:
        flag, sep, value = token.removeprefix("--").partition("=")
        if not token.startswith("--"):
            extra.append(token)
            continue
        if flag in _IGNORED_FLAGS:
            continue
        name = aliases.get(flag, flag.replace("-", "_"))
        if name not in defaults:
            extra.append(token)
            continue
        default = defaults[name]
        if isinstance(default, bool):
            if sep:
                extra.append(token)
            else:
                values[name] = True
        elif isinstance(default, int):
            try:
                values[name] = int(value)
            except ValueError:
                extra.append(token)
        elif sep:
            values[name] = value
        else:
            extra.append(token)
    return values, extra


class OrphanAdopter:
    """Importe ou supprime les unités orphelines détectées.

    Attributes:
        store: Stockage des entrées.
        generator: Générateur, pour le répertoire et la suppression.
        controller: Pilotage de systemd.
        logger: Instance de Logger pour le logging.
    """

    def __init__(
        self,
        store: ConfigStore,
        generator: UnitGenerator,
        controller: ServiceController,
        logger: Logger
    ) -> None:
        self.store = store
        self.generator = generator
        self.controller = controller
        self.logger = logger

    def import_orphan(self, orphan: OrphanedUnit) -> Entry:
        """
        Reconstruit une entrée à partir du fichier unit d'un orphelin.

        L'identifiant de l'entrée est la clé de l'unité, de sorte que
        l'entrée adoptée désigne le même fichier.

        Args:
            orphan: Unité orpheline issue d'un scan

        Returns:
            MountEntry ou SyncEntry partiellement renseignée

        Raises:
            ReconciliationError: Si le fichier est illisible.
        """
        content = self._read(orphan.path)
        name = extract_description_name(content, orphan.kind)
        tokens = split_command(extract_exec_start(content))
        now = datetime.now()

        if orphan.kind == UnitKind.MOUNT:
            return self._import_mount(orphan.key, name, tokens, now)
        return self._import_sync(orphan, name, content, tokens, now)

    def _import_mount(
        self, key: str, name: str, tokens: list[str], now: datetime
    ) -> MountEntry:
        remote = remote_path = mount_point = ""
        options = MountOptions()
        if len(tokens) >= 4 and tokens[1] == "mount":
            remote, remote_path = split_remote(tokens[2])
            mount_point = tokens[3]
            options = self._options(MountOptions, tokens[4:])
        return MountEntry(
            id=key,
            name=name,
            remote=remote,
            remote_path=remote_path or "/",
            mount_point=mount_point,
            mount_options=options,
            created_at=now,
            modified_at=now,
        )

    def _import_sync(
        self,
        orphan: OrphanedUnit,
        name: str,
        content: str,
        tokens: list[str],
        now: datetime
    ) -> SyncEntry:
        source = destination = ""
        options = SyncOptions()
        if len(tokens) >= 4 and tokens[1] in tuple(SyncDirection):
            source, destination = tokens[2], tokens[3]
            options = replace(
                self._options(SyncOptions, tokens[4:], _SYNC_FLAG_ALIASES),
                direction=SyncDirection(tokens[1]),
            )

        schedule = ScheduleConfig()
        if orphan.timer_path.exists():
            schedule = parse_timer(self._read(orphan.timer_path))
        schedule = replace(
            schedule,
            require_ac_power="ConditionACPower=true" in content,
            require_unmetered=(
                f"ExecCondition={METERED_GUARD}" in content
            ),
        )
        return SyncEntry(
            id=orphan.key,
            name=name,
            source=source,
            destination=destination,
            sync_options=options,
            schedule=schedule,
            created_at=now,
            modified_at=now,
        )

    def _options(
        self,
        option_type: type,
        tokens: list[str],
        aliases: dict[str, str] | None = None
    ):
        values, extra = parse_flags(tokens, option_type, aliases)
        default_config = expand_path(self.generator.rclone_config_path)
        if values.get("config") == default_config:
            del values["config"]
        return option_type(**values, extra_args=shlex.join(extra))

    def _read(self, path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise ReconciliationError(
                f"Impossible de lire {path}: {e}", path=str(path)
            ) from e

    def adopt(self, orphan: OrphanedUnit) -> Entry:
        """
        Importe un orphelin et l'ajoute à la configuration.

        Args:
            orphan: Unité orpheline issue d'un scan

        Returns:
            L'entrée ajoutée

        Raises:
            DuplicateEntryError: Nom ou identifiant déjà utilisé.
            ConfigPersistenceError: Si l'enregistrement échoue.
        """
        entry = self.import_orphan(orphan)
        if self.store.get(entry.kind, entry.id) is not None:
            raise DuplicateEntryError(
                f"L'identifiant {entry.id!r} est déjà utilisé"
            )
        self.store.ensure_unique_name(entry.kind, entry.name)

        previous = list(self.store.entries(entry.kind))
        self.store.set_entries(entry.kind, [*previous, entry])
        try:
            self.store.save()
        except ConfigPersistenceError:
            self.store.set_entries(entry.kind, previous)
            raise

        orphan.imported = True
        self.logger.log_info(
            f"Unité {orphan.name} adoptée sous le nom {entry.name!r}."
        )
        return entry

    def remove_orphan(self, orphan: OrphanedUnit) -> None:
        """
        Arrête, désactive et supprime une unité orpheline.

        L'arrêt et la désactivation sont tentés sans interrompre la
        suppression ; la suppression des fichiers et le daemon-reload
        propagent leurs erreurs.

        Args:
            orphan: Unité orpheline issue d'un scan

        Raises:
            UnitGenerationError: Si un fichier ne peut être supprimé.
            ServiceControlError: Si le daemon-reload échoue.
        """
        has_timer = orphan.timer_path.exists()
        timer_name = with_suffix(orphan.name, ".timer")

        sequence = CleanupSequence(self.logger)
        sequence.add_action(
            lambda: self.controller.stop(orphan.name),
            f"arrêt de {orphan.name}",
        )
        sequence.add_action(
            lambda: self.controller.disable(orphan.name),
            f"désactivation de {orphan.name}",
        )
        if has_timer:
            sequence.add_action(
                lambda: self.controller.stop_timer(timer_name),
                f"arrêt de {timer_name}",
            )
            sequence.add_action(
                lambda: self.controller.disable_timer(timer_name),
                f"désactivation de {timer_name}",
            )
        sequence.execute()

        self.generator.remove_unit(orphan.name)
        if has_timer:
            self.generator.remove_unit(timer_name)
        self.controller.daemon_reload()
        self.logger.log_info(f"Unité orpheline {orphan.name} supprimée.")
