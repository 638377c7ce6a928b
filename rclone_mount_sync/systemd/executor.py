"""Exécuteur de commandes systemctl --user."""

import subprocess
from datetime import datetime, timezone

from rclone_mount_sync.errors import ServiceControlError
from rclone_mount_sync.logging.base import Logger
from rclone_mount_sync.models import UnitKind
from rclone_mount_sync.systemd.base import (
    DetailedUnitStatus,
    ServiceController,
    UnitStatus,
    with_suffix,
)
from rclone_mount_sync.systemd.naming import UnitNamer
from rclone_mount_sync.systemd.validators import validate_unit_name

DEFAULT_TIMEOUT = 30.0

_STATUS_PROPERTIES = "LoadState,ActiveState,SubState"
_DETAILED_PROPERTIES = (
    "LoadState,ActiveState,SubState,MainPID,ExecMainStatus,"
    "ActiveEnterTimestamp,InactiveEnterTimestamp"
)
_TIMER_PROPERTIES = "ActiveState,NextElapseUSecRealtime,LastTriggerUSec"

_TIMESTAMP_FORMATS = (
    "%a %Y-%m-%d %H:%M:%S",
    "%a %Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
)


def parse_systemd_timestamp(value: str) -> datetime | None:
    """Interprète un horodatage renvoyé par ``systemctl show``.

    Formats acceptés : vide, "n/a" ou "0" (aucune date), ``@epoch``,
    un nombre de microsecondes depuis l'epoch, ISO 8601 ou le format
    textuel de systemd (``Sun 2026-10-18 03:00:00 CEST``). Le fuseau
    textuel est ignoré, la date est alors considérée comme locale.

    Args:
        value: Valeur brute de la propriété.

    Returns:
        La date, ou None si absente ou illisible.
    """
    value = value.strip()
    if not value or value in ("n/a", "0"):
        return None
    if value.startswith("@"):
        try:
            return datetime.fromtimestamp(float(value[1:]), tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None
    if value.isdigit():
        return datetime.fromtimestamp(int(value) / 1_000_000, tz=timezone.utc)
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass

    candidates = [value]
    head, _, tail = value.rpartition(" ")
    if head and tail.isalpha():
        candidates.append(head)
    for candidate in candidates:
        for fmt in _TIMESTAMP_FORMATS:
            try:
                return datetime.strptime(candidate, fmt)
            except ValueError:
                continue
    return None


def parse_properties(output: str) -> dict[str, str]:
    """Transforme la sortie ``Clé=Valeur`` de ``systemctl show``."""
    properties = {}
    for line in output.splitlines():
        key, sep, value = line.partition("=")
        if sep:
            properties[key.strip()] = value.strip()
    return properties


def _to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


class SystemctlServiceController(ServiceController):
    """Pilote systemd via ``systemctl --user``.

    Chaque appel est borné par un délai ; un code de retour non nul,
    un dépassement de délai ou un binaire absent lèvent
    ``ServiceControlError``.

    Attributes:
        logger: Instance de Logger pour le logging.
        timeout: Délai maximal d'une commande, en secondes.
    """

    def __init__(
        self,
        logger: Logger,
        timeout: float = DEFAULT_TIMEOUT,
        systemctl: str = "systemctl",
        journalctl: str = "journalctl"
    ) -> None:
        """
        Initialise l'exécuteur systemd utilisateur.

        Args:
            logger: Instance de Logger pour le logging
            timeout: Délai maximal d'une commande (secondes)
            systemctl: Binaire systemctl
            journalctl: Binaire journalctl
        """
        self.logger = logger
        self.timeout = timeout
        self.systemctl = systemctl
        self.journalctl = journalctl

    def _run(
        self,
        cmd: list[str],
        verb: str,
        unit_name: str = "",
        check: bool = True
    ) -> subprocess.CompletedProcess:
        """
        Exécute une commande avec délai.

        Args:
            cmd: Commande complète
            verb: Verbe systemctl, pour les messages d'erreur
            unit_name: Unité visée
            check: Lever une exception si la commande échoue

        Returns:
            Résultat de la commande

        Raises:
            ServiceControlError: Échec, délai dépassé ou binaire absent.
        """
        target = f" {unit_name}" if unit_name else ""
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise ServiceControlError(
                f"{verb}{target} : délai de {self.timeout}s dépassé",
                verb=verb,
                unit_name=unit_name,
            ) from e
        except OSError as e:
            raise ServiceControlError(
                f"{verb}{target} : impossible d'exécuter {cmd[0]}: {e}",
                verb=verb,
                unit_name=unit_name,
            ) from e

        if check and result.returncode != 0:
            output = (result.stderr or result.stdout or "").strip()
            raise ServiceControlError(
                f"{verb}{target} a échoué (code {result.returncode}): "
                f"{output}",
                verb=verb,
                unit_name=unit_name,
                output=output,
            )
        return result

    def _run_systemctl(
        self,
        args: list[str],
        verb: str,
        unit_name: str = "",
        check: bool = True
    ) -> subprocess.CompletedProcess:
        """Exécute ``systemctl --user`` avec les arguments donnés."""
        return self._run(
            [self.systemctl, "--user"] + args, verb, unit_name, check
        )

    def _unit_verb(self, verb: str, unit_name: str, message: str) -> None:
        validate_unit_name(unit_name)
        try:
            self._run_systemctl([verb, unit_name], verb, unit_name)
        except ServiceControlError as e:
            self.logger.log_error(str(e))
            raise
        self.logger.log_info(f"Unité {unit_name} {message}.")

    def start(self, unit_name: str) -> None:
        self._unit_verb("start", unit_name, "démarrée")

    def stop(self, unit_name: str) -> None:
        self._unit_verb("stop", unit_name, "arrêtée")

    def restart(self, unit_name: str) -> None:
        self._unit_verb("restart", unit_name, "redémarrée")

    def enable(self, unit_name: str) -> None:
        self._unit_verb("enable", unit_name, "activée")

    def disable(self, unit_name: str) -> None:
        self._unit_verb("disable", unit_name, "désactivée")

    def reset_failed(self, unit_name: str) -> None:
        self._unit_verb("reset-failed", unit_name, "réinitialisée")

    def daemon_reload(self) -> None:
        """Recharge la configuration systemd utilisateur (daemon-reload)."""
        try:
            self._run_systemctl(["daemon-reload"], "daemon-reload")
        except ServiceControlError as e:
            self.logger.log_error(
                f"Erreur lors du rechargement de systemd utilisateur: {e}"
            )
            raise
        self.logger.log_info("Systemd utilisateur rechargé avec succès.")

    def _show(self, unit_name: str, properties: str) -> dict[str, str]:
        result = self._run_systemctl(
            ["show", unit_name, f"--property={properties}"],
            "show",
            unit_name,
        )
        return parse_properties(result.stdout)

    def is_enabled(self, unit_name: str) -> bool:
        """
        Vérifie si une unité est activée au démarrage.

        Args:
            unit_name: Nom de l'unité

        Returns:
            True si activée, False sinon
        """
        validate_unit_name(unit_name)
        result = self._run_systemctl(
            ["is-enabled", unit_name], "is-enabled", unit_name, check=False
        )
        return result.stdout.strip() == "enabled"

    def status(self, unit_name: str) -> UnitStatus:
        validate_unit_name(unit_name)
        props = self._show(unit_name, _STATUS_PROPERTIES)
        state = props.get("ActiveState", "inactive")
        return UnitStatus(
            name=unit_name,
            active=state == "active",
            enabled=self.is_enabled(unit_name),
            state=state,
            sub_state=props.get("SubState", "dead"),
            load_state=props.get("LoadState", "not-found"),
        )

    def detailed_status(self, unit_name: str) -> DetailedUnitStatus:
        """
        Récupère l'état détaillé d'une unité.

        Pour le service d'une synchronisation, l'activité du timer
        associé ainsi que ses prochain et dernier déclenchements sont
        ajoutés.

        Args:
            unit_name: Nom de l'unité (avec extension)

        Returns:
            État détaillé de l'unité
        """
        validate_unit_name(unit_name)
        props = self._show(unit_name, _DETAILED_PROPERTIES)
        state = props.get("ActiveState", "inactive")

        timer_active = False
        next_run = last_run = None
        parsed = UnitNamer.parse(unit_name)
        if parsed is not None and parsed.kind == UnitKind.SYNC:
            timer_name = with_suffix(unit_name, ".timer")
            timer = self._show(timer_name, _TIMER_PROPERTIES)
            timer_active = timer.get("ActiveState") == "active"
            next_run = parse_systemd_timestamp(
                timer.get("NextElapseUSecRealtime", "")
            )
            last_run = parse_systemd_timestamp(
                timer.get("LastTriggerUSec", "")
            )

        return DetailedUnitStatus(
            name=unit_name,
            active=state == "active",
            enabled=self.is_enabled(unit_name),
            state=state,
            sub_state=props.get("SubState", "dead"),
            load_state=props.get("LoadState", "not-found"),
            main_pid=_to_int(props.get("MainPID", "0")),
            exit_code=_to_int(props.get("ExecMainStatus", "0")),
            activated_at=parse_systemd_timestamp(
                props.get("ActiveEnterTimestamp", "")
            ),
            inactive_at=parse_systemd_timestamp(
                props.get("InactiveEnterTimestamp", "")
            ),
            timer_active=timer_active,
            next_run=next_run,
            last_run=last_run,
        )

    def logs(self, unit_name: str, max_lines: int = 50) -> str:
        validate_unit_name(unit_name)
        if max_lines <= 0:
            raise ValueError("max_lines doit être strictement positif")
        result = self._run(
            [
                self.journalctl, "--user", "-u", unit_name,
                "-n", str(max_lines), "--no-pager",
            ],
            "journalctl",
            unit_name,
        )
        return result.stdout

    def is_available(self) -> bool:
        try:
            self._run_systemctl(["status"], "status")
        except ServiceControlError as e:
            self.logger.log_warning(
                f"Systemd utilisateur indisponible: {e}"
            )
            return False
        return True
