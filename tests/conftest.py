"""Fixtures partagées : faux pilote systemd et stockage en mémoire."""

from unittest.mock import MagicMock

import pytest

from rclone_mount_sync.config.store import ConfigStore
from rclone_mount_sync.errors import ServiceControlError
from rclone_mount_sync.systemd.base import (
    DetailedUnitStatus,
    ServiceController,
    UnitStatus,
)
from rclone_mount_sync.systemd.generator import UnitGenerator
from rclone_mount_sync.transaction import TransactionManager


class FakeServiceController(ServiceController):
    """Enregistre les appels sans toucher à systemd.

    Une unité inconnue n'est jamais une erreur ; seuls les échecs
    programmés via ``fail`` lèvent ``ServiceControlError``.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.failures: set[tuple[str, str]] = set()

    def fail(self, verb: str, unit_name: str = "*") -> None:
        """Programme l'échec d'un verbe (pour une unité ou toutes)."""
        self.failures.add((verb, unit_name))

    def count(self, verb: str, unit_name: str = "") -> int:
        return self.calls.count((verb, unit_name))

    def verbs(self) -> list[str]:
        return [verb for verb, _ in self.calls]

    def _record(self, verb: str, unit_name: str = "") -> None:
        self.calls.append((verb, unit_name))
        if (verb, unit_name) in self.failures or (verb, "*") in self.failures:
            raise ServiceControlError(
                f"{verb} {unit_name} : échec simulé",
                verb=verb,
                unit_name=unit_name,
            )

    def start(self, unit_name):
        self._record("start", unit_name)

    def stop(self, unit_name):
        self._record("stop", unit_name)

    def restart(self, unit_name):
        self._record("restart", unit_name)

    def enable(self, unit_name):
        self._record("enable", unit_name)

    def disable(self, unit_name):
        self._record("disable", unit_name)

    def start_timer(self, unit_name):
        self._record("start_timer", unit_name)

    def stop_timer(self, unit_name):
        self._record("stop_timer", unit_name)

    def enable_timer(self, unit_name):
        self._record("enable_timer", unit_name)

    def disable_timer(self, unit_name):
        self._record("disable_timer", unit_name)

    def run_now(self, unit_name):
        self._record("run_now", unit_name)

    def daemon_reload(self):
        self._record("daemon_reload")

    def reset_failed(self, unit_name):
        self._record("reset_failed", unit_name)

    def status(self, unit_name):
        self._record("status", unit_name)
        return UnitStatus(name=unit_name)

    def detailed_status(self, unit_name):
        self._record("detailed_status", unit_name)
        return DetailedUnitStatus(name=unit_name)

    def logs(self, unit_name, max_lines=50):
        self._record("logs", unit_name)
        return ""

    def is_available(self):
        return True


class MemoryConfigStore(ConfigStore):
    """Stockage en mémoire dont les enregistrements peuvent échouer.

    ``save_errors`` est consommée dans l'ordre : None pour un
    enregistrement réussi, une exception pour un échec. Une liste vide
    signifie que tous les enregistrements suivants réussissent.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.save_errors: list[Exception | None] = []
        self.save_attempts = 0
        self.saved: list[tuple[list, list]] = []

    def fail_saves(self, *errors: Exception | None) -> None:
        self.save_errors.extend(errors)

    def save(self) -> None:
        self.save_attempts += 1
        if self.save_errors:
            error = self.save_errors.pop(0)
            if error is not None:
                raise error
        self.saved.append((list(self.mounts), list(self.sync_jobs)))


@pytest.fixture
def logger():
    return MagicMock()


@pytest.fixture
def controller():
    return FakeServiceController()


@pytest.fixture
def store():
    return MemoryConfigStore()


@pytest.fixture
def unit_dir(tmp_path):
    return tmp_path / "systemd" / "user"


@pytest.fixture
def generator(logger, unit_dir):
    return UnitGenerator(
        logger,
        unit_dir=unit_dir,
        rclone_path="/usr/bin/rclone",
        rclone_config_path="/cfg/rclone.conf",
    )


@pytest.fixture
def error_handler():
    return MagicMock()


@pytest.fixture
def manager(store, generator, controller, logger, error_handler):
    return TransactionManager(
        store, generator, controller, logger, error_handler=error_handler
    )
