"""Tests pour l'assemblage de l'application."""

import json
from unittest.mock import MagicMock

import pytest

from rclone_mount_sync.app import build_application
from rclone_mount_sync.errors import (
    ConfigurationError,
    ErrorHandler,
    TransactionError,
)
from rclone_mount_sync.logging import FileLogger
from rclone_mount_sync.models import MountEntry
from rclone_mount_sync.systemd.executor import SystemctlServiceController


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "mounts": [{
            "id": "abc123",
            "name": "Drive",
            "remote": "gdrive:",
            "mount_point": "/mnt/gdrive",
        }],
        "settings": {
            "rclone_binary_path": "/opt/rclone",
            "rclone_config_path": "/cfg/rclone.conf",
            "unit_dir": str(tmp_path / "units"),
            "systemctl_timeout": 5,
        },
    }))
    return path


class TestBuildApplication:
    """Tests pour build_application."""

    def test_reglages_appliques(self, config_file, tmp_path, logger):
        app = build_application(config_file, logger=logger)

        assert app.generator.unit_dir == tmp_path / "units"
        assert app.generator.rclone_path == "/opt/rclone"
        assert app.generator.rclone_config_path == "/cfg/rclone.conf"
        assert isinstance(app.controller, SystemctlServiceController)
        assert app.controller.timeout == 5
        assert app.store.mounts[0].name == "Drive"
        logger.log_info.assert_called_with(
            f"Configuration chargée depuis {config_file}"
        )

    def test_logger_par_defaut(self, config_file, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))

        app = build_application(config_file)

        assert isinstance(app.logger, FileLogger)
        assert app.logger.log_file.startswith(str(tmp_path / "state"))

    def test_configuration_invalide(self, tmp_path, logger):
        path = tmp_path / "config.json"
        path.write_text('{"settings": {"systemctl_timeout": -1}}')

        with pytest.raises(ConfigurationError):
            build_application(path, logger=logger)

    def test_creation_puis_reconciliation(
        self, config_file, tmp_path, logger, controller
    ):
        """Les composants partagent le même stockage et répertoire."""
        app = build_application(config_file, logger=logger,
                                controller=controller)

        before = app.reconcile()
        app.transactions.create_mount(MountEntry(
            id="def456", name="Music", remote="nas:",
            mount_point="/mnt/music",
        ))
        after = app.reconcile()

        assert [m.entry_id for m in before.missing] == ["abc123"]
        assert [m.entry_id for m in after.missing] == ["abc123"]
        assert [m.entry_id for m in after.matched] == ["def456"]
        assert (tmp_path / "units" / "mount-def456.service").exists()
        saved = json.loads(config_file.read_text())
        assert [m["id"] for m in saved["mounts"]] == ["abc123", "def456"]
        assert controller.count("daemon_reload") == 1

    def test_handlers_supplementaires_recoivent_les_erreurs(
        self, config_file, logger, controller
    ):
        """Les erreurs de transaction sont loggées puis diffusées."""
        notifier = MagicMock(spec=ErrorHandler)
        app = build_application(config_file, logger=logger,
                                controller=controller,
                                error_handlers=[notifier])
        controller.fail("daemon_reload")

        with pytest.raises(TransactionError) as exc_info:
            app.transactions.create_mount(MountEntry(
                id="def456", name="Music", remote="nas:",
                mount_point="/mnt/music",
            ))

        assert app.transactions.error_handler is app.error_handler
        notifier.handle.assert_called_once_with(exc_info.value)
        assert any(
            "TransactionError [create mount def456]" in call.args[0]
            for call in logger.log_error.call_args_list
        )
        assert [m.id for m in app.store.mounts] == ["abc123"]
