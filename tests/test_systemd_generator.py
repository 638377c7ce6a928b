"""Tests pour le module systemd.generator."""

import os
import stat
from unittest.mock import patch

import pytest

from rclone_mount_sync.errors import UnitGenerationError
from rclone_mount_sync.models import (
    MountEntry,
    MountOptions,
    ScheduleConfig,
    SyncEntry,
    SyncOptions,
)
from rclone_mount_sync.systemd.generator import (
    DEFAULT_RCLONE_PATH,
    METERED_GUARD,
    UnitGenerator,
    default_rclone_config_path,
    default_unit_dir,
    expand_path,
    quote_arg,
)


def make_mount(**kwargs):
    values = dict(
        id="abc123",
        name="Google Drive",
        remote="gdrive:",
        remote_path="/",
        mount_point="/mnt/My Drive",
        mount_options=MountOptions(vfs_cache_mode="full", allow_other=True),
    )
    values.update(kwargs)
    return MountEntry(**values)


def make_sync(**kwargs):
    values = dict(
        id="5d1c0a77",
        name="Photos",
        source="gdrive:/Photos",
        destination="/srv/backup/photos",
        schedule=ScheduleConfig().with_type("timer", "daily"),
    )
    values.update(kwargs)
    return SyncEntry(**values)


class TestQuoteArg:
    """Tests pour quote_arg."""

    @pytest.mark.parametrize("arg, expected", [
        ("--vfs-cache-mode=full", "--vfs-cache-mode=full"),
        ("50%", "50%%"),
        ("$HOME/x", "$$HOME/x"),
        ("My Drive:/50%", '"My Drive:/50%%"'),
        ('a"b', '"a\\"b"'),
        ("", '""'),
    ])
    def test_echappement(self, arg, expected):
        assert quote_arg(arg) == expected


class TestDefaults:
    """Tests pour les valeurs par défaut du générateur."""

    def test_expand_path(self):
        assert expand_path("~/Backup") == os.path.expanduser("~/Backup")
        assert expand_path("~") == os.path.expanduser("~")
        assert expand_path("/srv/~x") == "/srv/~x"
        assert expand_path("gdrive:~/x") == "gdrive:~/x"

    def test_default_unit_dir_xdg(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

        assert default_unit_dir() == tmp_path / "systemd" / "user"

    def test_default_rclone_config_env(self, monkeypatch):
        monkeypatch.setenv("RCLONE_CONFIG", "/etc/rclone.conf")

        assert default_rclone_config_path() == "/etc/rclone.conf"

    def test_default_rclone_config_home(self, monkeypatch):
        monkeypatch.delenv("RCLONE_CONFIG", raising=False)

        assert default_rclone_config_path().endswith(
            os.path.join(".config", "rclone", "rclone.conf")
        )

    @patch("rclone_mount_sync.systemd.generator.shutil.which")
    def test_rclone_path_recherche_path(self, mock_which, logger):
        mock_which.return_value = "/opt/bin/rclone"

        assert UnitGenerator(logger).rclone_path == "/opt/bin/rclone"
        mock_which.assert_called_once_with("rclone")

    @patch("rclone_mount_sync.systemd.generator.shutil.which")
    def test_rclone_path_par_defaut(self, mock_which, logger):
        mock_which.return_value = None

        assert UnitGenerator(logger).rclone_path == DEFAULT_RCLONE_PATH


class TestMountService:
    """Tests pour le contenu du .service d'un montage."""

    def test_contenu(self, generator):
        content = generator.generate_mount_service(make_mount())

        assert "Description=Rclone mount: Google Drive" in content
        assert "Documentation=man:rclone(1)" in content
        assert "After=network-online.target" in content
        assert "Wants=network-online.target" in content
        assert "StartLimitIntervalSec=30" in content
        assert "StartLimitBurst=5" in content
        assert "Type=notify" in content
        assert 'ExecStartPre=/bin/mkdir -p "/mnt/My Drive"' in content
        assert (
            "ExecStart=/usr/bin/rclone mount \\\n"
            "    gdrive:/ \\\n"
            '    "/mnt/My Drive" \\\n'
            "    --config=/cfg/rclone.conf \\\n"
            "    --vfs-cache-mode=full \\\n"
            "    --allow-other\n"
        ) in content
        assert 'ExecStop=/bin/fusermount -u "/mnt/My Drive"' in content
        assert 'ExecStopPost=-/bin/rmdir "/mnt/My Drive"' in content
        assert "Restart=on-failure" in content
        assert "RestartSec=5s" in content
        assert "WantedBy=default.target" in content

    def test_options_montage(self, generator):
        options = MountOptions(
            vfs_cache_max_age="1h",
            buffer_size="32M",
            dir_cache_time="5m",
            umask="022",
            uid=1000,
            read_only=True,
            log_level="INFO",
            extra_args="--poll-interval 1m",
        )

        args = generator.build_mount_args(options)

        assert args == [
            "--config=/cfg/rclone.conf",
            "--vfs-cache-max-age=1h",
            "--buffer-size=32M",
            "--dir-cache-time=5m",
            "--umask=022",
            "--uid=1000",
            "--read-only",
            "--log-level=INFO",
            "--poll-interval",
            "1m",
        ]

    def test_config_specifique(self, generator):
        args = generator.build_mount_args(MountOptions(config="/x/r.conf"))

        assert args == ["--config=/x/r.conf"]


class TestSyncUnits:
    """Tests pour les unités d'une synchronisation."""

    def test_service(self, generator):
        entry = make_sync(sync_options=SyncOptions(
            direction="copy",
            delete_extraneous=True,
            transfers=4,
            bandwidth_limit="10M",
        ))

        content = generator.generate_sync_service(entry)

        assert "Description=Rclone sync: Photos" in content
        assert "Type=oneshot" in content
        assert (
            "ExecStart=/usr/bin/rclone copy \\\n"
            "    gdrive:/Photos \\\n"
            "    /srv/backup/photos \\\n"
            "    --config=/cfg/rclone.conf \\\n"
            "    --delete-after \\\n"
            "    --transfers=4 \\\n"
            "    --bwlimit=10M \\\n"
            "    --create-empty-src-dirs\n"
        ) in content
        assert "ConditionACPower" not in content
        assert "ExecCondition" not in content
        assert "MemoryMax=1G" in content
        assert "CPUQuota=50%" in content

    def test_conditions(self, generator):
        schedule = ScheduleConfig(require_ac_power=True,
                                  require_unmetered=True)

        content = generator.generate_sync_service(make_sync(schedule=schedule))

        assert "ConditionACPower=true" in content
        assert f"ExecCondition={METERED_GUARD}" in content

    def test_timer_calendaire(self, generator):
        content = generator.generate_sync_timer(make_sync())

        assert "Description=Timer for rclone sync: Photos" in content
        assert "Unit=sync-5d1c0a77.service" in content
        assert "OnCalendar=daily" in content
        assert "OnBootSec" not in content
        assert "WantedBy=timers.target" in content

    def test_timer_au_demarrage(self, generator):
        schedule = ScheduleConfig(
            on_calendar="weekly", persistent=True
        ).with_type("onboot", "5min")

        content = generator.generate_sync_timer(make_sync(schedule=schedule))

        assert "OnBootSec=5min" in content
        assert "OnCalendar=weekly" not in content
        assert "Persistent=true" in content


class TestWriteUnits:
    """Tests pour l'écriture et la suppression des fichiers unit."""

    def test_write_mount_unit(self, generator, unit_dir, logger):
        path = generator.write_mount_unit(make_mount())

        assert path == unit_dir / "mount-abc123.service"
        assert "Type=notify" in path.read_text()
        assert stat.S_IMODE(path.stat().st_mode) == 0o644
        logger.log_info.assert_called()

    def test_write_sync_units(self, generator, unit_dir):
        service, timer = generator.write_sync_units(make_sync())

        assert service == unit_dir / "sync-5d1c0a77.service"
        assert timer == unit_dir / "sync-5d1c0a77.timer"
        assert timer.exists()

    def test_manuel_supprime_le_timer(self, generator, unit_dir):
        """Passer en manuel supprime le timer d'une planification
        précédente."""
        generator.write_sync_units(make_sync())

        service, timer = generator.write_sync_units(
            make_sync(schedule=ScheduleConfig())
        )

        assert timer is None
        assert service.exists()
        assert not (unit_dir / "sync-5d1c0a77.timer").exists()

    def test_reecriture_idempotente(self, generator):
        first = generator.write_mount_unit(make_mount()).read_text()
        second = generator.write_mount_unit(make_mount()).read_text()

        assert first == second

    def test_lien_symbolique_refuse(self, generator, unit_dir, tmp_path):
        target = tmp_path / "target"
        target.write_text("original")
        unit_dir.mkdir(parents=True)
        (unit_dir / "mount-abc123.service").symlink_to(target)

        with pytest.raises(UnitGenerationError) as exc_info:
            generator.write_mount_unit(make_mount())

        assert exc_info.value.unit_name == "mount-abc123.service"
        assert target.read_text() == "original"

    def test_repertoire_inutilisable(self, logger, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        generator = UnitGenerator(logger, unit_dir=blocker / "user",
                                  rclone_path="/usr/bin/rclone")

        with pytest.raises(UnitGenerationError):
            generator.write_mount_unit(make_mount())

    def test_nom_invalide(self, generator):
        with pytest.raises(UnitGenerationError, match="traversée"):
            generator.write_unit_file("../evil.service", "")

    def test_remove_unit(self, generator, unit_dir):
        generator.write_mount_unit(make_mount())

        assert generator.remove_unit("mount-abc123.service") is True
        assert not (unit_dir / "mount-abc123.service").exists()

    def test_remove_unit_absent(self, generator):
        assert generator.remove_unit("mount-abc123.service") is False
