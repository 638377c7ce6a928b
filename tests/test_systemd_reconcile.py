"""Tests pour le module systemd.reconcile."""

from unittest.mock import patch

import pytest

from rclone_mount_sync.errors import ReconciliationError
from rclone_mount_sync.models import MountEntry, SyncEntry, UnitKind
from rclone_mount_sync.systemd.reconcile import (
    Reconciler,
    looks_like_generated_id,
)


def write_units(directory, *names):
    directory.mkdir(parents=True, exist_ok=True)
    for name in names:
        (directory / name).write_text("[Unit]\nDescription=test\n")


class TestLooksLikeGeneratedId:
    """Tests pour looks_like_generated_id."""

    @pytest.mark.parametrize("key", ["abc123", "def999", "5d1c0a77", "0"])
    def test_cles_generees(self, key):
        assert looks_like_generated_id(key)

    @pytest.mark.parametrize("key", ["photos", "my-drive", "my_drive2", ""])
    def test_cles_historiques(self, key):
        assert not looks_like_generated_id(key)


class TestReconciler:
    """Tests pour Reconciler.reconcile."""

    def test_orphelin_unique(self, unit_dir):
        """mount-def999.service est le seul orphelin, non historique."""
        write_units(unit_dir, "mount-abc123.service", "mount-def999.service")
        mounts = [MountEntry(id="abc123", name="Drive")]

        result = Reconciler().reconcile(unit_dir, mounts, [])

        assert len(result.orphans) == 1
        orphan = result.orphans[0]
        assert orphan.name == "mount-def999.service"
        assert orphan.kind == UnitKind.MOUNT
        assert orphan.key == "def999"
        assert orphan.is_legacy is False
        assert orphan.imported is False
        assert orphan.path == unit_dir / "mount-def999.service"
        assert [m.name for m in result.matched] == ["mount-abc123.service"]
        assert result.errors == []

    def test_correspondance_historique(self, unit_dir):
        """mount-photos.service est rattaché à "Photos" (id xyz)."""
        write_units(unit_dir, "mount-photos.service")
        mounts = [MountEntry(id="xyz", name="Photos")]

        result = Reconciler().reconcile(unit_dir, mounts, [])

        assert result.orphans == []
        assert len(result.matched) == 1
        matched = result.matched[0]
        assert matched.name == "mount-photos.service"
        assert matched.entry_id == "xyz"
        assert matched.is_legacy is True
        assert result.legacy_units == [matched]
        assert result.missing == []

    def test_orphelin_historique(self, unit_dir):
        """Un orphelin nommé d'après un nom d'affichage est historique."""
        write_units(unit_dir, "sync-old-backup.service")

        result = Reconciler().reconcile(unit_dir, [], [])

        assert result.orphans[0].is_legacy is True
        assert result.orphans[0].kind == UnitKind.SYNC

    def test_unites_manquantes(self, unit_dir):
        """Une entrée sans fichier unit est signalée comme manquante."""
        write_units(unit_dir, "mount-abc123.service")
        mounts = [MountEntry(id="abc123", name="Drive")]
        jobs = [SyncEntry(id="5d1c0a77", name="Backup")]

        result = Reconciler().reconcile(unit_dir, mounts, jobs)

        assert len(result.missing) == 1
        missing = result.missing[0]
        assert missing.entry_id == "5d1c0a77"
        assert missing.entry_name == "Backup"
        assert missing.expected_unit == "sync-5d1c0a77.service"
        assert not result.is_clean

    def test_timers_et_fichiers_etrangers_ignores(self, unit_dir):
        """Seuls les .service mount-/sync- sont examinés."""
        write_units(
            unit_dir,
            "sync-5d1c0a77.timer",
            "other.service",
            "rclone-mount-old.service",
            "mount-abc123.conf",
        )

        result = Reconciler().reconcile(unit_dir, [], [])

        assert result.orphans == []
        assert result.matched == []

    def test_repertoire_absent(self, tmp_path):
        """Un répertoire absent rend toutes les entrées manquantes."""
        mounts = [MountEntry(id="abc123", name="Drive")]

        result = Reconciler().reconcile(tmp_path / "absent", mounts, [])

        assert result.orphans == []
        assert [m.entry_id for m in result.missing] == ["abc123"]
        assert result.errors == []
        assert not result.is_clean

    def test_repertoire_illisible(self, unit_dir, logger):
        """Un répertoire illisible est une erreur collectée."""
        write_units(unit_dir, "mount-def999.service")

        with patch(
            "rclone_mount_sync.systemd.reconcile.os.listdir",
            side_effect=PermissionError("accès refusé"),
        ):
            result = Reconciler(logger=logger).reconcile(unit_dir, [], [])

        assert len(result.errors) == 1
        assert isinstance(result.errors[0], ReconciliationError)
        assert result.errors[0].path == str(unit_dir)
        logger.log_warning.assert_called()

    def test_fichier_illisible_resultats_partiels(self, unit_dir):
        """Un fichier illisible n'empêche pas de classer les autres."""
        write_units(unit_dir, "mount-aaa111.service", "mount-bbb222.service")
        unreadable = str(unit_dir / "mount-aaa111.service")

        def fake_access(path, mode):
            return str(path) != unreadable

        with patch(
            "rclone_mount_sync.systemd.reconcile.os.access",
            side_effect=fake_access,
        ):
            result = Reconciler().reconcile(unit_dir, [], [])

        assert [o.name for o in result.orphans] == ["mount-bbb222.service"]
        assert [e.path for e in result.errors] == [unreadable]

    def test_lecture_seule(self, unit_dir):
        """Le scan ne modifie pas le répertoire."""
        write_units(unit_dir, "mount-def999.service", "sync-photos.timer")
        before = sorted(p.name for p in unit_dir.iterdir())

        Reconciler().reconcile(unit_dir, [], [])

        assert sorted(p.name for p in unit_dir.iterdir()) == before

    def test_configuration_propre(self, unit_dir):
        """Aucune dérive : résultat propre."""
        write_units(unit_dir, "mount-abc123.service")
        mounts = [MountEntry(id="abc123", name="Drive")]

        assert Reconciler().reconcile(unit_dir, mounts, []).is_clean
