"""Tests pour le module config."""

import json
from datetime import datetime
from unittest.mock import patch

import pytest
from pydantic import BaseModel

from rclone_mount_sync.config import (
    ConfigFileModel,
    JsonConfigLoader,
    JsonConfigStore,
    SettingsModel,
    default_config_path,
)
from rclone_mount_sync.config.schema import SyncEntryModel
from rclone_mount_sync.errors import (
    ConfigPersistenceError,
    ConfigurationError,
    DuplicateEntryError,
)
from rclone_mount_sync.models import (
    MountEntry,
    MountOptions,
    ScheduleConfig,
    ScheduleType,
    SyncEntry,
    SyncOptions,
)


class SampleModel(BaseModel):
    name: str
    retries: int = 3


class TestJsonConfigLoader:
    """Tests pour JsonConfigLoader."""

    def test_load_json_brut(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"name": "test", "retries": 5}')

        assert JsonConfigLoader().load(path) == {"name": "test", "retries": 5}

    def test_load_json_avec_schema(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"name": "test"}')

        model = JsonConfigLoader().load(path, schema=SampleModel)

        assert model == SampleModel(name="test", retries=3)

    def test_fichier_absent(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            JsonConfigLoader().load(tmp_path / "absent.json")

    @pytest.mark.parametrize("filename", ["config.toml", "config.yaml"])
    def test_extension_non_supportee(self, tmp_path, filename):
        path = tmp_path / filename
        path.write_text('name = "test"\n')

        with pytest.raises(ValueError, match="Extension non supportée"):
            JsonConfigLoader().load(path)

    def test_racine_non_objet(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")

        with pytest.raises(ValueError, match="objet JSON"):
            JsonConfigLoader().load(path)

    def test_schema_invalide(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{}")

        with pytest.raises(TypeError):
            JsonConfigLoader().load(path, schema=dict)


class TestSchema:
    """Tests pour les modèles Pydantic du fichier de configuration."""

    def test_defauts(self):
        settings = SettingsModel()

        assert settings.systemctl_timeout == 30.0
        assert settings.default_mount_dir == "~/mnt"
        assert settings.logging.level == "INFO"

    def test_niveau_log_normalise(self):
        settings = SettingsModel.model_validate({"logging": {"level": "debug"}})

        assert settings.logging.level == "DEBUG"

    def test_sync_entry_aller_retour(self):
        entry = SyncEntry(
            id="5d1c0a77",
            name="Photos",
            source="gdrive:/Photos",
            destination="~/Photos",
            sync_options=SyncOptions(direction="copy", transfers=4),
            schedule=ScheduleConfig().with_type("onboot", "5min"),
        )

        model = SyncEntryModel.from_entry(entry)

        assert model.to_entry() == entry
        assert model.schedule.type == ScheduleType.ON_BOOT

    def test_cles_inconnues_ignorees(self):
        model = ConfigFileModel.model_validate(
            {"mounts": [{"id": "a1", "name": "A", "legacy_field": 1}],
             "ui": {"theme": "dark"}}
        )

        assert model.mounts[0].id == "a1"


class TestConfigStore:
    """Tests pour les opérations de ConfigStore."""

    def test_get_et_find_by_name(self):
        store = JsonConfigStore(mounts=[MountEntry(id="a1", name="Drive")])

        assert store.get("mount", "a1").name == "Drive"
        assert store.get("sync", "a1") is None
        assert store.find_by_name("mount", "Drive").id == "a1"

    def test_ensure_unique_name(self):
        store = JsonConfigStore(mounts=[MountEntry(id="a1", name="Drive")])

        with pytest.raises(DuplicateEntryError):
            store.ensure_unique_name("mount", "Drive")
        store.ensure_unique_name("mount", "Drive", exclude_id="a1")
        store.ensure_unique_name("sync", "Drive")

    def test_set_entries_remplace_la_liste(self):
        store = JsonConfigStore()
        entries = [SyncEntry(id="b2", name="B")]

        store.set_entries("sync", entries)
        entries.clear()

        assert len(store.sync_jobs) == 1


class TestJsonConfigStore:
    """Tests pour le chargement et l'enregistrement JSON."""

    def test_fichier_absent(self, tmp_path):
        store = JsonConfigStore.load(tmp_path / "config.json")

        assert store.mounts == []
        assert store.sync_jobs == []
        assert store.settings == SettingsModel()

    def test_aller_retour(self, tmp_path):
        path = tmp_path / "cfg" / "config.json"
        mount = MountEntry(
            id="abc123",
            name="Drive",
            remote="gdrive:",
            mount_point="~/mnt/gdrive",
            mount_options=MountOptions(vfs_cache_mode="full"),
            created_at=datetime(2026, 1, 2, 3, 4, 5),
        )
        sync = SyncEntry(
            id="5d1c0a77",
            name="Photos",
            schedule=ScheduleConfig().with_type("timer", "daily"),
        )
        store = JsonConfigStore(path, [mount], [sync])

        store.save()
        loaded = JsonConfigStore.load(path)

        assert loaded.mounts == [mount]
        assert loaded.mounts[0].created_at == mount.created_at
        assert loaded.sync_jobs == [sync]
        data = json.loads(path.read_text())
        assert data["version"] == "1.0"
        assert data["mounts"][0]["mount_options"]["vfs_cache_mode"] == "full"

    def test_sauvegarde_bak(self, tmp_path):
        path = tmp_path / "config.json"
        store = JsonConfigStore(path)
        store.save()
        first = path.read_text()

        store.set_entries("mount", [MountEntry(id="a1", name="A")])
        store.save()

        assert store.backup_path.read_text() == first
        assert not path.with_name("config.json.tmp").exists()

    def test_json_invalide(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError, match="Impossible de lire"):
            JsonConfigStore.load(path)

    def test_schema_invalide(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"mounts": [{"id": "", "name": "A"}]}')

        with pytest.raises(ConfigurationError, match="invalide"):
            JsonConfigStore.load(path)

    def test_identifiants_dupliques(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"mounts": [
            {"id": "a1", "name": "A"}, {"id": "a1", "name": "B"},
        ]}))

        with pytest.raises(ConfigurationError, match="dupliqués"):
            JsonConfigStore.load(path)

    def test_echec_enregistrement(self, tmp_path):
        store = JsonConfigStore(tmp_path / "config.json")

        with patch(
            "rclone_mount_sync.config.store.os.replace",
            side_effect=OSError("disque plein"),
        ):
            with pytest.raises(ConfigPersistenceError) as exc_info:
                store.save()

        assert exc_info.value.path == str(store.path)
        assert not (tmp_path / "config.json.tmp").exists()

    def test_chemin_toml_refuse(self, tmp_path):
        """Un fichier non JSON n'est ni lu ni réécrit en JSON."""
        path = tmp_path / "config.toml"
        path.write_text('[settings]\nsystemctl_timeout = 5\n')

        with pytest.raises(ConfigurationError, match=r"\.json"):
            JsonConfigStore.load(path)
        with pytest.raises(ConfigurationError, match=r"\.json"):
            JsonConfigStore(path)

        assert path.read_text() == '[settings]\nsystemctl_timeout = 5\n'
        assert list(tmp_path.iterdir()) == [path]

    def test_enregistrement_relu_apres_rechargement(self, tmp_path):
        """Un fichier enregistré puis modifié se recharge à l'identique."""
        path = tmp_path / "config.json"
        store = JsonConfigStore.load(path)
        store.set_entries("mount", [MountEntry(id="a1", name="A")])
        store.save()

        reloaded = JsonConfigStore.load(path)
        reloaded.set_entries("sync", [SyncEntry(id="b2", name="B")])
        reloaded.save()

        final = JsonConfigStore.load(path)
        assert [m.id for m in final.mounts] == ["a1"]
        assert [j.id for j in final.sync_jobs] == ["b2"]

    def test_chemin_par_defaut(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

        assert default_config_path() == (
            tmp_path / "rclone-mount-sync" / "config.json"
        )
