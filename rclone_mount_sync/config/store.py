"""Stockage persistant des entrées de configuration.

Le gestionnaire de transactions ne manipule les listes d'entrées que par
affectation complète (``set_entries``), ce qui rend le snapshot et la
restauration triviaux.
"""

import json
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

import pydantic

from rclone_mount_sync.config.loader import ConfigLoader, JsonConfigLoader
from rclone_mount_sync.config.schema import (
    ConfigFileModel,
    MountEntryModel,
    SettingsModel,
    SyncEntryModel,
)
from rclone_mount_sync.errors import (
    ConfigPersistenceError,
    ConfigurationError,
    DuplicateEntryError,
)
from rclone_mount_sync.models import Entry, MountEntry, SyncEntry, UnitKind

APP_NAME = "rclone-mount-sync"


def default_config_path() -> Path:
    """Retourne le chemin par défaut du fichier de configuration.

    Utilise ``$XDG_CONFIG_HOME`` si défini, sinon ``~/.config``.
    """
    config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else Path.home() / ".config"
    return base / APP_NAME / "config.json"


class ConfigStore(ABC):
    """Interface du stockage des entrées.

    Expose une liste ordonnée d'entrées par type, la recherche par
    identifiant et la persistance.

    Attributes:
        mounts: Points de montage déclarés.
        sync_jobs: Tâches de synchronisation déclarées.
        settings: Réglages globaux.
    """

    def __init__(
        self,
        mounts: Sequence[MountEntry] = (),
        sync_jobs: Sequence[SyncEntry] = (),
        settings: SettingsModel | None = None
    ) -> None:
        self.mounts: list[MountEntry] = list(mounts)
        self.sync_jobs: list[SyncEntry] = list(sync_jobs)
        self.settings = settings or SettingsModel()

    def entries(self, kind: str) -> list[Entry]:
        """Retourne la liste vivante des entrées d'un type.

        Args:
            kind: "mount" ou "sync".
        """
        if UnitKind(kind) == UnitKind.MOUNT:
            return self.mounts
        return self.sync_jobs

    def set_entries(self, kind: str, entries: Sequence[Entry]) -> None:
        """Remplace intégralement la liste des entrées d'un type.

        Args:
            kind: "mount" ou "sync".
            entries: Nouvelle liste (copiée).
        """
        if UnitKind(kind) == UnitKind.MOUNT:
            self.mounts = list(entries)
        else:
            self.sync_jobs = list(entries)

    def get(self, kind: str, entry_id: str) -> Entry | None:
        """Recherche une entrée par identifiant."""
        for entry in self.entries(kind):
            if entry.id == entry_id:
                return entry
        return None

    def find_by_name(self, kind: str, name: str) -> Entry | None:
        """Recherche une entrée par nom d'affichage."""
        for entry in self.entries(kind):
            if entry.name == name:
                return entry
        return None

    def ensure_unique_name(
        self, kind: str, name: str, exclude_id: str = ""
    ) -> None:
        """Vérifie qu'aucune entrée voisine ne porte déjà ce nom.

        Args:
            kind: "mount" ou "sync".
            name: Nom à vérifier.
            exclude_id: Identifiant à ignorer (renommage sur place).

        Raises:
            DuplicateEntryError: Si le nom est déjà utilisé.
        """
        existing = self.find_by_name(kind, name)
        if existing is not None and existing.id != exclude_id:
            label = "montage" if kind == UnitKind.MOUNT else "synchronisation"
            raise DuplicateEntryError(
                f"Une entrée de {label} nommée {name!r} existe déjà"
            )

    @abstractmethod
    def save(self) -> None:
        """Persiste l'état courant.

        Raises:
            ConfigPersistenceError: Si l'écriture échoue.
        """
        pass


def _json_path(path: str | Path | None) -> Path:
    """Chemin du fichier, refusé s'il n'est pas en .json.

    Le stockage réécrit toujours du JSON au même chemin.
    """
    path = Path(path) if path else default_config_path()
    if path.suffix.lower() != ".json":
        raise ConfigurationError(
            f"Le fichier de configuration doit être en .json: {path}"
        )
    return path

class JsonConfigStore(ConfigStore):
    """Stockage des entrées dans un fichier JSON.

    L'écriture passe par un fichier temporaire renommé atomiquement ;
    l'ancien fichier est conservé en ``.bak``.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        mounts: Sequence[MountEntry] = (),
        sync_jobs: Sequence[SyncEntry] = (),
        settings: SettingsModel | None = None
    ) -> None:
        super().__init__(mounts, sync_jobs, settings)
        self.path = _json_path(path)

    @property
    def backup_path(self) -> Path:
        """Chemin de la sauvegarde du fichier précédent."""
        return self.path.with_name(self.path.name + ".bak")

    @classmethod
    def load(
        cls,
        path: str | Path | None = None,
        loader: ConfigLoader | None = None
    ) -> "JsonConfigStore":
        """Charge le fichier de configuration.

        Un fichier absent donne une configuration vide avec les
        réglages par défaut.

        Args:
            path: Chemin du fichier (défaut: XDG).
            loader: Chargeur injectable (défaut: JsonConfigLoader).

        Returns:
            Le stockage chargé.

        Raises:
            ConfigurationError: Si le chemin n'est pas un .json, ou si le
                fichier est illisible ou invalide.
        """
        path = _json_path(path)
        if not path.exists():
            return cls(path)

        loader = loader or JsonConfigLoader()
        try:
            model = loader.load(path, schema=ConfigFileModel)
        except pydantic.ValidationError as e:
            raise ConfigurationError(
                f"Configuration invalide dans {path}: {e}"
            ) from e
        except (OSError, ValueError) as e:
            raise ConfigurationError(
                f"Impossible de lire {path}: {e}"
            ) from e

        mounts = [m.to_entry() for m in model.mounts]
        sync_jobs = [j.to_entry() for j in model.sync_jobs]
        for kind, entries in (("mount", mounts), ("sync", sync_jobs)):
            ids = [e.id for e in entries]
            if len(ids) != len(set(ids)):
                raise ConfigurationError(
                    f"Identifiants {kind} dupliqués dans {path}"
                )
        return cls(path, mounts, sync_jobs, model.settings)

    def to_model(self) -> ConfigFileModel:
        """Construit le modèle Pydantic de l'état courant."""
        return ConfigFileModel(
            mounts=[MountEntryModel.from_entry(m) for m in self.mounts],
            sync_jobs=[SyncEntryModel.from_entry(j) for j in self.sync_jobs],
            settings=self.settings,
        )

    def save(self) -> None:
        """Écrit la configuration de manière atomique.

        Raises:
            ConfigPersistenceError: Si l'écriture échoue.
        """
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self.path.exists():
                shutil.copy2(self.path, self.backup_path)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(
                    self.to_model().to_json_dict(),
                    f,
                    indent=2,
                    ensure_ascii=False,
                )
                f.write("\n")
            os.replace(tmp_path, self.path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise ConfigPersistenceError(
                f"Échec de l'enregistrement de {self.path}: {e}",
                path=str(self.path),
            ) from e
