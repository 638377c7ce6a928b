"""Lecture du fichier de configuration JSON."""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import BaseModel


class ConfigLoader(ABC):
    """
    Interface abstraite pour la lecture de la configuration.

    Le stockage reçoit un chargeur injecté ; les tests peuvent ainsi
    fournir des données sans fichier.
    """

    @abstractmethod
    def load(
        self,
        config_path: str | Path,
        schema: type[BaseModel] | None = None
    ) -> dict[str, Any] | BaseModel:
        """
        Lit un fichier de configuration.

        Args:
            config_path: Chemin du fichier
            schema: Modèle Pydantic optionnel. Si fourni, retourne une
                instance validée, sinon le dict brut.

        Raises:
            FileNotFoundError: Si le fichier n'existe pas
            ValueError: Si le fichier n'est pas un JSON valide
            TypeError: Si schema n'est pas un BaseModel
        """
        pass


class JsonConfigLoader(ConfigLoader):
    """Chargeur du fichier JSON, avec validation Pydantic optionnelle."""

    def load(
        self,
        config_path: str | Path,
        schema: type[BaseModel] | None = None
    ) -> dict[str, Any] | BaseModel:
        """
        Lit un fichier .json.

        Raises:
            FileNotFoundError: Si le fichier n'existe pas
            ValueError: Si l'extension n'est pas .json ou si le
                contenu n'est pas un objet JSON
            TypeError: Si schema n'est pas un BaseModel
            pydantic.ValidationError: Si les données sont invalides
        """
        path = Path(config_path)
        if path.suffix.lower() != ".json":
            raise ValueError(
                f"Extension non supportée: {path.suffix or '(aucune)'}. "
                "Le fichier de configuration doit être en .json"
            )

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(
                f"La racine de {path} doit être un objet JSON"
            )

        if schema is None:
            return data
        if not (isinstance(schema, type) and issubclass(schema, BaseModel)):
            raise TypeError(
                "Le schema doit être une sous-classe de "
                f"pydantic.BaseModel, reçu: {schema}"
            )
        return schema.model_validate(data)
