"""Implémentation concrète du logger avec fichier."""

import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from rclone_mount_sync.logging.base import Logger

DEFAULT_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def default_log_file() -> Path:
    """Retourne le fichier de log par défaut.

    Utilise ``$XDG_STATE_HOME`` si défini, sinon ``~/.local/state``.

    Returns:
        Chemin du fichier ``rclone-mount-sync.log``.
    """
    state_home = os.environ.get("XDG_STATE_HOME")
    if state_home:
        base = Path(state_home)
    else:
        base = Path.home() / ".local" / "state"
    return base / "rclone-mount-sync" / "rclone-mount-sync.log"


class FileLogger(Logger):
    """
    Logger qui écrit dans un fichier avec option console.

    Caractéristiques:
    - Logger unique par fichier (évite les conflits)
    - Encodage UTF-8 explicite
    - Flush immédiat après chaque log
    - Pas de propagation (évite les logs en double)
    - Support optionnel de la sortie console
    """

    def __init__(
        self,
        log_file: str | Path,
        config: Optional[Mapping[str, Any]] = None,
        console_output: bool = False
    ) -> None:
        """
        Initialise le logger.

        Args:
            log_file: Chemin du fichier de log
            config: Section ``logging`` optionnelle de la configuration
                    (clés supportées: level, format)
            console_output: Activer la sortie console en plus du fichier
        """
        self.log_file = str(log_file)

        log_dir = os.path.dirname(self.log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        config = config or {}
        level_name = str(config.get("level") or "INFO").upper()
        log_format = config.get("format") or DEFAULT_LOG_FORMAT
        log_level = getattr(logging, level_name, logging.INFO)

        self.logger = logging.getLogger(f"rclone_mount_sync:{self.log_file}")
        self.logger.setLevel(log_level)

        # Éviter les handlers dupliqués
        if not self.logger.handlers:
            formatter = logging.Formatter(log_format)
            file_handler = logging.FileHandler(
                self.log_file, encoding="utf-8"
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)
            self.handler = file_handler

            if console_output:
                console_handler = logging.StreamHandler()
                console_handler.setLevel(log_level)
                console_handler.setFormatter(formatter)
                self.logger.addHandler(console_handler)
        else:
            self.handler = self.logger.handlers[0]

        self.logger.propagate = False

    def _flush(self) -> None:
        """Force l'écriture immédiate sur le disque."""
        if self.handler:
            self.handler.flush()

    def log_info(self, message: str) -> None:
        """Log un message d'information."""
        self.logger.info(message)
        self._flush()

    def log_warning(self, message: str) -> None:
        """Log un avertissement."""
        self.logger.warning(message)
        self._flush()

    def log_error(self, message: str) -> None:
        """Log une erreur."""
        self.logger.error(message)
        self._flush()
