"""Module de configuration."""

from rclone_mount_sync.config.loader import ConfigLoader, JsonConfigLoader
from rclone_mount_sync.config.schema import (
    ConfigFileModel,
    LoggingModel,
    SettingsModel,
)
from rclone_mount_sync.config.store import (
    ConfigStore,
    JsonConfigStore,
    default_config_path,
)

__all__ = [
    "ConfigLoader",
    "JsonConfigLoader",
    "ConfigFileModel",
    "LoggingModel",
    "SettingsModel",
    "ConfigStore",
    "JsonConfigStore",
    "default_config_path",
]
