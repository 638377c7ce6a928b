"""Module de logging."""

from rclone_mount_sync.logging.base import Logger
from rclone_mount_sync.logging.file_logger import FileLogger, default_log_file

__all__ = [
    "Logger",
    "FileLogger",
    "default_log_file",
]
