import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from utils.constants import LOGS_DIR, LOG_FILE_NAME


def _parse_rotation(value) -> int:
    """Parse a rotation size string (e.g. "5MB", "512KB") into bytes."""
    rot_str = str(value).upper()
    max_bytes = 5 * 1024 * 1024  # Default
    if 'MB' in rot_str:
        try:
            max_bytes = int(rot_str.replace('MB', '')) * 1024 * 1024
        except ValueError: pass
    elif 'KB' in rot_str:
        try:
            max_bytes = int(rot_str.replace('KB', '')) * 1024
        except ValueError: pass
    return max_bytes


class Logger:
    """Enhanced logger with console and rotating file output."""

    _configured = False

    @classmethod
    def setup(cls, settings: dict, quiet: bool = False):
        """
        Global configuration for all Logger instances.

        Args:
            settings: Dictionary containing 'level', 'rotation', 'backup_count', 'dir'
            quiet: Only warnings and errors reach the console
        """
        if cls._configured:
            return

        level_name = str(settings.get('level', 'INFO')).upper()
        level = getattr(logging, level_name, logging.INFO)

        # Configure root logger to affect all modules
        root = logging.getLogger()
        root.setLevel(level)

        if not root.handlers:
            # Common Formatter
            formatter = logging.Formatter(
                '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )

            # 1. Console Handler
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(formatter)
            if quiet:
                console_handler.setLevel(logging.WARNING)
            root.addHandler(console_handler)

            # 2. File Handler (Rotating)
            if settings.get('file', True):
                try:
                    log_dir = Path(settings.get('dir') or LOGS_DIR).expanduser()
                    log_dir.mkdir(parents=True, exist_ok=True)

                    file_handler = RotatingFileHandler(
                        log_dir / LOG_FILE_NAME,
                        maxBytes=_parse_rotation(settings.get('rotation', '5MB')),
                        backupCount=settings.get('backup_count', 5)
                    )
                    file_handler.setFormatter(formatter)
                    root.addHandler(file_handler)
                except OSError as e:
                    print(f"Failed to initialize file logger: {e}", file=sys.stderr)

        cls._configured = True

    def __init__(self, name: str = "BombusCV"):
        """
        Initialize logger instance.
        """
        self.logger = logging.getLogger(name)

    def info(self, message: str):
        self.logger.info(message)

    def warning(self, message: str):
        self.logger.warning(message)

    def error(self, message: str):
        self.logger.error(message)

    def debug(self, message: str):
        self.logger.debug(message)

    def critical(self, message: str):
        self.logger.critical(message)
