"""
Configuration management for BombusCV.

Sources are merged in order, later ones winning:
    1. built-in DEFAULTS
    2. every JSON file in the project ``configs`` directory
    3. the user file ($BOMBUSCV_CONFIG or $XDG_CONFIG_HOME/bombuscv/config.json)
    4. environment variables
"""
import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from utils.constants import (
    CONFIG_ENV_VAR,
    CONFIGS_DIR,
    DEFAULT_FILENAME_FORMAT,
    DEFAULT_QUEUE_SIZE,
    DILATE_ITERATIONS,
    BLUR_SIGMA,
    RESOLUTIONS,
    THRESHOLD,
    USER_CONFIG_SUBPATH,
)
from utils.failures import BrokenConfig, ConfigNotFound

CODECS = ("MJPG", "XVID", "MP4V", "H264")

DEFAULTS: Dict[str, Any] = {
    "capture": {
        "index": 0,
        "framerate": 60.0,
        "resolution": "480p",
        "directory": None,  # home directory
        "format": DEFAULT_FILENAME_FORMAT,
        "codec": "XVID",
        "overlay": False,
        "quiet": False,
    },
    "pipeline": {
        "queue_size": DEFAULT_QUEUE_SIZE,
    },
    "motion": {
        "threshold": THRESHOLD,
        "blur_sigma": BLUR_SIGMA,
        "dilate_iterations": DILATE_ITERATIONS,
        "first_frame_motion": True,
    },
    "logging": {
        "level": "INFO",
        "rotation": "5MB",
        "backup_count": 5,
        "file": True,
        "dir": None,
    },
    "failures": {
        "threshold": 25,
        "window_seconds": 60,
    },
}


def home_dir() -> Path:
    """Absolute path of the user's home directory."""
    try:
        return Path.home()
    except RuntimeError as e:
        raise ConfigNotFound(f"unable to find home directory: {e}") from e


def expand_home(path) -> Path:
    """Expand a leading ``~`` in *path* to the absolute home path."""
    path = Path(path)
    if path.parts and path.parts[0] == "~":
        return home_dir().joinpath(*path.parts[1:])
    return path


def user_config_path() -> Path:
    """Location of the user configuration file."""
    custom = os.environ.get(CONFIG_ENV_VAR)
    if custom:
        return expand_home(custom)

    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else home_dir() / ".config"
    return base / USER_CONFIG_SUBPATH


class Config:
    """Configuration manager that merges defaults, JSON files and environment."""

    def __init__(self, configs_dir: Optional[str] = None, user_config: Optional[str] = None,
                 load_user: bool = True, strict: bool = False):
        """
        Initialize configuration.

        Args:
            configs_dir: Directory of JSON configs (defaults to <project>/configs)
            user_config: Explicit user config file (defaults to user_config_path())
            load_user: Set to False to skip the user config file entirely
            strict: A missing or unreadable ``user_config`` raises BrokenConfig
                    instead of falling back to defaults

        Raises:
            BrokenConfig: strict mode and the user config cannot be used.
        """
        self.config: Dict[str, Any] = copy.deepcopy(DEFAULTS)
        # Collected here because logging is configured from this very object
        self.warnings: List[str] = []

        configs_dir = Path(configs_dir) if configs_dir else CONFIGS_DIR

        # 1. Load all JSON files if directory exists
        if configs_dir.exists() and configs_dir.is_dir():
            for config_file in sorted(configs_dir.glob("*.json")):
                self.load_from_file(str(config_file))

        # 2. User config file
        if load_user:
            path = Path(user_config) if user_config else user_config_path()
            if path.is_file():
                self.load_from_file(str(path), strict=strict and bool(user_config))
            elif strict and user_config:
                raise BrokenConfig(f"config file not found: {path}")

        # 3. Override from environment variables if present
        self._load_from_env()

        self.validate()

    def _load_from_env(self):
        """Load configuration from environment variables."""
        if os.environ.get('BOMBUSCV_DIRECTORY'):
            self.set('capture.directory', os.environ.get('BOMBUSCV_DIRECTORY'))
        if os.environ.get('BOMBUSCV_LOG_LEVEL'):
            self.set('logging.level', os.environ.get('BOMBUSCV_LOG_LEVEL'))

    def load_from_file(self, path: str, strict: bool = False):
        """Load configuration from JSON file."""
        try:
            with open(path, 'r') as f:
                user_config = json.load(f)
        except (OSError, ValueError) as e:
            self._reject_file(path, str(e), strict)
            return

        if not isinstance(user_config, dict):
            self._reject_file(path, "not a JSON object", strict)
            return
        self._merge_config(user_config)

    def _reject_file(self, path: str, reason: str, strict: bool):
        if strict:
            raise BrokenConfig(f"invalid config '{path}' ({reason})")
        self.warnings.append(f"invalid config '{path}' ({reason}), using defaults")

    def _merge_config(self, user_config: Dict[str, Any]):
        """Merge user config with defaults recursively."""
        def update(d, u):
            for k, v in u.items():
                if isinstance(v, dict):
                    d[k] = update(d.get(k, {}), v)
                else:
                    d[k] = v
            return d

        update(self.config, user_config)

    def validate(self):
        """Replace invalid capture options with their defaults, recording a warning each."""
        capture = self.config.setdefault('capture', {})
        defaults = DEFAULTS['capture']

        def reject(key: str, reason: str):
            self.warnings.append(f"'{key}': {reason}, using default {defaults[key]!r}")
            capture[key] = defaults[key]

        index = capture.get('index')
        if not isinstance(index, int) or isinstance(index, bool) or index < 0:
            reject('index', "invalid camera index (must be an integer >= 0)")

        framerate = capture.get('framerate')
        if isinstance(framerate, bool) or not isinstance(framerate, (int, float)) or framerate <= 0:
            reject('framerate', "invalid framerate (must be > 0)")

        if capture.get('resolution') not in RESOLUTIONS:
            reject('resolution', "invalid resolution value")

        if str(capture.get('codec', '')).upper() not in CODECS:
            reject('codec', "invalid codec value")

        directory = capture.get('directory')
        if directory is not None and not expand_home(directory).is_dir():
            reject('directory', "given path is not a directory")

        if not isinstance(capture.get('format'), str) or not capture.get('format'):
            reject('format', "invalid filename format")

    def get_int(self, key: str, default: int = 0) -> int:
        """Get config value as integer."""
        val = self.get(key, default)
        try:
            return int(val)
        except (ValueError, TypeError):
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        """Get config value as float."""
        val = self.get(key, default)
        try:
            return float(val)
        except (ValueError, TypeError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Get config value as boolean."""
        val = self.get(key, default)
        if isinstance(val, bool):
            return val
        if isinstance(val, str):
            return val.lower() in ('true', '1', 'yes', 'on')
        return bool(val)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any):
        """Set a configuration value by dotted key."""
        keys = key.split('.')
        node = self.config
        for k in keys[:-1]:
            node = node.setdefault(k, {})
        node[keys[-1]] = value

    def output_directory(self) -> Path:
        """Resolved output directory (home directory when unset)."""
        directory = self.get('capture.directory')
        return expand_home(directory) if directory else home_dir()
