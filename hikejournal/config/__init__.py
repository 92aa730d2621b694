"""YAML configuration loader for the hike journal."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from ..models.reminders import ReminderSettings

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    'storage': {
        'data_directory': 'data',
        'temp_directory': None,
    },
    'audio': {
        'sample_rate': 22050,
        'chunk_size': 1024,
        'channels': 1,
        'tick_interval': 0.1,
    },
    'reminders': {
        'notifications_enabled': True,
        'hike_reminders_enabled': False,
        'hike_reminder_interval_minutes': 30,
        'hike_reminder_count': 10,
        'motivation_enabled': False,
        'motivation_days': 3,
        'motivation_hour': 10,
        'motivation_minute': 0,
    },
    'logging': {
        'level': 'INFO',
        'file_path': 'data/logs/hikejournal.log',
        'console_output': True,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class HikeJournalConfig:
    """Hike journal configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults are
                        used and relative paths resolve against the working directory.
        """
        self.config_file = Path(config_path) if config_path else None

        if self.config_file is not None and not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse the YAML configuration file on top of the defaults."""
        if self.config_file is None:
            logger.info("No configuration file given, using defaults")
            config = copy.deepcopy(DEFAULT_CONFIG)
            self._resolve_paths(config, Path.cwd())
            return config

        logger.info(f"Loading configuration from: {self.config_file}")
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        config = _deep_merge(DEFAULT_CONFIG, loaded)
        self._resolve_paths(config, self.config_file.parent)
        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any], base_dir: Path) -> None:
        """Resolve relative paths in configuration against base_dir."""
        for section, key in (('storage', 'data_directory'),
                             ('storage', 'temp_directory'),
                             ('logging', 'file_path')):
            value = config.get(section, {}).get(key)
            if value and not os.path.isabs(value):
                config[section][key] = str(base_dir / value)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'reminders.motivation_days').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def save(self, path: Optional[str] = None) -> Path:
        """Write the current configuration back to YAML."""
        target = Path(path) if path else self.config_file
        if target is None:
            raise ValueError("No configuration file path to save to")
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.config, f, sort_keys=False)
        logger.info(f"Configuration saved to: {target}")
        return target

    def get_data_directory(self) -> str:
        """Get data directory path."""
        data_dir = self.get('storage.data_directory', 'data')
        return str(Path(data_dir).absolute())

    def get_temp_directory(self) -> Optional[str]:
        """Directory for in-flight capture files, or None for the system default."""
        temp_dir = self.get('storage.temp_directory')
        return str(Path(temp_dir).absolute()) if temp_dir else None

    def get_reminder_settings(self) -> ReminderSettings:
        """Build reminder settings from the 'reminders' section."""
        return ReminderSettings(
            notifications_enabled=bool(self.get('reminders.notifications_enabled', True)),
            hike_reminders_enabled=bool(self.get('reminders.hike_reminders_enabled', False)),
            hike_reminder_interval_minutes=int(self.get('reminders.hike_reminder_interval_minutes', 30)),
            motivation_enabled=bool(self.get('reminders.motivation_enabled', False)),
            motivation_days=int(self.get('reminders.motivation_days', 3)),
            motivation_hour=int(self.get('reminders.motivation_hour', 10)),
            motivation_minute=int(self.get('reminders.motivation_minute', 0)),
        )
