"""Configuration management for the MTG Deck Engine."""

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

from .models import FORMAT_LAND_RANGES, Customization

logger = logging.getLogger(__name__)


@dataclass
class DeckBuildingConfig:
    """Persisted defaults for deck generation."""

    # Deck composition preferences
    default_format: int = 99
    land_count: Optional[int] = None  # None means the format default
    non_basic_land_count: int = 15

    # Constraints
    max_card_price: Optional[float] = None
    budget: Optional[str] = None
    bracket: Optional[int] = None
    game_changer_limit: Optional[int] = None

    # API settings
    cache_enabled: bool = True
    cache_ttl_seconds: int = 300
    api_timeout_seconds: int = 15

    # Output preferences
    default_output_dir: str = "."


class ConfigManager:
    """Manages application configuration with file persistence."""

    DEFAULT_CONFIG_DIR = Path.home() / ".mtg_deck_engine"
    DEFAULT_CONFIG_FILE = "config.json"

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_dir: Custom configuration directory (defaults to ~/.mtg_deck_engine)
        """
        self.config_dir = Path(config_dir) if config_dir else self.DEFAULT_CONFIG_DIR
        self.config_file = self.config_dir / self.DEFAULT_CONFIG_FILE
        self._config = DeckBuildingConfig()

        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.load_config()

    def load_config(self) -> DeckBuildingConfig:
        """
        Load configuration from file.

        A corrupt file is moved aside to ``config.json.backup`` and the
        defaults are written in its place.

        Returns:
            Loaded configuration object
        """
        if not self.config_file.exists():
            self.save_config()
            return self._config

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
            if not isinstance(config_data, dict):
                raise ValueError("configuration root must be an object")
        except (json.JSONDecodeError, ValueError, OSError) as e:
            logger.warning(f"Configuration file {self.config_file} is invalid ({e}), restoring defaults")
            backup_file = self.config_file.with_suffix('.json.backup')
            self.config_file.replace(backup_file)
            self._config = DeckBuildingConfig()
            self.save_config()
            return self._config

        for key, value in config_data.items():
            if hasattr(self._config, key):
                setattr(self._config, key, value)

        return self._config

    def save_config(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(asdict(self._config), f, indent=2, sort_keys=True)
        except OSError as e:
            raise RuntimeError(f"Failed to save configuration: {e}")

    def get_config(self) -> DeckBuildingConfig:
        """Get current configuration."""
        return self._config

    def update_config(self, **kwargs) -> None:
        """
        Update configuration values.

        Args:
            **kwargs: Configuration values to update

        Raises:
            ValueError: For unknown configuration options
        """
        for key, value in kwargs.items():
            if hasattr(self._config, key):
                setattr(self._config, key, value)
            else:
                raise ValueError(f"Unknown configuration option: {key}")

        self.save_config()

    def reset_to_defaults(self) -> None:
        """Reset configuration to default values."""
        self._config = DeckBuildingConfig()
        self.save_config()

    def get_cache_dir(self) -> Path:
        """Get cache directory path."""
        cache_dir = self.config_dir / "cache"
        cache_dir.mkdir(exist_ok=True)
        return cache_dir

    def get_logs_dir(self) -> Path:
        """Get logs directory path."""
        logs_dir = self.config_dir / "logs"
        logs_dir.mkdir(exist_ok=True)
        return logs_dir


def load_user_config() -> DeckBuildingConfig:
    """Load user configuration from the default location, with env overrides."""
    return apply_env_overrides(ConfigManager().get_config())


def _optional(converter):
    def convert(value: str) -> Any:
        if value.strip().lower() in ('', 'none', 'null'):
            return None
        return converter(value)
    return convert


def _bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def apply_env_overrides(config: DeckBuildingConfig) -> DeckBuildingConfig:
    """
    Apply environment variable overrides to configuration.

    Args:
        config: Base configuration to override

    Returns:
        Configuration with environment overrides applied
    """
    env_mappings = {
        'MTG_DECK_ENGINE_FORMAT': ('default_format', int),
        'MTG_DECK_ENGINE_LANDS': ('land_count', _optional(int)),
        'MTG_DECK_ENGINE_NON_BASIC_LANDS': ('non_basic_land_count', int),
        'MTG_DECK_ENGINE_MAX_PRICE': ('max_card_price', _optional(float)),
        'MTG_DECK_ENGINE_BUDGET': ('budget', _optional(str)),
        'MTG_DECK_ENGINE_BRACKET': ('bracket', _optional(int)),
        'MTG_DECK_ENGINE_GAME_CHANGER_LIMIT': ('game_changer_limit', _optional(int)),
        'MTG_DECK_ENGINE_CACHE_ENABLED': ('cache_enabled', _bool),
        'MTG_DECK_ENGINE_CACHE_TTL': ('cache_ttl_seconds', int),
        'MTG_DECK_ENGINE_TIMEOUT': ('api_timeout_seconds', int),
        'MTG_DECK_ENGINE_OUTPUT_DIR': ('default_output_dir', str),
    }

    for env_var, (attr_name, converter) in env_mappings.items():
        env_value = os.getenv(env_var)
        if env_value is not None:
            try:
                setattr(config, attr_name, converter(env_value))
            except (ValueError, TypeError):
                logger.warning(f"Ignoring invalid value for {env_var}: {env_value!r}")

    return config


def build_customization(config: DeckBuildingConfig, **overrides) -> Customization:
    """
    Build a validated Customization from configuration plus explicit overrides.

    Overrides set to None fall back to the configured value.

    Args:
        config: Configuration defaults
        **overrides: Customization fields, e.g. from command-line arguments

    Returns:
        Customization instance

    Raises:
        ValueError: If the combined values are invalid
    """
    values = {
        'format_size': config.default_format,
        'land_count': config.land_count,
        'non_basic_land_count': config.non_basic_land_count,
        'max_card_price': config.max_card_price,
        'budget': config.budget,
        'bracket': config.bracket,
        'game_changer_limit': config.game_changer_limit,
    }
    values.update({key: value for key, value in overrides.items() if value is not None})

    format_size = values.pop('format_size')
    if format_size not in FORMAT_LAND_RANGES:
        raise ValueError(f"Unsupported format size {format_size}, expected one of {sorted(FORMAT_LAND_RANGES)}")

    if values.get('land_count') is None:
        values.pop('land_count', None)

    return Customization.for_format(format_size, **values)
