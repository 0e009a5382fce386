"""
Tests for configuration loading, environment overrides and customization building.
"""

import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from mtg_deck_engine.config import (
    ConfigManager, DeckBuildingConfig, apply_env_overrides, build_customization
)


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager persistence."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_creates_default_config(self):
        """Test that a missing file is created with defaults."""
        manager = ConfigManager(self.temp_dir)

        self.assertTrue(manager.config_file.exists())
        self.assertEqual(manager.get_config(), DeckBuildingConfig())

    def test_loads_saved_values(self):
        """Test reading values written by a previous run."""
        ConfigManager(self.temp_dir).update_config(default_format=60, max_card_price=5.0)

        config = ConfigManager(self.temp_dir).get_config()

        self.assertEqual(config.default_format, 60)
        self.assertEqual(config.max_card_price, 5.0)

    def test_unknown_keys_in_file_are_ignored(self):
        """Test forward compatibility with extra keys."""
        (self.temp_dir / 'config.json').write_text(json.dumps({'bracket': 2, 'theme_color': 'blue'}), encoding='utf-8')

        config = ConfigManager(self.temp_dir).get_config()

        self.assertEqual(config.bracket, 2)
        self.assertFalse(hasattr(config, 'theme_color'))

    def test_corrupt_file_is_backed_up(self):
        """Test recovery from an unreadable configuration file."""
        (self.temp_dir / 'config.json').write_text('{broken', encoding='utf-8')

        manager = ConfigManager(self.temp_dir)

        self.assertEqual(manager.get_config(), DeckBuildingConfig())
        self.assertEqual((self.temp_dir / 'config.json.backup').read_text(encoding='utf-8'), '{broken')
        self.assertEqual(json.loads(manager.config_file.read_text(encoding='utf-8'))['default_format'], 99)

    def test_update_rejects_unknown_option(self):
        """Test validation of update keys."""
        manager = ConfigManager(self.temp_dir)

        with self.assertRaises(ValueError):
            manager.update_config(colour='green')

    def test_reset_and_directories(self):
        """Test reset and the cache and logs directories."""
        manager = ConfigManager(self.temp_dir)
        manager.update_config(non_basic_land_count=3)

        manager.reset_to_defaults()

        self.assertEqual(manager.get_config().non_basic_land_count, 15)
        self.assertTrue(manager.get_cache_dir().is_dir())
        self.assertTrue(manager.get_logs_dir().is_dir())


class TestEnvironmentOverrides(unittest.TestCase):
    """Test cases for apply_env_overrides."""

    @patch.dict('os.environ', {
        'MTG_DECK_ENGINE_FORMAT': '60',
        'MTG_DECK_ENGINE_MAX_PRICE': '2.5',
        'MTG_DECK_ENGINE_CACHE_ENABLED': 'false',
        'MTG_DECK_ENGINE_BUDGET': 'budget',
        'MTG_DECK_ENGINE_OUTPUT_DIR': '/tmp/decks',
    })
    def test_overrides_are_applied(self):
        """Test typed environment overrides."""
        config = apply_env_overrides(DeckBuildingConfig())

        self.assertEqual(config.default_format, 60)
        self.assertEqual(config.max_card_price, 2.5)
        self.assertFalse(config.cache_enabled)
        self.assertEqual(config.budget, 'budget')
        self.assertEqual(config.default_output_dir, '/tmp/decks')

    @patch.dict('os.environ', {'MTG_DECK_ENGINE_LANDS': 'many', 'MTG_DECK_ENGINE_BRACKET': 'none'})
    def test_invalid_and_empty_values(self):
        """Test that invalid values are ignored and 'none' clears a setting."""
        config = DeckBuildingConfig(land_count=35, bracket=4)

        with self.assertLogs('mtg_deck_engine.config', level='WARNING'):
            apply_env_overrides(config)

        self.assertEqual(config.land_count, 35)
        self.assertIsNone(config.bracket)


class TestBuildCustomization(unittest.TestCase):
    """Test cases for build_customization."""

    def test_defaults_from_config(self):
        """Test a customization built from defaults only."""
        customization = build_customization(DeckBuildingConfig())

        self.assertEqual(customization.format_size, 99)
        self.assertEqual(customization.land_count, 37)
        self.assertEqual(customization.non_basic_land_count, 15)

    def test_format_default_land_count(self):
        """Test that the land count follows the chosen format."""
        self.assertEqual(build_customization(DeckBuildingConfig(), format_size=40).land_count, 16)
        self.assertEqual(build_customization(DeckBuildingConfig(default_format=60)).land_count, 23)

    def test_overrides_win_and_none_is_ignored(self):
        """Test override precedence."""
        config = DeckBuildingConfig(max_card_price=10.0, bracket=2)

        customization = build_customization(
            config, max_card_price=None, bracket=4, banned_cards={'Sol Ring'}, land_count=50
        )

        self.assertEqual(customization.max_card_price, 10.0)
        self.assertEqual(customization.bracket, 4)
        self.assertEqual(customization.banned_cards, frozenset({'Sol Ring'}))
        self.assertEqual(customization.land_count, 42)

    def test_invalid_values_raise(self):
        """Test validation of format, budget and bracket."""
        with self.assertRaises(ValueError):
            build_customization(DeckBuildingConfig(), format_size=100)
        with self.assertRaises(ValueError):
            build_customization(DeckBuildingConfig(), budget='cheap')
        with self.assertRaises(ValueError):
            build_customization(DeckBuildingConfig(), bracket=7)


if __name__ == '__main__':
    unittest.main()
