"""
Test suite for shipped configuration files.
Tests .env.example and config.yaml parsing and required keys.
"""

import yaml
import pytest
from pathlib import Path
from dotenv import dotenv_values

from market_stream.core.config import DEFAULT_CONFIG_PATH, load_settings


class TestConfigurationFiles:
    """Test configuration file structure and parsing."""

    @pytest.fixture(autouse=True)
    def setup(self):
        """Set up test environment."""
        self.project_root = Path(__file__).parent.parent
        self.env_example_path = self.project_root / ".env.example"
        self.config_yaml_path = self.project_root / "config.yaml"

    def test_env_example_exists(self):
        """Test that .env.example file exists."""
        assert self.env_example_path.exists(), ".env.example file not found"

    def test_env_example_parses_with_dotenv(self):
        """Test that .env.example lists every credential variable."""
        values = dotenv_values(self.env_example_path)

        for key in (
            'BINANCE_TESTNET_API_KEY',
            'BINANCE_TESTNET_API_SECRET',
            'BINANCE_MAINNET_API_KEY',
            'BINANCE_MAINNET_API_SECRET',
        ):
            assert values.get(key), f"Required key '{key}' not found in .env.example"

    def test_config_yaml_exists(self):
        """Test that config.yaml is where the loader looks by default."""
        assert self.config_yaml_path.exists(), "config.yaml file not found"
        assert DEFAULT_CONFIG_PATH.resolve() == self.config_yaml_path.resolve()

    def test_config_yaml_parses_correctly(self):
        """Test that config.yaml can be parsed by PyYAML."""
        with open(self.config_yaml_path, 'r') as f:
            config = yaml.safe_load(f)

        assert isinstance(config, dict), "config.yaml should parse to a dictionary"
        assert isinstance(config['use_testnet'], bool), "use_testnet should be a boolean"

    def test_config_yaml_loads_into_settings(self):
        """Test that the shipped config produces the documented defaults."""
        settings = load_settings(self.config_yaml_path)

        assert settings.reconnect_delay == 5.0
        assert settings.max_reconnect_attempts == 5
        assert settings.keepalive_interval == 180.0
        assert settings.log_level == "INFO"
