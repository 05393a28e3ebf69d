"""
Configuration loading for the market stream service.

Settings come from config.yaml in the project root and are read once at
construction time; they are never reloaded while a manager is running.
API credentials are optional (public market data needs none) and come from
environment variables, typically populated from a .env file.
"""

import os
from pathlib import Path
from typing import Optional, Tuple, Union

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError

# WebSocket endpoints
SPOT_WS_URL = "wss://stream.binance.com:9443/ws"
FUTURES_WS_URL = "wss://fstream.binance.com/ws"
SPOT_WS_TESTNET_URL = "wss://testnet.binance.vision/ws"
FUTURES_WS_TESTNET_URL = "wss://stream.binancefuture.com/ws"

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config.yaml"


class StreamSettings(BaseModel):
    """
    Immutable stream manager settings.

    Attributes:
        use_testnet: Connect to testnet endpoints instead of mainnet
        reconnect_delay: Base reconnect backoff in seconds
        max_reconnect_attempts: Reconnects allowed before a symbol is abandoned
        keepalive_interval: Seconds between liveness pings on an open socket
        connect_timeout: Seconds allowed for the WebSocket handshake
        http_timeout: Seconds allowed for a REST request
        log_level: Sink level used by the command-line front end

    Examples:
        >>> settings = StreamSettings(use_testnet=False)
        >>> settings.reconnect_delay
        5.0
        >>> settings.ws_base_url("futures")
        'wss://fstream.binance.com/ws'
    """

    model_config = {"frozen": True}

    use_testnet: bool = Field(
        description="Use testnet endpoints"
    )
    reconnect_delay: float = Field(
        default=5.0,
        gt=0,
        description="Base reconnect delay in seconds"
    )
    max_reconnect_attempts: int = Field(
        default=5,
        ge=0,
        description="Maximum consecutive reconnect attempts"
    )
    keepalive_interval: float = Field(
        default=180.0,
        gt=0,
        description="Seconds between keepalive pings"
    )
    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        description="WebSocket open timeout in seconds"
    )
    http_timeout: float = Field(
        default=10.0,
        gt=0,
        description="REST request timeout in seconds"
    )
    log_level: str = Field(
        default="INFO",
        description="Log level for the command-line front end"
    )

    def ws_base_url(self, market_type: str) -> str:
        """Return the base streaming endpoint for a market type."""
        if market_type == "spot":
            return SPOT_WS_TESTNET_URL if self.use_testnet else SPOT_WS_URL
        if market_type == "futures":
            return FUTURES_WS_TESTNET_URL if self.use_testnet else FUTURES_WS_URL
        raise ValueError(f"market_type must be 'spot' or 'futures', got {market_type!r}")


def load_settings(config_path: Optional[Union[str, Path]] = None) -> StreamSettings:
    """
    Load stream settings from config.yaml.

    Args:
        config_path: Path to the YAML file. Defaults to config.yaml in the
            project root.

    Returns:
        StreamSettings: Validated settings

    Raises:
        ConfigError: If the file is missing, empty, unparsable, lacks the
            use_testnet flag or holds invalid values
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration file: {e}")
    except OSError as e:
        raise ConfigError(f"Error reading configuration file: {e}")

    if config is None:
        raise ConfigError("Configuration file is empty")
    if not isinstance(config, dict):
        raise ConfigError(
            f"Configuration file must contain a mapping, got {type(config).__name__}"
        )

    if 'use_testnet' not in config:
        raise ConfigError(
            "Missing 'use_testnet' flag in configuration file. "
            "Please add 'use_testnet: true' or 'use_testnet: false' to config.yaml"
        )
    if not isinstance(config['use_testnet'], bool):
        raise ConfigError(
            f"'use_testnet' must be boolean (true/false), "
            f"got {type(config['use_testnet']).__name__}"
        )

    known = {key: value for key, value in config.items() if key in StreamSettings.model_fields}
    try:
        settings = StreamSettings(**known)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration values: {e}") from e

    logger.debug(f"Loaded stream settings from {path}")
    return settings


def load_credentials(use_testnet: bool) -> Tuple[Optional[str], Optional[str]]:
    """
    Load optional API credentials from environment variables.

    Public market data does not require credentials, so missing variables
    yield (None, None). Placeholder values copied from .env.example are
    rejected so that a half-configured environment fails loudly.

    Args:
        use_testnet: Select BINANCE_TESTNET_* instead of BINANCE_MAINNET_*

    Returns:
        Tuple of API key and secret, each None when unset

    Raises:
        ConfigError: If only one of the pair is set or a value is a placeholder
    """
    env_name = "TESTNET" if use_testnet else "MAINNET"
    api_key_var = f"BINANCE_{env_name}_API_KEY"
    api_secret_var = f"BINANCE_{env_name}_API_SECRET"

    api_key = os.getenv(api_key_var) or None
    api_secret = os.getenv(api_secret_var) or None

    if api_key is None and api_secret is None:
        logger.debug(f"No {env_name.lower()} credentials set, using public endpoints")
        return None, None

    missing = [name for name, value in ((api_key_var, api_key), (api_secret_var, api_secret)) if not value]
    if missing:
        raise ConfigError(
            f"Incomplete {env_name.lower()} credentials, missing: {', '.join(missing)}"
        )

    placeholder_texts = ["your_", "_here", "placeholder"]
    for var_name, value in ((api_key_var, api_key), (api_secret_var, api_secret)):
        if any(placeholder in value.lower() for placeholder in placeholder_texts):
            raise ConfigError(
                f"{var_name} appears to be a placeholder value. "
                f"Please set your actual {env_name.lower()} API credentials."
            )

    return api_key, api_secret
