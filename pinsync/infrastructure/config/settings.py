"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (~/.pinsync/config.yaml).
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from pinsync.domain.errors import ConfigurationError
from pinsync.domain.models.common import AuthToken

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".pinsync"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULT_API_BASE_URL = "https://api.pinboard.in/v1/"
DEFAULT_CACHE_DIR = DEFAULT_CONFIG_DIR / "cache"
DEFAULT_SNAPSHOT_NAME = "bookmarks.json"
DEFAULT_WRITE_TIMEOUT_SECONDS = 10.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_RATE_INTERVALS = {"all": 300.0, "recent": 60.0, "default": 3.0}

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def load_configuration(
    config_file: Path = DEFAULT_CONFIG_FILE,
    env_file: Optional[Path] = None,
    reload: bool = False,
) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        reload: Load again even if configuration was already loaded.
    """
    global _config, _loaded
    if _loaded and not reload:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. YAML file (lowest priority)
    if config_file.exists():
        try:
            with open(config_file, "r") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. .env file (override=False: real environment variables take precedence)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above the current directory.")

    # 3. Environment variables are read on demand by get_config
    _loaded = True
    logger.info("Configuration loading process completed.")


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML mappings into dotted keys ('rate_limit.all_seconds')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def _coerce(value: str) -> Any:
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration
    2. Environment variable (key uppercased, dots become underscores)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key, e.g. 'requests.write_timeout_seconds'
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace(".", "_")
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def _get_float(key: str, default: float) -> float:
    value = get_config(key, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Config value for '{key}' is not a number: {value!r}. Using {default}.")
        return default


# --- Convenience Functions ---

def get_auth_token() -> AuthToken:
    """Returns the API credential.

    Checks ENV PINBOARD_AUTH_TOKEN first, then yaml pinboard.auth_token.

    Raises:
        ConfigurationError: If no token is configured.
    """
    token = get_config("PINBOARD_AUTH_TOKEN") or get_config("pinboard.auth_token")
    if not token:
        raise ConfigurationError(
            "No API token configured. Set PINBOARD_AUTH_TOKEN or pinboard.auth_token in "
            f"{DEFAULT_CONFIG_FILE}."
        )
    return AuthToken(str(token))


def get_api_base_url() -> str:
    return str(get_config("pinboard.base_url", DEFAULT_API_BASE_URL))


def get_cache_dir() -> Path:
    return Path(str(get_config("cache.dir", DEFAULT_CACHE_DIR))).expanduser()


def get_snapshot_path() -> Path:
    return get_cache_dir() / str(get_config("cache.snapshot_name", DEFAULT_SNAPSHOT_NAME))


def get_write_timeout() -> float:
    return _get_float("requests.write_timeout_seconds", DEFAULT_WRITE_TIMEOUT_SECONDS)


def get_request_timeout() -> float:
    return _get_float("requests.timeout_seconds", DEFAULT_REQUEST_TIMEOUT_SECONDS)


def get_rate_intervals() -> Dict[str, float]:
    """Baseline seconds between calls for each rate-limit bucket."""
    return {
        bucket: _get_float(f"rate_limit.{bucket}_seconds", seconds)
        for bucket, seconds in DEFAULT_RATE_INTERVALS.items()
    }


def set_config(key: str, value: Any) -> None:
    """Sets a configuration value for the rest of the process."""
    logger.debug(f"Setting config: {key} = {value}")
    _config[key] = value


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
