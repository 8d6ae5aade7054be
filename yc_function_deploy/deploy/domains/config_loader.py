"""Configuration loader for yc-function-deploy.

The config file is optional for deployments that receive credentials and
folder as inputs; it is read only when one of them is missing.
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from . import preferences
from .auth import Credentials
from .errors import ConfigError
from .parsing import parse_service_account_key

logger = logging.getLogger(__name__)

AUTH_TYPES = ("service_account_key", "iam_token")


def default_config_path() -> Path:
    return Path.home() / ".config" / "yc-function-deploy" / "config.yml"


def get_config_path() -> str:
    """
    Get config file path.

    Priority order:
    1. User preference (set with `yc-function-deploy config set-path`)
    2. Default location: ~/.config/yc-function-deploy/config.yml

    Raises:
        FileNotFoundError: If config file doesn't exist in any location
    """
    config_path_pref = preferences.get_preference("config_path")
    if config_path_pref:
        config_path = Path(config_path_pref)
        if config_path.exists():
            logger.info(f"Using config from preference: {config_path}")
            return str(config_path)
        logger.warning(f"Config path from preference doesn't exist: {config_path}")

    default_config = default_config_path()
    if default_config.exists():
        logger.info(f"Using default config location: {default_config}")
        return str(default_config)

    raise FileNotFoundError(
        "Configuration file not found. Set it up using one of these methods:\n\n"
        "1. Use the default location:\n"
        f"   mkdir -p {default_config.parent}\n"
        f"   cp /path/to/your/config.yml {default_config}\n\n"
        "2. Point to an existing config file:\n"
        "   yc-function-deploy config set-path /path/to/your/config.yml\n"
    )


def _validate_authentication(auth: Dict[str, Any], config_path: str) -> None:
    if "type" not in auth:
        raise ConfigError("Missing 'authentication.type' in config")

    if auth["type"] not in AUTH_TYPES:
        raise ConfigError(
            f"Unsupported authentication type: {auth['type']}\n"
            f"Supported types: {', '.join(AUTH_TYPES)}."
        )

    if auth["type"] == "iam_token":
        if not auth.get("iam_token"):
            raise ConfigError("Missing 'authentication.iam_token' in config")
        return

    key_path = auth.get("service_account_key_path")
    if not key_path:
        raise ConfigError(
            "Missing 'authentication.service_account_key_path' in config\n"
            "Please specify the absolute path to your authorized key JSON file."
        )
    if not os.path.isfile(key_path):
        raise ConfigError(
            f"Service account key file not found at: {key_path}\n"
            f"Please ensure the file exists or update the path in {config_path}"
        )


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and validate configuration from YAML file.

    Returns:
        Dict containing configuration with keys:
        - authentication: type and service_account_key_path or iam_token
        - yandex_cloud: folder_id

    Raises:
        FileNotFoundError: If no config file can be located
        ConfigError: If config file is invalid or the key file doesn't exist
    """
    config_path = config_path or get_config_path()

    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML config at {config_path}: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read config file at {config_path}: {e}")

    if not config:
        raise ConfigError(f"Config file at {config_path} is empty")

    if "authentication" not in config:
        raise ConfigError(
            f"Missing 'authentication' section in config at {config_path}\n"
            f"Required format:\n"
            f"authentication:\n"
            f"  type: service_account_key\n"
            f"  service_account_key_path: /path/to/authorized_key.json"
        )
    _validate_authentication(config["authentication"], config_path)

    if "yandex_cloud" not in config or not isinstance(config["yandex_cloud"], dict):
        raise ConfigError(
            f"Missing 'yandex_cloud' section in config at {config_path}\n"
            f"Required format:\n"
            f"yandex_cloud:\n"
            f"  folder_id: your-folder-id"
        )

    if "folder_id" not in config["yandex_cloud"]:
        raise ConfigError("Missing 'yandex_cloud.folder_id' in config")

    logger.info(f"Configuration loaded successfully from {config_path}")
    logger.debug(f"Using folder ID: {config['yandex_cloud']['folder_id']}")
    return config


def credentials_from_config(config: Dict[str, Any]) -> Credentials:
    """Build Credentials from a validated config."""
    auth = config["authentication"]
    if auth["type"] == "iam_token":
        return Credentials(iam_token=auth["iam_token"])
    with open(auth["service_account_key_path"], "r") as f:
        return Credentials(service_account_key=parse_service_account_key(f.read()))
