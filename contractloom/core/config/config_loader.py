"""YAML configuration loader.

Reads ``contractloom.yaml`` from the config directory (repo-level ``config/``
by default, ``CONTRACTLOOM_CONFIG_DIR`` when set) and exposes nested values
through ``get_config_value``. Provider API keys come from the environment,
optionally populated from a ``.env`` file.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "contractloom.yaml"

_config_cache: Optional[Dict[str, Any]] = None


def get_config_path() -> Path:
    """Return the directory holding ``contractloom.yaml``."""
    env_dir = os.environ.get("CONTRACTLOOM_CONFIG_DIR")
    if env_dir:
        return Path(env_dir)
    return Path(__file__).parent.parent.parent.parent / "config"


def load_config(reload: bool = False) -> Dict[str, Any]:
    """Load and cache the YAML configuration.

    A missing or unreadable file yields an empty dict so every caller
    falls back to its defaults.
    """
    global _config_cache
    if _config_cache is not None and not reload:
        return _config_cache

    config_file = get_config_path() / CONFIG_FILE_NAME
    if not config_file.exists():
        logger.debug(f"{CONFIG_FILE_NAME} not found at {config_file}, using defaults")
        _config_cache = {}
        return _config_cache

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            _config_cache = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading {config_file}: {e}")
        _config_cache = {}

    return _config_cache


def get_config_value(*keys: str, default: Any = None) -> Any:
    """Walk nested config keys, returning ``default`` when any is missing.

    Example:
        >>> get_config_value("contractloom", "repair", "timeout_seconds", default=120)
    """
    node: Any = load_config()
    for key in keys:
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node
