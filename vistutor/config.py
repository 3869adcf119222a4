#!/usr/bin/env python3
"""
Configuration management for vistutor.
Stores user preferences in ~/.vistutor/config.json.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

HOME_ENV = 'VISTUTOR_HOME'

DEFAULTS: Dict[str, Any] = {
    'progressive': True,
    'allow_skip': False,
    'timeout_seconds': 10.0,
    'workspace': '~/.vistutor/workspace',
    'log_level': 'WARNING',
}


def get_config_dir() -> Path:
    """Get the config directory ($VISTUTOR_HOME or ~/.vistutor)"""
    override = os.environ.get(HOME_ENV)
    config_dir = Path(override).expanduser() if override else Path.home() / '.vistutor'
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    """Get the config file path"""
    return get_config_dir() / 'config.json'


def load_config() -> Dict[str, Any]:
    """Load configuration from file"""
    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Ignoring unreadable config %s: %s", config_path, e)
            return {}
        if isinstance(data, dict):
            return data
        logger.warning("Ignoring config %s: not a JSON object", config_path)
    return {}


def save_config(config: Dict[str, Any]) -> None:
    """Save configuration to file"""
    config_path = get_config_path()
    with open(config_path, 'w') as f:
        json.dump(config, f, indent=2)


def load_settings() -> Dict[str, Any]:
    """Defaults overlaid with the user's config file"""
    settings = dict(DEFAULTS)
    settings.update({key: value for key, value in load_config().items() if key in DEFAULTS})
    return settings


def get_config_value(key: str, default: Any = None) -> Any:
    """Get a specific config value"""
    config = load_config()
    return config.get(key, DEFAULTS.get(key, default))


def set_config_value(key: str, value: Any) -> None:
    """Set a specific config value"""
    if key not in DEFAULTS:
        raise KeyError(f"Unknown setting '{key}'. Known: {', '.join(DEFAULTS)}")
    config = load_config()
    config[key] = value
    save_config(config)


def workspace_dir() -> Path:
    """Directory for exercise files and saved outputs"""
    override = os.environ.get(HOME_ENV)
    configured = load_settings()['workspace']
    if override and configured == DEFAULTS['workspace']:
        return get_config_dir() / 'workspace'
    return Path(configured).expanduser()
