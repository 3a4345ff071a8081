"""
Configuration loader.

Principles:
1. config.json in the config directory is the single source of settings
2. Environment variables override individual values
3. ``${VAR}`` values are resolved from the environment

Usage:
    from velohub.config import get_hub_config
    config = get_hub_config()
    transport = RedisTransport.from_config(config['redis'])
"""

import copy
import json
import os
import re
import uuid
from pathlib import Path
from typing import Any, Dict

# Global cache
_config_cache = None
_config_loaded = False

DEFAULT_CONFIG: Dict[str, Any] = {
    'hub': {
        'id': '',
        'owner': '',
        'request_timeout': 10,
        'poll_timeout': 1,
        'reply_ttl': 60,
    },
    'redis': {
        'host': 'localhost',
        'port': 6379,
        'password': None,
        'db': 0,
    },
    'logging': {
        'level': 'INFO',
        'file': None,
        'max_bytes': 10485760,
        'backup_count': 5,
        'syslog': False,
    },
}

# env var -> (section, key, type)
ENV_OVERRIDES = {
    'VELOHUB_HUB_ID': ('hub', 'id', str),
    'VELOHUB_OWNER': ('hub', 'owner', str),
    'VELOHUB_LOG_LEVEL': ('logging', 'level', str),
    'REDIS_HOST': ('redis', 'host', str),
    'REDIS_PORT': ('redis', 'port', int),
    'REDIS_PASSWORD': ('redis', 'password', str),
    'REDIS_DB': ('redis', 'db', int),
}

_TEMPLATE = re.compile(r'^\$\{(.+)\}$')


def get_config_dir() -> Path:
    """Config directory: VELOHUB_CONFIG_DIR, else ./config."""
    if os.getenv('VELOHUB_CONFIG_DIR'):
        return Path(os.getenv('VELOHUB_CONFIG_DIR'))
    return Path.cwd() / 'config'


def _resolve_env_var(value: Any) -> Any:
    """Replace a ``${VAR_NAME}`` value with the environment variable."""
    if not isinstance(value, str):
        return value
    match = _TEMPLATE.match(value)
    if not match:
        return value
    env_name = match.group(1)
    env_value = os.getenv(env_name)
    if env_value is None:
        raise RuntimeError(f"Template variable ${{{env_name}}} is not set")
    return env_value


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"{path.name} is malformed: {e}")
    except OSError as e:
        raise RuntimeError(f"Failed to read {path}: {e}")


def get_hub_config() -> Dict[str, Any]:
    """
    Load hub configuration (cached after the first call).

    Returns:
        {'hub': {...}, 'redis': {...}, 'logging': {...}}

    Raises:
        RuntimeError: config.json is malformed or a template is unset
    """
    global _config_cache, _config_loaded

    if _config_loaded and _config_cache is not None:
        return _config_cache

    config = copy.deepcopy(DEFAULT_CONFIG)
    config_path = get_config_dir() / 'config.json'
    if config_path.exists():
        _merge(config, load_config_file(config_path))

    for section in config.values():
        if isinstance(section, dict):
            for key, value in section.items():
                section[key] = _resolve_env_var(value)

    for env_name, (section, key, cast) in ENV_OVERRIDES.items():
        env_value = os.getenv(env_name)
        if env_value:
            config[section][key] = cast(env_value)

    # Ports from JSON may be strings
    if isinstance(config['redis']['port'], str):
        config['redis']['port'] = int(config['redis']['port'])

    if not config['hub']['id']:
        config['hub']['id'] = f"hub-{uuid.uuid4().hex[:8]}"

    _config_cache = config
    _config_loaded = True
    return config


def get_redis_config() -> Dict[str, Any]:
    return get_hub_config()['redis']


def reload_config() -> Dict[str, Any]:
    """Force a reload."""
    global _config_cache, _config_loaded
    _config_cache = None
    _config_loaded = False
    return get_hub_config()
