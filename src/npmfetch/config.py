import os
from pathlib import Path
from typing import Dict, Optional
from pydantic import BaseModel

CONFIG_DIR = Path.home() / ".npmfetch"
CONFIG_FILE = CONFIG_DIR / "config"

# config file keys, each can be overridden by NPMFETCH_<KEY>
KNOWN_KEYS = ("NPM_BIN", "NPM_CACHE", "NPM_REGISTRY")
ENV_PREFIX = "NPMFETCH_"


class Settings(BaseModel):
    """effective configuration for the npm client."""
    npm_bin: str = "npm"
    npm_cache: Optional[Path] = None
    npm_registry: Optional[str] = None


def _read_config_file(config_file: Path) -> Dict[str, str]:
    config = {}
    if not config_file.exists():
        return config

    try:
        with open(config_file, "r") as f:
            for line in f:
                line = line.strip()
                if "=" in line and not line.startswith("#"):
                    key, value = line.split("=", 1)
                    config[key.strip()] = value.strip()
    except (IOError, PermissionError, OSError):
        # if we can't read the file, treat as not configured
        return {}
    return config


def load_config(config_file: Path = None) -> Settings:
    """read the config file, then apply NPMFETCH_* environment overrides."""
    values = _read_config_file(config_file or CONFIG_FILE)
    for key in KNOWN_KEYS:
        env_value = os.environ.get(ENV_PREFIX + key)
        if env_value:
            values[key] = env_value

    return Settings(**{
        key.lower(): value
        for key, value in values.items()
        if key in KNOWN_KEYS and value
    })


def set_config_value(key: str, value: str, config_file: Path = None):
    """set one key in the config file, preserving other config values."""
    if key not in KNOWN_KEYS:
        raise ValueError(f"unknown config key '{key}', expected one of {', '.join(KNOWN_KEYS)}")

    config_file = config_file or CONFIG_FILE
    config = _read_config_file(config_file)
    config[key] = value

    try:
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(config_file, "w") as f:
            for k, v in config.items():
                f.write(f"{k}={v}\n")
    except (IOError, PermissionError, OSError) as e:
        raise RuntimeError(f"failed to write config file: {e}") from e
