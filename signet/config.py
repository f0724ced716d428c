from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel

# Lexical order of versions matching this pattern equals chronological order.
DEFAULT_VERSION_PATTERN = r"^\d{4}-\d{2}-\d{2}(T\d{2}:\d{2}:\d{2}(\.\d{3})?)?$"


class KeysConfig(BaseModel):
    """Parameters for generated application key pairs."""

    key_size: int = 2048
    public_exponent: int = 65537


class StoreConfig(BaseModel):
    """Behaviour of the key-set store write path."""

    version_pattern: Optional[str] = DEFAULT_VERSION_PATTERN
    resurrect_retired: bool = True


class SignetConfig(BaseModel):
    """Top-level configuration model."""

    service_name: str = "signet"
    database_url: Optional[str] = None
    keys: KeysConfig = KeysConfig()
    store: StoreConfig = StoreConfig()
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> SignetConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to SIGNET_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("SIGNET_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = SignetConfig(**data)
    else:
        config = SignetConfig()

    env_db_url = os.getenv("SIGNET_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
