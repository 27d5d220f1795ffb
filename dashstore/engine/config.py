"""
dashstore Configuration — Load and validate dashstore.yaml.

Usage:
    from dashstore.engine.config import load_store_config, get_store_config
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

CONFIG_FILE_NAME = "dashstore.yaml"

# Feature toggle selecting the fine-grained permission filter
FEATURE_ACCESS_CONTROL = "accesscontrol"


# ---------------------------------------------------------------------------
# Pydantic models for dashstore.yaml
# ---------------------------------------------------------------------------

class DatabaseConfig(BaseModel):
    url: str = "sqlite:///dashstore.db"
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 1800
    pool_pre_ping: bool = True
    echo: bool = False


class SearchConfig(BaseModel):
    default_limit: int = 1000
    shadow_compare: bool = False

    @field_validator("default_limit")
    @classmethod
    def validate_default_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"default_limit must be positive, got {v}")
        return v


class ServerConfig(BaseModel):
    app_sub_url: str = ""

    @field_validator("app_sub_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: str = ".dashstore/logs"
    audit: bool = False


class StoreConfig(BaseModel):
    """Root model for dashstore.yaml."""
    name: str = "dashstore"
    environment: str = "dev"

    database: DatabaseConfig = DatabaseConfig()
    search: SearchConfig = SearchConfig()
    server: ServerConfig = ServerConfig()
    logging: LoggingConfig = LoggingConfig()
    features: List[str] = Field(default_factory=list)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        if v not in ("dev", "staging", "prod"):
            raise ValueError(f"environment must be dev/staging/prod, got '{v}'")
        return v

    def is_feature_enabled(self, name: str) -> bool:
        return name in self.features


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

_store_config: Optional[StoreConfig] = None


def _find_project_root() -> Path:
    """Find the project root by looking for dashstore.yaml."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_FILE_NAME).exists():
            return parent
    return current


def load_store_config(config_path: Optional[str] = None) -> StoreConfig:
    """
    Load and validate dashstore.yaml.

    Args:
        config_path: Explicit path to dashstore.yaml. If None, auto-discovers.

    Returns:
        Validated StoreConfig instance (defaults if the file is missing).
    """
    global _store_config

    if config_path is None:
        config_path = str(_find_project_root() / CONFIG_FILE_NAME)

    path = Path(config_path)
    if not path.exists():
        _store_config = StoreConfig()
        return _store_config

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    # Accept either a top-level "store:" block or flat keys
    store_data = raw.get("store", {})
    config_data = {
        "name": store_data.get("name", raw.get("name", "dashstore")),
        "environment": store_data.get("environment", raw.get("environment", "dev")),
        "database": raw.get("database", {}),
        "search": raw.get("search", {}),
        "server": raw.get("server", {}),
        "logging": raw.get("logging", {}),
        "features": raw.get("features", []) or [],
    }

    _store_config = StoreConfig(**config_data)
    return _store_config


def get_store_config() -> StoreConfig:
    """Get the currently loaded config, loading if necessary."""
    global _store_config
    if _store_config is None:
        _store_config = load_store_config()
    return _store_config
