"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (NPMX__SERVER__PORT=8080)
  2. npmx.yaml              (searched in cwd, then the platform config dir)
  3. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from npmx.constants import CACHE_MAX_AGE_ONE_YEAR

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("npmx")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "cache.db")


def _find_config_file() -> str | None:
    """Return the path of the first npmx.yaml found, or None."""
    candidates = [
        Path("npmx.yaml"),
        Path(platformdirs.user_config_dir("npmx")) / "npmx.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    host: str = "0.0.0.0"
    port: int = 3000
    dev: bool = False


class UpstreamSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    jsdelivr_url: str = "https://data.jsdelivr.com/v1"
    timeout_seconds: float = 10.0
    user_agent: str = "npmx-server"


class CacheSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    db_path: str = _DEFAULT_DB_PATH
    max_age_seconds: int = CACHE_MAX_AGE_ONE_YEAR


class BuildSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    root_dir: str = "."
    # Relative to root_dir; its mtime becomes BuildInfo.privacy_policy_date
    privacy_policy_file: str = "app/pages/privacy.vue"
    public_dir: str = "public"
    public_dev_dir: str = "public-dev"
    public_staging_dir: str = "public-staging"


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: NPMX__CACHE__DB_PATH=/tmp/cache.db
        env_prefix="NPMX__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    upstream: UpstreamSettings = UpstreamSettings()
    cache: CacheSettings = CacheSettings()
    build: BuildSettings = BuildSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
