from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

Env = Literal["dev", "preview", "canary", "production"]


class EnvInfo(BaseModel):
    """Deployment classification plus the git revision being served."""

    model_config = ConfigDict(frozen=True)

    env: Env
    commit: str
    short_commit: str
    branch: str


class BuildInfo(BaseModel):
    """Build metadata exposed to the front end. Serialized with camelCase keys."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    version: str
    time: int  # Epoch millis at startup
    commit: str
    short_commit: str
    branch: str
    env: Env
    privacy_policy_date: str  # ISO-8601, UTC


class AppConfig(BaseModel):
    """Application-wide configuration resolved once at startup."""

    model_config = ConfigDict(frozen=True)

    env: Env
    build_info: BuildInfo
    # Highest priority first
    public_asset_dirs: tuple[Path, ...] = ()
