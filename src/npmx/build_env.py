"""Build info resolution.

Runs once at startup: classifies the deployment environment, reads the git
revision and the privacy policy's last-modified date, and picks the extra
static-asset directory for the environment. The result is an immutable
``AppConfig`` that the rest of the app receives by reference.

Any failure here raises ``BuildEnvError`` and aborts startup.
"""

from __future__ import annotations

import asyncio
import os
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from npmx import __version__
from npmx.errors import BuildEnvError
from npmx.models.build import AppConfig, BuildInfo, EnvInfo

if TYPE_CHECKING:
    from collections.abc import Mapping

    from npmx.config import BuildSettings, Settings
    from npmx.models.build import Env

log = structlog.get_logger()

_COMMIT_VARS = ("COMMIT_REF", "VERCEL_GIT_COMMIT_SHA", "GITHUB_SHA")
_BRANCH_VARS = ("BRANCH", "VERCEL_GIT_COMMIT_REF", "GITHUB_REF_NAME")
_CI_PROVIDER_VARS = (
    "GITHUB_ACTIONS",
    "GITLAB_CI",
    "CIRCLECI",
    "BUILDKITE",
    "TRAVIS",
    "NETLIFY",
    "VERCEL",
    "CF_PAGES",
)
_PREVIEW_CONTEXTS = frozenset({"deploy-preview", "branch-deploy"})
_SHORT_COMMIT_LENGTH = 7


def _first_env(names: tuple[str, ...], environ: Mapping[str, str]) -> str | None:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def is_ci(environ: Mapping[str, str] | None = None) -> bool:
    environ = os.environ if environ is None else environ
    if environ.get("CI", "").lower() not in ("", "0", "false"):
        return True
    return any(environ.get(name) for name in _CI_PROVIDER_VARS)


async def _git(*args: str) -> str:
    try:
        proc = await asyncio.create_subprocess_exec(
            "git",
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise BuildEnvError(f"Unable to run git: {exc}") from exc

    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise BuildEnvError(f"git {' '.join(args)} failed: {stderr.decode().strip()}")
    return stdout.decode().strip()


def classify_env(dev: bool, branch: str, environ: Mapping[str, str]) -> Env:
    if dev:
        return "dev"
    if environ.get("VERCEL_ENV") == "preview" or environ.get("CONTEXT") in _PREVIEW_CONTEXTS:
        return "preview"
    if branch == "main":
        return "canary"
    return "production"


async def get_env(dev: bool, environ: Mapping[str, str] | None = None) -> EnvInfo:
    """Classify the environment and resolve the git revision.

    CI-provided variables win over asking git, so builds from a tarball
    without a ``.git`` directory still work on hosted platforms.
    """
    environ = os.environ if environ is None else environ

    commit = _first_env(_COMMIT_VARS, environ) or await _git("rev-parse", "HEAD")
    branch = _first_env(_BRANCH_VARS, environ) or await _git(
        "rev-parse", "--abbrev-ref", "HEAD"
    )

    return EnvInfo(
        env=classify_env(dev, branch, environ),
        commit=commit,
        short_commit=commit[:_SHORT_COMMIT_LENGTH],
        branch=branch,
    )


async def get_file_last_updated(path: str | Path) -> str:
    """Return the file's mtime as an ISO-8601 UTC timestamp."""
    try:
        stat = await asyncio.to_thread(Path(path).stat)
    except OSError as exc:
        raise BuildEnvError(f"Unable to read last-modified date of {path}: {exc}") from exc
    return datetime.fromtimestamp(stat.st_mtime, UTC).isoformat()


def select_public_asset_dirs(env: Env, ci: bool, settings: BuildSettings) -> tuple[Path, ...]:
    """Static directories to serve, highest priority first.

    The environment-specific directory (if any) shadows the base one.
    """
    root = Path(settings.root_dir)
    dirs: list[Path] = [root / settings.public_dir]
    if env == "dev":
        dirs.insert(0, root / settings.public_dev_dir)
    elif env in ("canary", "preview") or not ci:
        dirs.insert(0, root / settings.public_staging_dir)
    return tuple(dirs)


async def resolve_app_config(
    settings: Settings, environ: Mapping[str, str] | None = None
) -> AppConfig:
    environ = os.environ if environ is None else environ
    privacy_policy = Path(settings.build.root_dir) / settings.build.privacy_policy_file

    env_info, privacy_policy_date = await asyncio.gather(
        get_env(settings.server.dev, environ),
        get_file_last_updated(privacy_policy),
    )

    build_info = BuildInfo(
        version=__version__,
        time=int(time.time() * 1000),
        commit=env_info.commit,
        short_commit=env_info.short_commit,
        branch=env_info.branch,
        env=env_info.env,
        privacy_policy_date=privacy_policy_date,
    )
    public_asset_dirs = select_public_asset_dirs(env_info.env, is_ci(environ), settings.build)

    log.info(
        "build_info_resolved",
        env=build_info.env,
        commit=build_info.short_commit,
        branch=build_info.branch,
        public_asset_dirs=[str(d) for d in public_asset_dirs],
    )
    return AppConfig(
        env=env_info.env,
        build_info=build_info,
        public_asset_dirs=public_asset_dirs,
    )
