"""Package name/version extraction from URL path segments.

Supported shapes::

    [name, "v", version]              react/v/18.2.0
    [@scope, name, "v", version]      @types/node/v/20.1.0
    [name@version]                    react@18.2.0
    [@scope, name@version]            @types/node@20.1.0

Anything else parses to values that fail ``validate_package_query``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from pydantic import ValidationError

from npmx.models.package import PackageVersionQuery

_AT_VERSION_RE = re.compile(r"^(@[^/@]+/[^/@]+|[^/@]+)@([^/]+)$")


@dataclass(frozen=True)
class RawPackageParams:
    raw_package_name: str
    raw_version: str | None


@dataclass(frozen=True)
class InvalidPackageQuery:
    """Validation failure; ``message`` describes the first offending field."""

    message: str


def split_pkg_param(pkg: str) -> list[str]:
    """Split the catch-all route parameter, dropping empty segments."""
    return [segment for segment in pkg.split("/") if segment]


def parse_package_params(segments: list[str]) -> RawPackageParams:
    # A scoped name occupies two segments, so the "v" marker can't come before index 2.
    start = 2 if segments and segments[0].startswith("@") else 1
    if "v" in segments[start:]:
        v_index = segments.index("v", start)
        return RawPackageParams(
            raw_package_name="/".join(segments[:v_index]),
            raw_version="/".join(segments[v_index + 1 :]) or None,
        )

    full_path = "/".join(segments)
    match = _AT_VERSION_RE.match(full_path)
    if match:
        return RawPackageParams(raw_package_name=match.group(1), raw_version=match.group(2))

    return RawPackageParams(raw_package_name=full_path, raw_version=None)


def validate_package_query(
    raw_package_name: str, raw_version: str | None
) -> PackageVersionQuery | InvalidPackageQuery:
    if raw_version is None:
        return InvalidPackageQuery("Version is required")
    try:
        return PackageVersionQuery(package_name=raw_package_name, version=raw_version)
    except ValidationError as exc:
        return InvalidPackageQuery(_first_issue_message(exc))


def _first_issue_message(exc: ValidationError) -> str:
    issue = exc.errors()[0]
    ctx_error = issue.get("ctx", {}).get("error")
    if ctx_error is not None:
        return str(ctx_error)
    return issue["msg"]
