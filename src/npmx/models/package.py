from __future__ import annotations

import re

from pydantic import BaseModel, field_validator

# https://semver.org/#is-there-a-suggested-regular-expression-regex-to-check-a-semver-string
_SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)
# Names valid for already-published packages: mixed case and ~'!()* are allowed.
_NAME_PART = r"[A-Za-z0-9\-~'!()*][A-Za-z0-9\-._~'!()*]*"
_PACKAGE_NAME_RE = re.compile(rf"^(?:@{_NAME_PART}/)?{_NAME_PART}$")
_RESERVED_NAMES = frozenset({"node_modules", "favicon.ico"})
MAX_PACKAGE_NAME_LENGTH = 214


class PackageVersionQuery(BaseModel):
    """A package name and exact version that are safe to send upstream."""

    package_name: str
    version: str

    @field_validator("package_name")
    @classmethod
    def validate_package_name(cls, v: str) -> str:
        if not v:
            raise ValueError("Package name is required")
        if len(v) > MAX_PACKAGE_NAME_LENGTH:
            raise ValueError(f"Package name must not exceed {MAX_PACKAGE_NAME_LENGTH} characters")
        if v in _RESERVED_NAMES:
            raise ValueError(f"Invalid package name: {v!r} is reserved")
        if not _PACKAGE_NAME_RE.match(v):
            raise ValueError(f"Invalid package name: {v!r}")
        return v

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        if not _SEMVER_RE.match(v):
            raise ValueError(f"Invalid version: {v!r}")
        return v
