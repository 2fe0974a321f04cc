from __future__ import annotations

from npmx.models.build import AppConfig, BuildInfo, Env, EnvInfo
from npmx.models.cache import ResponseCacheEntry
from npmx.models.files import (
    FileTreeNode,
    JsDelivrFile,
    JsDelivrFlatListing,
    PackageFileTreeResponse,
)
from npmx.models.package import PackageVersionQuery

__all__ = [
    # build
    "Env",
    "EnvInfo",
    "BuildInfo",
    "AppConfig",
    # cache
    "ResponseCacheEntry",
    # files
    "JsDelivrFile",
    "JsDelivrFlatListing",
    "FileTreeNode",
    "PackageFileTreeResponse",
    # package
    "PackageVersionQuery",
]
