from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class JsDelivrFile(BaseModel):
    """Single entry of jsDelivr's ``?structure=flat`` listing."""

    name: str  # Absolute path inside the package, e.g. "/dist/index.js"
    hash: str | None = None
    size: int | None = None


class JsDelivrFlatListing(BaseModel):
    default: str | None = None
    files: list[JsDelivrFile] = []


class FileTreeNode(BaseModel):
    name: str
    path: str  # Relative to the package root, no leading slash
    type: Literal["file", "directory"]
    size: int | None = None
    hash: str | None = None
    children: list[FileTreeNode] | None = None


class PackageFileTreeResponse(BaseModel):
    package: str
    version: str
    default: str | None = None
    tree: list[FileTreeNode]
