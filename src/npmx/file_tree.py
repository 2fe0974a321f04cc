"""Flat jsDelivr listing → nested file tree."""

from __future__ import annotations

from typing import TYPE_CHECKING

from npmx.models.files import FileTreeNode

if TYPE_CHECKING:
    from npmx.models.files import JsDelivrFile


def convert_to_file_tree(files: list[JsDelivrFile]) -> list[FileTreeNode]:
    """Build the tree for a package from its flat file list.

    Each ``/a/b/c.js`` entry becomes a file leaf under directory nodes ``a``
    and ``a/b``. Directories are listed before files; siblings sort by name.
    """
    root: list[FileTreeNode] = []
    directories: dict[str, FileTreeNode] = {}

    for file in files:
        parts = [part for part in file.name.split("/") if part]
        if not parts:
            continue

        siblings = root
        for depth, part in enumerate(parts[:-1], start=1):
            dir_path = "/".join(parts[:depth])
            node = directories.get(dir_path)
            if node is None:
                node = FileTreeNode(name=part, path=dir_path, type="directory", children=[])
                directories[dir_path] = node
                siblings.append(node)
            siblings = node.children  # type: ignore[assignment]

        siblings.append(
            FileTreeNode(
                name=parts[-1],
                path="/".join(parts),
                type="file",
                size=file.size,
                hash=file.hash,
            )
        )

    _sort_nodes(root)
    return root


def _sort_nodes(nodes: list[FileTreeNode]) -> None:
    nodes.sort(key=lambda n: (n.type != "directory", n.name))
    for node in nodes:
        if node.children:
            _sort_nodes(node.children)
