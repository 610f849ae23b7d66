"""Tree of node files, mirroring the directory hierarchy.

Nodes live in an arena keyed by absolute file path. Each node keeps an
ordered list of children and a weak reference to its parent.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from pathlib import Path

from deckr41.config.paths import rc_candidates
from deckr41.logging import get_logger
from deckr41.rc_nodes.schema import CommandDef, ConfigNode, NodeData

log = get_logger("rc_nodes.tree")


def normalize_path(path: str | Path) -> str:
    """Absolute, normalized path string used as node id."""
    return os.path.abspath(os.fspath(path))


def is_under(file_path: str | Path, directory: Path) -> bool:
    """Component-wise prefix test: is `file_path` inside `directory`?"""
    return Path(normalize_path(file_path)).is_relative_to(directory)


class ConfigTree:
    """Hierarchy of `.d41rc` nodes below (and above) the working directory.

    Mutations (`add`, `update`) and lookups share one re-entrant lock so a
    reader never sees a half-linked node. Node `data` is swapped by a
    single assignment on reload.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, ConfigNode] = {}
        self._root: ConfigNode | None = None
        self._lock = threading.RLock()

    @property
    def root(self) -> ConfigNode | None:
        return self._root

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, (str, Path)) and self.exists(path)

    def _find_parent(self, node_path: str) -> ConfigNode | None:
        """Closest known node file in an ancestor directory."""
        current = Path(node_path).parent
        while True:
            parent_dir = current.parent
            if parent_dir == current:
                return None
            for candidate in rc_candidates(parent_dir):
                found = self._nodes.get(str(candidate))
                if found is not None:
                    return found
            current = parent_dir

    def add(self, node: ConfigNode) -> ConfigNode:
        """Insert a newly discovered node and link it to its parent.

        The first node becomes the root. Later nodes attach to the
        closest ancestor node, or under the root when there is none.
        Existing nodes deeper inside the new node's directory move under it.
        Adding a path that already exists returns the existing node.
        """
        node.path = normalize_path(node.path)
        with self._lock:
            existing = self._nodes.get(node.path)
            if existing is not None:
                log.debug("Node already in tree: %s", node.path)
                return existing

            self._nodes[node.path] = node

            if self._root is None:
                self._root = node
                node.parent = None
                log.debug("Tree root: %s", node.path)
                return node

            parent = self._find_parent(node.path) or self._root
            node.parent = parent

            # Adopt siblings that live deeper inside the new node's directory
            kept: list[ConfigNode] = []
            nested = node.directory.is_relative_to(parent.directory)
            for child in parent.children:
                if (
                    nested
                    and child.directory != node.directory
                    and child.directory.is_relative_to(node.directory)
                ):
                    child.parent = node
                    node.children.append(child)
                    log.debug("Moved %s under %s", child.path, node.path)
                else:
                    kept.append(child)
            parent.children = kept

            parent.children.append(node)
            log.debug("Added %s under %s", node.path, parent.path)
            return node

    def find(self, path: str | Path) -> ConfigNode | None:
        with self._lock:
            return self._nodes.get(normalize_path(path))

    def exists(self, path: str | Path) -> bool:
        with self._lock:
            return normalize_path(path) in self._nodes

    def update(self, path: str | Path, data: NodeData) -> bool:
        """Replace a node's data in place; parent/children stay as they are.

        Returns:
            False when no node is registered under `path`.
        """
        with self._lock:
            node = self._nodes.get(normalize_path(path))
            if node is None:
                log.error("Failed to update node data, unknown node: %s", path)
                return False
            node.data = data
            return True

    def find_command(self, name: str, node_id: str | Path) -> CommandDef | None:
        """Look up a command strictly in one node (no inheritance)."""
        with self._lock:
            node = self._nodes.get(normalize_path(node_id))
            return node.data.commands.get(name) if node is not None else None

    def find_path_to_file(self, file_path: str | Path) -> list[ConfigNode]:
        """Nodes responsible for `file_path`, nearest ancestor first.

        Descends from the root, at each level following the first child
        whose directory contains `file_path`.
        """
        target = normalize_path(file_path)
        with self._lock:
            current = self._root
            if current is None or not is_under(target, current.directory):
                return []

            chain = [current]
            while True:
                current = next(
                    (c for c in current.children if is_under(target, c.directory)),
                    None,
                )
                if current is None:
                    break
                chain.append(current)

        chain.reverse()
        return chain

    def walk(self) -> Iterator[tuple[ConfigNode, int]]:
        """Depth-first (node, depth) pairs starting at the root."""
        with self._lock:
            if self._root is None:
                return
            stack: list[tuple[ConfigNode, int]] = [(self._root, 0)]
            order: list[tuple[ConfigNode, int]] = []
            while stack:
                node, depth = stack.pop()
                order.append((node, depth))
                stack.extend((child, depth + 1) for child in reversed(node.children))
        yield from order

    def nodes(self) -> list[ConfigNode]:
        with self._lock:
            return list(self._nodes.values())
