"""Discovery, loading and command resolution for node files.

RCNodes owns one ConfigTree (files found around the working directory)
plus the special nodes: the user-level override and the built-in
defaults. Special nodes never join the tree and are consulted first.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from deckr41.config.paths import (
    RC_FILENAMES,
    get_default_rc_path,
    get_user_rc_path,
    rc_candidates,
)
from deckr41.context import CommandRef
from deckr41.errors import CommandNotFound, ConfigLoadError
from deckr41.logging import get_logger
from deckr41.rc_nodes.reader import read_rc_file
from deckr41.rc_nodes.schema import CommandDef, ConfigNode
from deckr41.rc_nodes.tree import ConfigTree, normalize_path

log = get_logger("rc_nodes")

# Directories never scanned for node files
IGNORED_DIRS = frozenset(
    {".git", ".hg", ".svn", "node_modules", "__pycache__", ".venv", "venv", ".tox",
     ".mypy_cache", ".pytest_cache", ".ruff_cache", "dist", "build"}
)


@dataclass(frozen=True, slots=True)
class ResolvedCommand:
    """A command together with the node that defines it."""

    command: CommandDef
    node: ConfigNode


class RCNodes:
    """All node files known to one deckr41 instance."""

    def __init__(
        self,
        cwd: str | Path,
        *,
        default_rc_path: str | Path | None = None,
        user_rc_path: str | Path | None = None,
    ) -> None:
        self.cwd = Path(normalize_path(cwd))
        self.default_rc_path = normalize_path(default_rc_path or get_default_rc_path())
        user_path = user_rc_path if user_rc_path is not None else get_user_rc_path()
        self.user_rc_path = normalize_path(user_path) if user_path else None
        self.tree = ConfigTree()
        # Resolution order: user override first, then built-in defaults
        self._special: dict[str, ConfigNode] = {}

    # ------------------------------------------------------------------
    # Special nodes
    # ------------------------------------------------------------------

    @property
    def special_nodes(self) -> list[ConfigNode]:
        return list(self._special.values())

    def is_special(self, node_id: str | Path) -> bool:
        return normalize_path(node_id) in self._special

    def load_special(self) -> None:
        """(Re)load the user-level and built-in node files."""
        special: dict[str, ConfigNode] = {}

        if self.user_rc_path and os.path.exists(self.user_rc_path):
            try:
                special[self.user_rc_path] = ConfigNode(
                    self.user_rc_path, read_rc_file(self.user_rc_path)
                )
            except ConfigLoadError as e:
                log.warning("Skipping user node file: %s", e)

        try:
            special[self.default_rc_path] = ConfigNode(
                self.default_rc_path, read_rc_file(self.default_rc_path)
            )
        except ConfigLoadError as e:
            log.error("Built-in commands unavailable: %s", e)

        self._special = special

    # ------------------------------------------------------------------
    # Discovery and loading
    # ------------------------------------------------------------------

    def _scan_down(self) -> list[Path]:
        found: list[Path] = []
        names = set(RC_FILENAMES)
        for dirpath, dirnames, filenames in os.walk(self.cwd):
            dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS)
            found.extend(Path(dirpath) / name for name in sorted(filenames) if name in names)
        return found

    def _scan_up(self, below: list[Path]) -> list[Path]:
        """Node files in ancestors of cwd, stopping at a `root: true` file."""
        if any(self._is_root_file(p) for p in below if p.parent == self.cwd):
            return []

        found: list[Path] = []
        current = self.cwd
        while current.parent != current:
            current = current.parent
            stop = False
            for candidate in rc_candidates(current):
                if not candidate.is_file() or self.is_special(candidate):
                    continue
                found.append(candidate)
                stop = stop or self._is_root_file(candidate)
            if stop:
                break
        return found

    def _is_root_file(self, path: Path) -> bool:
        try:
            return read_rc_file(path).root
        except ConfigLoadError:
            return False

    def discover(self) -> list[Path]:
        """Node files around the working directory, shallowest first."""
        below = self._scan_down()
        files = {normalize_path(p) for p in below + self._scan_up(below)}
        files -= set(self._special)
        return sorted((Path(p) for p in files), key=lambda p: (len(p.parts), str(p)))

    def load_one(self, path: str | Path) -> bool:
        """Parse one node file and add it to (or refresh it in) the tree.

        A file that fails to parse leaves the tree untouched.

        Returns:
            True when the tree now reflects the file's contents.
        """
        node_path = normalize_path(path)
        if node_path in self._special:
            log.debug("Skipping %s, already loaded as a special node", node_path)
            return False

        try:
            data = read_rc_file(node_path, cwd=self.cwd)
        except ConfigLoadError as e:
            log.warning("Something went wrong loading node file: %s", e)
            return False

        if self.tree.exists(node_path):
            self.tree.update(node_path, data)
            log.info("Reloaded %s", node_path)
        else:
            self.tree.add(ConfigNode(node_path, data))
            log.debug("Loaded %s (%d commands)", node_path, len(data.commands))
        return True

    def load_all(self) -> list[Path]:
        """Load special nodes and every discovered node file.

        Returns:
            The discovered tree files (loaded or not), for watching.
        """
        self.load_special()
        files = self.discover()
        loaded = sum(self.load_one(p) for p in files)
        log.info("Loaded %d of %d node files under %s", loaded, len(files), self.cwd)
        return files

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find_path(self, file_path: str | Path | None = None) -> list[ConfigNode]:
        """Nodes to consult for `file_path`: special nodes, then tree nodes
        nearest-first. Without a file, special nodes and the tree root."""
        result = self.special_nodes
        if file_path is None:
            if self.tree.root is not None:
                result.append(self.tree.root)
            return result
        result.extend(self.tree.find_path_to_file(file_path))
        return result

    def find_command(
        self, ref: CommandRef, file_path: str | Path | None = None
    ) -> ResolvedCommand | None:
        """Resolve a command reference.

        With a node id the lookup is strict to that node. Without one the
        first node in find_path(file_path) defining the command wins, so a
        child node shadows its ancestors.
        """
        if ref.node_id is not None:
            node_id = normalize_path(ref.node_id)
            node = self._special.get(node_id) or self.tree.find(node_id)
            if node is None:
                return None
            command = node.data.commands.get(ref.name)
            return ResolvedCommand(command, node) if command is not None else None

        for node in self.find_path(file_path):
            command = node.data.commands.get(ref.name)
            if command is not None:
                return ResolvedCommand(command, node)
        return None

    def get_command(
        self, ref: CommandRef, file_path: str | Path | None = None
    ) -> ResolvedCommand:
        """Like find_command() but raises CommandNotFound."""
        resolved = self.find_command(ref, file_path)
        if resolved is None:
            log.error("Command not found: %s (node=%s)", ref.name, ref.node_id)
            raise CommandNotFound(ref.name, ref.node_id)
        return resolved

    def list_commands(self, file_path: str | Path | None = None) -> list[ResolvedCommand]:
        """Every command visible from `file_path`, grouped by node."""
        return [
            ResolvedCommand(command, node)
            for node in self.find_path(file_path)
            for command in node.data.commands.values()
        ]

    # ------------------------------------------------------------------
    # Eject
    # ------------------------------------------------------------------

    def eject_defaults(self, destination_dir: str | Path | None = None) -> Path:
        """Copy the built-in node file into a project for local edits.

        Raises:
            FileExistsError: A node file already exists at the destination.
        """
        directory = Path(destination_dir) if destination_dir else self.cwd
        suffix = Path(self.default_rc_path).suffix
        destination = directory / f".d41rc{suffix}"

        existing = [p for p in rc_candidates(directory) if p.exists()]
        if existing:
            raise FileExistsError(
                f"Node file exists, aborting eject to prevent overwriting: {existing[0]}"
            )

        shutil.copyfile(self.default_rc_path, destination)
        log.info("Built-in commands ejected to %s", destination)
        return destination
