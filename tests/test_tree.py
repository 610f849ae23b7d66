"""Tests for ConfigTree linking and lookup."""

from __future__ import annotations

from pathlib import Path

import pytest

from deckr41.rc_nodes import CommandDef, ConfigNode, ConfigTree, NodeData, ProjectInfo


def _data(name: str, *command_ids: str) -> NodeData:
    return NodeData(
        project=ProjectInfo(name=name),
        commands={cid: CommandDef(id=cid, prompt=f"{name}:{cid}") for cid in command_ids},
    )


def _node(directory: Path, name: str, *command_ids: str) -> ConfigNode:
    return ConfigNode(directory / ".d41rc", _data(name, *command_ids))


@pytest.fixture
def nested(tmp_path: Path) -> tuple[ConfigTree, Path]:
    """/p, /p/a and /p/a/b, each with its own node file."""
    root = tmp_path / "p"
    tree = ConfigTree()
    tree.add(_node(root, "p", "hello"))
    tree.add(_node(root / "a", "a", "hello"))
    tree.add(_node(root / "a" / "b", "b"))
    return tree, root


class TestConfigTreeLinking:
    def test_first_node_is_root(self, tmp_path: Path) -> None:
        tree = ConfigTree()
        node = tree.add(_node(tmp_path, "root"))
        assert tree.root is node
        assert node.parent is None
        assert len(tree) == 1

    def test_children_link_to_nearest_ancestor(self, nested: tuple[ConfigTree, Path]) -> None:
        tree, root = nested
        a = tree.find(root / "a" / ".d41rc")
        b = tree.find(root / "a" / "b" / ".d41rc")
        assert a is not None and b is not None
        assert a.parent is tree.root
        assert b.parent is a
        assert a.children == [b]
        assert list(b.iter_ancestors()) == [a, tree.root]

    def test_skips_directories_without_nodes(self, tmp_path: Path) -> None:
        tree = ConfigTree()
        tree.add(_node(tmp_path, "root"))
        deep = tree.add(_node(tmp_path / "x" / "y" / "z", "deep"))
        assert deep.parent is tree.root

    def test_unrelated_node_falls_back_to_root(self, tmp_path: Path) -> None:
        tree = ConfigTree()
        tree.add(_node(tmp_path / "project", "project"))
        outside = tree.add(_node(tmp_path / "elsewhere", "elsewhere"))
        assert outside.parent is tree.root

    def test_parent_found_through_other_file_names(self, tmp_path: Path) -> None:
        tree = ConfigTree()
        yaml_root = tree.add(ConfigNode(tmp_path / ".d41rc.yaml", _data("root")))
        child = tree.add(_node(tmp_path / "sub", "sub"))
        assert child.parent is yaml_root

    def test_middle_node_adopts_deeper_children(self, tmp_path: Path) -> None:
        tree = ConfigTree()
        root = tree.add(_node(tmp_path, "root"))
        leaf = tree.add(_node(tmp_path / "a" / "b", "leaf"))
        other = tree.add(_node(tmp_path / "c", "other"))
        assert leaf.parent is root

        middle = tree.add(_node(tmp_path / "a", "middle"))

        assert leaf.parent is middle
        assert middle.parent is root
        assert middle.children == [leaf]
        assert root.children == [other, middle]
        chain = tree.find_path_to_file(tmp_path / "a" / "b" / "x.py")
        assert chain == [leaf, middle, root]

    def test_node_above_root_does_not_adopt(self, tmp_path: Path) -> None:
        tree = ConfigTree()
        root = tree.add(_node(tmp_path / "project", "project"))
        child = tree.add(_node(tmp_path / "project" / "sub", "sub"))

        above = tree.add(_node(tmp_path, "above"))

        assert child.parent is root
        assert above.children == []

    def test_add_existing_path_returns_existing(self, tmp_path: Path) -> None:
        tree = ConfigTree()
        first = tree.add(_node(tmp_path, "one"))
        second = tree.add(_node(tmp_path, "two"))
        assert second is first
        assert len(tree) == 1

    def test_paths_are_normalized(self, tmp_path: Path) -> None:
        tree = ConfigTree()
        tree.add(_node(tmp_path / "a" / ".." / "b", "b"))
        assert tree.exists(tmp_path / "b" / ".d41rc")
        assert str(tmp_path / "b" / ".d41rc") in tree


class TestConfigTreeUpdate:
    def test_update_keeps_links(self, nested: tuple[ConfigTree, Path]) -> None:
        tree, root = nested
        path = root / "a" / ".d41rc"
        node = tree.find(path)
        assert node is not None
        children = list(node.children)

        assert tree.update(path, _data("a2", "other"))

        assert tree.find(path) is node
        assert node.data.project.name == "a2"
        assert node.parent is tree.root
        assert node.children == children
        assert tree.find_command("other", path) is not None
        assert tree.find_command("hello", path) is None

    def test_update_unknown_node(self, tmp_path: Path) -> None:
        tree = ConfigTree()
        assert tree.update(tmp_path / ".d41rc", _data("x")) is False
        assert len(tree) == 0


class TestConfigTreeLookup:
    def test_path_to_file_nearest_first(self, nested: tuple[ConfigTree, Path]) -> None:
        tree, root = nested
        chain = tree.find_path_to_file(root / "a" / "b" / "main.py")
        assert [n.data.project.name for n in chain] == ["b", "a", "p"]

    def test_path_to_file_at_root(self, nested: tuple[ConfigTree, Path]) -> None:
        tree, root = nested
        chain = tree.find_path_to_file(root / "README.md")
        assert [n.data.project.name for n in chain] == ["p"]

    def test_sibling_prefix_is_not_a_match(self, tmp_path: Path) -> None:
        tree = ConfigTree()
        tree.add(_node(tmp_path, "root"))
        tree.add(_node(tmp_path / "b", "b"))

        chain = tree.find_path_to_file(tmp_path / "bc" / "file.py")
        assert [n.data.project.name for n in chain] == ["root"]

    def test_file_outside_tree(self, nested: tuple[ConfigTree, Path], tmp_path: Path) -> None:
        tree, _ = nested
        assert tree.find_path_to_file(tmp_path / "other" / "x.py") == []

    def test_empty_tree(self, tmp_path: Path) -> None:
        assert ConfigTree().find_path_to_file(tmp_path / "x.py") == []

    def test_find_command_is_strict(self, nested: tuple[ConfigTree, Path]) -> None:
        tree, root = nested
        b_path = root / "a" / "b" / ".d41rc"
        assert tree.find_command("hello", b_path) is None

        command = tree.find_command("hello", root / "a" / ".d41rc")
        assert command is not None
        assert command.prompt == "a:hello"

    def test_find_command_unknown_node(self, nested: tuple[ConfigTree, Path], tmp_path: Path) -> None:
        tree, _ = nested
        assert tree.find_command("hello", tmp_path / "nope" / ".d41rc") is None

    def test_walk_depth_first(self, tmp_path: Path) -> None:
        tree = ConfigTree()
        tree.add(_node(tmp_path, "root"))
        tree.add(_node(tmp_path / "a", "a"))
        tree.add(_node(tmp_path / "b", "b"))
        tree.add(_node(tmp_path / "a" / "x", "ax"))

        walked = [(n.data.project.name, depth) for n, depth in tree.walk()]
        assert walked == [("root", 0), ("a", 1), ("ax", 2), ("b", 1)]
