"""Tests for the command line entry point."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from deckr41.backend import BackendClient
from deckr41.cli import build_parser, main
from tests.utils import make_command, openai_frame, sse_body, streaming_handler, write_rc


class TestParser:
    def test_run_arguments(self) -> None:
        args = build_parser().parse_args(
            ["--cwd", "/p", "-v", "3", "run", "finish-line", "--file", "a.py", "--line", "4", "--col", "2"]
        )
        assert args.command == "run"
        assert args.name == "finish-line"
        assert (args.line, args.col) == (4, 2)
        assert args.verbose == 3
        assert args.node is None

    def test_subcommand_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCommands:
    def test_tree(self, project: Path) -> None:
        write_rc(project, {"root": True, "commands": [make_command("a")]})
        write_rc(project / "sub", {"commands": []})
        assert main(["--cwd", str(project), "tree"]) == 0

    def test_tree_without_nodes(self, project: Path) -> None:
        assert main(["--cwd", str(project), "tree"]) == 0

    def test_commands(self, project: Path) -> None:
        write_rc(project, {"root": True, "commands": [make_command("a")]})
        assert main(["--cwd", str(project), "commands", "--file", str(project / "x.py")]) == 0

    def test_eject_twice(self, project: Path) -> None:
        assert main(["--cwd", str(project), "eject"]) == 0
        assert (project / ".d41rc.yaml").is_file()
        assert main(["--cwd", str(project), "eject"]) == 1

    def test_run_without_backend(self, project: Path) -> None:
        source = project / "main.py"
        source.write_text("print(1)\n")
        assert main(["--cwd", str(project), "run", "finish-line", "--file", str(source)]) == 1

    def test_run_streams_reply(
        self,
        project: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        handler = streaming_handler(sse_body(openai_frame("Hello"), openai_frame(", world")))
        monkeypatch.setattr(
            "deckr41.app.BackendClient",
            lambda: BackendClient(transport=httpx.MockTransport(handler)),
        )
        source = project / "main.py"
        source.write_text("print(\n")

        code = main(
            ["--cwd", str(project), "run", "finish-line", "--file", str(source), "--col", "6"]
        )

        assert code == 0
        assert "Hello, world" in capsys.readouterr().out

    def test_run_unknown_command(self, project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        source = project / "main.py"
        source.write_text("")
        assert main(["--cwd", str(project), "run", "nope", "--file", str(source)]) == 1

    def test_run_refused_while_busy(
        self,
        project: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setattr("deckr41.app.Deckr41.run_command", lambda self, *args, **kwargs: None)
        source = project / "main.py"
        source.write_text("")

        assert main(["--cwd", str(project), "run", "finish-line", "--file", str(source)]) == 1
        assert "already running" in capsys.readouterr().err
