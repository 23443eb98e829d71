"""Tests for the CLI module: arg parsing, exit codes, env passthrough, end-to-end."""

from __future__ import annotations

import argparse
from pathlib import Path

import pytest

from fstrlex.cli import CliOptions, build_parser, main, parse_env_arg, run_file

# ---------------------------------------------------------------------------
# Argument parsing helpers
# ---------------------------------------------------------------------------


class TestParseHelpers:
    def test_parse_env_arg_simple(self) -> None:
        assert parse_env_arg("mode=draft") == ("mode", "draft")

    def test_parse_env_arg_with_equals_in_value(self) -> None:
        assert parse_env_arg("x=a=b") == ("x", "a=b")

    def test_parse_env_arg_empty_value(self) -> None:
        assert parse_env_arg("key=") == ("key", "")

    def test_parse_env_arg_no_equals_raises(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            parse_env_arg("noequals")

    def test_parse_env_arg_bad_name_raises(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError, match="invalid variable name"):
            parse_env_arg("1x=2")


# ---------------------------------------------------------------------------
# Arg parsing via build_parser
# ---------------------------------------------------------------------------


class TestArgParsing:
    def test_input_only(self) -> None:
        ns = build_parser().parse_args(["prog.py"])
        assert ns.input == "prog.py"
        assert ns.output is None
        assert ns.max_depth is None

    def test_output_flag(self) -> None:
        ns = build_parser().parse_args(["prog.py", "-o", "out.txt"])
        assert ns.output == "out.txt"

    def test_env_flags(self) -> None:
        ns = build_parser().parse_args(["prog.py", "-e", "a=1", "--env", "b=2"])
        assert ns.env == ["a=1", "b=2"]

    def test_max_depth(self) -> None:
        ns = build_parser().parse_args(["prog.py", "--max-depth", "7"])
        assert ns.max_depth == 7

    def test_mode_flags(self) -> None:
        ns = build_parser().parse_args(["prog.py", "--tokens", "--watch", "--debug"])
        assert ns.tokens is True
        assert ns.watch is True
        assert ns.debug is True


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------


class TestExitCodes:
    def test_success(self, tmp_path: Path, capsys) -> None:
        src = tmp_path / "prog.py"
        src.write_text('x = 2\nf"{x * 21}"\n')
        assert main([str(src)]) == 0
        assert capsys.readouterr().out == "42\n"

    def test_lex_error_returns_1(self, tmp_path: Path, capsys) -> None:
        src = tmp_path / "prog.py"
        src.write_text('f"{unterminated"\n')
        assert main([str(src)]) == 1
        err = capsys.readouterr().err
        assert "error: f-string: expecting '}'" in err
        assert f"{src}:1:3" in err

    def test_parse_error_returns_1(self, tmp_path: Path, capsys) -> None:
        src = tmp_path / "prog.py"
        src.write_text('f"{x!q}"\n')
        assert main([str(src)]) == 1
        assert "invalid conversion character" in capsys.readouterr().err

    def test_eval_error_returns_2(self, tmp_path: Path, capsys) -> None:
        src = tmp_path / "prog.py"
        src.write_text("undefined_name\n")
        assert main([str(src)]) == 2
        assert "name 'undefined_name' is not defined" in capsys.readouterr().err

    def test_bad_env_returns_2(self, tmp_path: Path, capsys) -> None:
        src = tmp_path / "prog.py"
        src.write_text("1\n")
        assert main([str(src), "-e", "bad"]) == 2
        assert "invalid env format" in capsys.readouterr().err

    def test_bad_max_depth_returns_2(self, tmp_path: Path) -> None:
        src = tmp_path / "prog.py"
        src.write_text("1\n")
        assert main([str(src), "--max-depth", "0"]) == 2

    def test_max_depth_enforced(self, tmp_path: Path, capsys) -> None:
        src = tmp_path / "prog.py"
        src.write_text('f"{f"{1}"}"\n')
        assert main([str(src), "--max-depth", "1"]) == 1
        assert "nested too deeply" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# Output modes
# ---------------------------------------------------------------------------


class TestOutput:
    def test_env_visible_in_output(self, tmp_path: Path) -> None:
        src = tmp_path / "prog.py"
        src.write_text('f"Hello, {name}!"\n')
        out = tmp_path / "out.txt"
        assert main([str(src), "-e", "name=World", "-o", str(out)]) == 0
        assert out.read_text() == "Hello, World!\n"

    def test_multiple_env(self, tmp_path: Path) -> None:
        src = tmp_path / "prog.py"
        src.write_text('f"{a} and {b}"\n')
        out = tmp_path / "out.txt"
        assert main([str(src), "-e", "a=X", "-e", "b=Y", "-o", str(out)]) == 0
        assert out.read_text() == "X and Y\n"

    def test_one_line_per_expression(self, tmp_path: Path, capsys) -> None:
        src = tmp_path / "prog.py"
        src.write_text("1 + 1\nw = 4\nf\"{'x':>{w}}\"\n[1, 2]\n")
        assert main([str(src)]) == 0
        assert capsys.readouterr().out == "2\n   x\n[1, 2]\n"

    def test_tokens_mode(self, tmp_path: Path, capsys) -> None:
        src = tmp_path / "prog.py"
        src.write_text('f"{undefined}"\n')
        assert main([str(src), "--tokens"]) == 0
        out = capsys.readouterr().out
        assert "FSTRING_START" in out
        assert "FSTRING_END" in out

    def test_debug_dumps_ast_to_stderr(self, tmp_path: Path, capsys) -> None:
        src = tmp_path / "prog.py"
        src.write_text('f"{1}"\n')
        assert main([str(src), "--debug"]) == 0
        captured = capsys.readouterr()
        assert captured.out == "1\n"
        assert captured.err.startswith("Module\n")

    def test_run_file(self, tmp_path: Path) -> None:
        src = tmp_path / "prog.py"
        src.write_text('f"{x}"\n')
        options = CliOptions(source=src, variables={"x": "v"})
        assert run_file(options) == "v\n"
