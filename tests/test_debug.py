"""Test token and AST dumps and untokenize."""

from __future__ import annotations

import io

import pytest

from fstrlex.debug import dump_ast, dump_tokens, untokenize
from fstrlex.lexer import tokenize
from fstrlex.parser import parse


class TestDumpTokens:
    def test_one_line_per_token(self):
        buf = io.StringIO()
        tokens = tokenize('f"a{x}"')
        dump_tokens(tokens, file=buf)
        lines = buf.getvalue().splitlines()
        assert len(lines) == len(tokens)
        assert lines[0].startswith("1:1\tFSTRING_START")
        assert lines[0].endswith("'f\"'")
        assert "NAME" in lines[3]
        assert lines[-1].startswith("1:8\tEOF")


class TestDumpAst:
    def _dump(self, source: str) -> str:
        buf = io.StringIO()
        dump_ast(parse(source), file=buf)
        return buf.getvalue()

    def test_binop(self):
        assert self._dump("1 + 2") == (
            "Module\n  Expr\n    BinOp\n      Constant(1)\n      Constant(2)\n"
        )

    def test_assign(self):
        assert self._dump("x = y") == "Module\n  Assign x\n    Name(y)\n"

    def test_fstring_parts(self):
        assert self._dump('f"a{x!r}"') == (
            'Module\n  Expr\n    FString f"\n      Literal(\'a\')\n'
            "      Field !r\n        Name(x)\n"
        )

    def test_debug_and_spec(self):
        out = self._dump('f"{x=:>{w}}"')
        assert "Field debug='x='" in out
        assert "FormatSpec" in out
        assert "Name(w)" in out

    def test_comprehension_children(self):
        out = self._dump("[a for a in b if a]")
        assert out.count("Name(a)") == 3
        assert "Name(b)" in out


class TestUntokenize:
    @pytest.mark.parametrize(
        "source",
        [
            'x = f"a{ y }b"\nz = (1,\n     2)\n',
            'f"{f"{1 + 1}"}"\n',
            "f'''line one\n{x!r:>{width}}\nline two'''\n",
            "a  +  b\n",
        ],
    )
    def test_round_trip(self, source):
        assert untokenize(tokenize(source)) == source

    def test_comments_become_spaces(self):
        assert untokenize(tokenize("a  # note\nb\n")) == "a" + " " * 8 + "\nb\n"
