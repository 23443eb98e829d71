"""Test the delimiter stack and token emitter."""

import pytest

from fstrlex.delimiters import DEFAULT_MAX_DEPTH, DelimiterStack
from fstrlex.emitter import TokenEmitter
from fstrlex.errors import LexError, StructuralError
from fstrlex.tokens import Delimiter, Position, TokenType

POS = Position(1, 1, 0)
DOUBLE = Delimiter('"', 1, "f")
TRIPLE = Delimiter("'", 3, "rf")


class TestDelimiterStack:
    def test_starts_empty(self):
        stack = DelimiterStack("")
        assert stack.depth == 0
        assert stack.current() is None

    def test_open_and_close(self):
        stack = DelimiterStack("")
        stack.open(DOUBLE, POS)
        assert stack.depth == 1
        assert stack.current() == DOUBLE
        assert stack.close('"', POS) == DOUBLE
        assert stack.depth == 0

    def test_same_delimiter_nests(self):
        stack = DelimiterStack("")
        stack.open(DOUBLE, POS)
        stack.open(DOUBLE, POS)
        assert stack.depth == 2
        stack.close('"', POS)
        assert stack.current() == DOUBLE

    def test_lifo_order(self):
        stack = DelimiterStack("")
        stack.open(TRIPLE, POS)
        stack.open(DOUBLE, POS)
        stack.close('"', POS)
        assert stack.current() == TRIPLE

    def test_mismatched_close(self):
        stack = DelimiterStack("")
        stack.open(TRIPLE, POS)
        with pytest.raises(StructuralError, match="mismatched f-string delimiter"):
            stack.close('"', POS)

    def test_close_when_empty(self):
        stack = DelimiterStack("")
        with pytest.raises(StructuralError, match="no open f-string"):
            stack.close('"', POS)

    def test_structural_error_is_lex_error(self):
        assert issubclass(StructuralError, LexError)

    def test_max_depth(self):
        stack = DelimiterStack("", max_depth=2)
        stack.open(DOUBLE, POS)
        stack.open(DOUBLE, POS)
        with pytest.raises(LexError, match="nested too deeply"):
            stack.open(DOUBLE, POS)

    def test_default_max_depth(self):
        stack = DelimiterStack("")
        for _ in range(DEFAULT_MAX_DEPTH):
            stack.open(DOUBLE, POS)
        with pytest.raises(LexError):
            stack.open(DOUBLE, POS)


class TestDelimiter:
    def test_properties(self):
        assert TRIPLE.closing == "'''"
        assert TRIPLE.opening == "rf'''"
        assert TRIPLE.raw
        assert TRIPLE.is_fstring
        assert not TRIPLE.is_bytes
        assert not DOUBLE.triple

    def test_prefix_case_insensitive(self):
        assert Delimiter('"', 1, "RF").raw
        assert Delimiter('"', 1, "Rb").is_bytes


class TestTokenEmitter:
    def test_start_token(self):
        emitter = TokenEmitter()
        tok = emitter.start(DOUBLE, POS, Position(1, 3, 2))
        assert tok.type == TokenType.FSTRING_START
        assert tok.raw == 'f"'
        assert tok.delimiter == DOUBLE

    def test_empty_middle_suppressed(self):
        emitter = TokenEmitter()
        assert emitter.middle("", "", POS, POS) is None
        assert emitter.tokens == []

    def test_end_raw_includes_quote(self):
        emitter = TokenEmitter()
        tok = emitter.end(TRIPLE, "a", "a", POS, Position(1, 5, 4))
        assert tok.value == "a"
        assert tok.raw == "a'''"

    def test_last_type(self):
        emitter = TokenEmitter()
        assert emitter.last_type() is None
        emitter.emit(TokenType.NAME, "x", "x", POS, Position(1, 2, 1))
        assert emitter.last_type() == TokenType.NAME
