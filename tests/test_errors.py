"""Test error messages, position accuracy, and context snippets."""

import pytest

from fstrlex import run
from fstrlex.errors import EvalError, LexError, ParseError
from fstrlex.lexer import tokenize
from fstrlex.parser import parse


class TestErrorPositions:
    def test_unterminated_field_position(self):
        with pytest.raises(LexError) as exc_info:
            tokenize('x = f"{a"')
        assert exc_info.value.position.column == 7

    def test_error_on_second_line(self):
        with pytest.raises(LexError) as exc_info:
            tokenize('ok = 1\nf"}"')
        err = exc_info.value
        assert err.position.line == 2
        assert err.position.column == 3

    def test_nested_literal_error_position(self):
        with pytest.raises(LexError) as exc_info:
            tokenize('f"{f"{}"}"')
        assert exc_info.value.position.column == 7

    def test_parse_error_span(self):
        with pytest.raises(ParseError) as exc_info:
            parse('f"{x!z}"')
        span = exc_info.value.span
        assert span.start.column == 6
        assert span.end.column == 7


class TestErrorFormatting:
    def test_lex_error_snippet(self):
        with pytest.raises(LexError) as exc_info:
            tokenize('f"{unterminated"')
        formatted = exc_info.value.format("test.py")
        lines = formatted.splitlines()
        assert lines[0] == "error: f-string: expecting '}'"
        assert lines[1] == "  --> test.py:1:3"
        assert lines[3] == '1 | f"{unterminated"'
        assert lines[4] == "  |   ^"

    def test_default_filename(self):
        with pytest.raises(LexError) as exc_info:
            tokenize('f"{"')
        assert "--> <input>:1:3" in exc_info.value.format()

    def test_parse_error_underline(self):
        with pytest.raises(ParseError) as exc_info:
            tokenize("(]")
        assert exc_info.value.format().splitlines()[-1] == "  |  ^"

    def test_eval_error_underlines_span(self):
        with pytest.raises(EvalError) as exc_info:
            run("1 / 0")
        assert exc_info.value.format().splitlines()[-1] == "  | ^^^^^"

    def test_multiline_span_underlines_to_end_of_line(self):
        with pytest.raises(EvalError) as exc_info:
            run("(1 +\n 'a')")
        assert exc_info.value.format().splitlines()[-1] == "  |  ^^^"

    def test_gutter_width_grows(self):
        source = "\n" * 9 + 'f"{"'
        with pytest.raises(LexError) as exc_info:
            tokenize(source)
        lines = exc_info.value.format().splitlines()
        assert lines[1] == "   --> <input>:10:3"
        assert lines[3] == '10 | f"{"'

    def test_str_is_formatted(self):
        with pytest.raises(LexError) as exc_info:
            tokenize('f"{"')
        assert str(exc_info.value).startswith("error: f-string: expecting '}'")
