"""fstrlex lexer: converts source text into a flat token stream.

Interpolated strings are scanned by a state machine over an explicit frame
stack rather than by recursion:

    NORMAL   host-language tokens at the top level
    LITERAL  literal text of an open f-string
    FIELD    host-language tokens inside a ``{...}`` field
    SPEC     format-spec text after a field's top-level ``:``

A nested f-string found while in FIELD pushes a new LITERAL frame (and its
delimiter on the DelimiterStack) on top of the field that contains it, so
a nested literal may reuse the enclosing literal's quotes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto

from fstrlex.delimiters import DEFAULT_MAX_DEPTH, DelimiterStack
from fstrlex.emitter import TokenEmitter
from fstrlex.errors import LexError, ParseError
from fstrlex.tokens import (
    CLOSING_BRACKETS,
    MATCHING_BRACKET,
    OPENING_BRACKETS,
    OPERATORS,
    QUOTES,
    STRING_PREFIXES,
    Delimiter,
    Position,
    Span,
    Token,
    TokenType,
    is_hex_digit,
    is_name_char,
    is_name_start,
)


_RADIX_DIGITS = {
    "x": ("hexadecimal", "0123456789abcdefABCDEF"),
    "o": ("octal", "01234567"),
    "b": ("binary", "01"),
}


class _State(Enum):
    NORMAL = auto()
    LITERAL = auto()
    FIELD = auto()
    SPEC = auto()


@dataclass
class _Frame:
    state: _State
    delimiter: Delimiter | None = None
    # LITERAL: position of FSTRING_START. FIELD/SPEC: position of the '{'.
    start: Position | None = None
    # Open brackets inside this frame (character, position)
    brackets: list[tuple[str, Position]] = field(default_factory=list)
    # FIELD: number of tokens emitted before the field's first token
    first_token: int = 0
    # FIELD/SPEC: how many format specs of the same literal enclose this field
    spec_depth: int = 0


class Lexer:
    """Tokenize fstrlex source text into a stream of Token objects."""

    def __init__(
        self,
        source: str,
        filename: str = "<input>",
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._source = source
        self._filename = filename
        self._max_depth = max_depth
        self._pos = 0
        self._line = 1
        self._col = 1
        self._emitter = TokenEmitter()
        self._frames: list[_Frame] = [_Frame(_State.NORMAL)]
        self.delimiters = DelimiterStack(source, max_depth)

    @property
    def _frame(self) -> _Frame:
        return self._frames[-1]

    def tokenize(self) -> list[Token]:
        """Tokenize the full source and return the token list."""
        while self._pos < len(self._source):
            state = self._frame.state
            if state == _State.LITERAL:
                self._lex_literal()
            elif state == _State.SPEC:
                self._lex_spec()
            else:
                self._lex_expression()

        self._check_eof()

        end = self._current_pos()
        if self._emitter.last_type() not in (None, TokenType.NEWLINE):
            self._emitter.emit(TokenType.NEWLINE, "", "", end, end)
        self._emitter.emit(TokenType.EOF, "", "", end, end)
        return self._emitter.tokens

    def _check_eof(self) -> None:
        frame = self._frame
        if frame.state in (_State.FIELD, _State.SPEC):
            raise self._error("f-string: expecting '}'", frame.start)
        if frame.state == _State.LITERAL:
            raise self._error("unterminated f-string literal", frame.start)
        if frame.brackets:
            ch, pos = frame.brackets[-1]
            raise self._syntax_error(f"'{ch}' was never closed", pos)

    # ------------------------------------------------------------------
    # Position helpers
    # ------------------------------------------------------------------

    def _current_pos(self) -> Position:
        return Position(self._line, self._col, self._pos)

    def _peek(self, offset: int = 0) -> str:
        idx = self._pos + offset
        if idx < len(self._source):
            return self._source[idx]
        return ""

    def _at(self, text: str) -> bool:
        return self._source.startswith(text, self._pos)

    def _advance(self) -> str:
        ch = self._source[self._pos]
        self._pos += 1
        if ch == "\n":
            self._line += 1
            self._col = 1
        else:
            self._col += 1
        return ch

    def _emit(self, tt: TokenType, value: str, raw: str, start: Position) -> Token:
        return self._emitter.emit(tt, value, raw, start, self._current_pos())

    def _error(self, message: str, pos: Position | None = None) -> LexError:
        if pos is None:
            pos = self._current_pos()
        return LexError(message, pos, self._source)

    def _syntax_error(self, message: str, start: Position) -> ParseError:
        end = Position(start.line, start.column + 1, start.offset + 1)
        return ParseError(message, Span(start, end), self._source)

    # ------------------------------------------------------------------
    # Frame management
    # ------------------------------------------------------------------

    def _push(self, frame: _Frame) -> None:
        self._frames.append(frame)

    def _pop(self) -> _Frame:
        return self._frames.pop()

    def _innermost_field(self) -> _Frame | None:
        for frame in reversed(self._frames):
            if frame.state in (_State.FIELD, _State.SPEC):
                return frame
        return None

    # ------------------------------------------------------------------
    # Expression mode (top level and inside fields)
    # ------------------------------------------------------------------

    def _lex_expression(self) -> None:
        frame = self._frame
        in_field = frame.state == _State.FIELD
        ch = self._peek()

        if ch == "\0":
            raise self._error("NUL character in source")

        if ch in " \t\f":
            self._advance()
            return

        if ch in "\r\n":
            self._lex_newline(frame)
            return

        if ch == "#":
            if in_field and not frame.delimiter.triple:
                raise self._error(
                    "f-string: comments are not allowed in single-quoted f-string expressions"
                )
            while self._pos < len(self._source) and self._peek() not in "\r\n":
                self._advance()
            return

        if ch == "\\":
            self._lex_continuation()
            return

        if is_name_start(ch):
            self._lex_name()
            return

        if ch.isdigit() or (ch == "." and self._peek(1).isdigit()):
            self._lex_number()
            return

        if ch in QUOTES:
            self._lex_string("", self._current_pos())
            return

        if in_field and not frame.brackets and self._lex_field_punct(frame, ch):
            return

        if ch in OPENING_BRACKETS:
            start = self._current_pos()
            self._advance()
            frame.brackets.append((ch, start))
            self._emit(OPENING_BRACKETS[ch], ch, ch, start)
            return

        if ch in CLOSING_BRACKETS:
            self._lex_closing_bracket(frame, ch)
            return

        self._lex_operator()

    def _lex_newline(self, frame: _Frame) -> None:
        start = self._current_pos()
        if frame.state == _State.FIELD and not frame.delimiter.triple:
            raise self._error(
                "f-string: newlines are not allowed in single-quoted f-string expressions"
            )
        raw = self._advance()
        if raw == "\r" and self._peek() == "\n":
            raw += self._advance()
        if frame.state == _State.NORMAL and not frame.brackets:
            if self._emitter.last_type() not in (None, TokenType.NEWLINE):
                self._emit(TokenType.NEWLINE, "\n", raw, start)

    def _lex_continuation(self) -> None:
        start = self._current_pos()
        self._advance()  # consume backslash
        if self._peek() == "\n":
            self._advance()
        elif self._peek() == "\r" and self._peek(1) == "\n":
            self._advance()
            self._advance()
        elif self._pos >= len(self._source):
            raise self._error("unexpected end of input after line continuation character", start)
        else:
            raise self._error("unexpected character after line continuation character", start)

    def _lex_name(self) -> None:
        start = self._current_pos()
        chars = []
        while self._pos < len(self._source) and is_name_char(self._peek()):
            chars.append(self._advance())
        name = "".join(chars)

        if self._peek() in QUOTES:
            lowered = name.lower()
            if lowered in STRING_PREFIXES:
                self._lex_string(name, start)
                return
            if len(name) <= 3 and set(lowered) <= set("rbuf"):
                raise self._error(f"invalid string prefix '{name}'", start)

        self._emit(TokenType.NAME, name, name, start)

    def _lex_number(self) -> None:
        start = self._current_pos()
        if self._peek() == "0" and self._peek(1) in ("x", "X", "o", "O", "b", "B"):
            self._advance()
            base = self._advance().lower()
            kind, valid = _RADIX_DIGITS[base]
            digits = 0
            while is_hex_digit(self._peek()) or self._peek() == "_":
                if self._peek() != "_" and self._peek() not in valid:
                    raise self._error(f"invalid digit '{self._peek()}' in {kind} literal")
                if self._advance() != "_":
                    digits += 1
            if digits == 0:
                raise self._error(f"invalid {kind} literal", start)
        else:
            self._consume_digits()
            if self._peek() == ".":
                self._advance()
                self._consume_digits()
            if self._peek() in ("e", "E") and (
                self._peek(1).isdigit() or (self._peek(1) in ("+", "-") and self._peek(2).isdigit())
            ):
                self._advance()
                if self._peek() in ("+", "-"):
                    self._advance()
                self._consume_digits()
            if self._peek() in ("j", "J"):
                self._advance()

        if is_name_start(self._peek()):
            raise self._error("invalid decimal literal", start)
        text = self._source[start.offset : self._pos]
        self._emit(TokenType.NUMBER, text, text, start)

    def _consume_digits(self) -> None:
        while self._peek().isdigit() or (self._peek() == "_" and self._peek(1).isdigit()):
            self._advance()

    def _lex_closing_bracket(self, frame: _Frame, ch: str) -> None:
        start = self._current_pos()
        if frame.brackets:
            opener, _ = frame.brackets.pop()
            if MATCHING_BRACKET[ch] != opener:
                raise self._syntax_error(
                    f"closing parenthesis '{ch}' does not match opening parenthesis '{opener}'",
                    start,
                )
            self._advance()
            self._emit(CLOSING_BRACKETS[ch], ch, ch, start)
            return
        if frame.state == _State.FIELD:
            raise self._syntax_error(f"f-string: unmatched '{ch}'", start)
        raise self._syntax_error(f"unmatched '{ch}'", start)

    def _lex_operator(self) -> None:
        start = self._current_pos()
        for op in OPERATORS:
            if self._at(op):
                for _ in op:
                    self._advance()
                self._emit(TokenType.OP, op, op, start)
                return

        ch = self._peek()
        if ch == ":":
            self._advance()
            self._emit(TokenType.COLON, ":", ":", start)
            return
        if ch == "=":
            self._advance()
            self._emit(TokenType.EQUAL, "=", "=", start)
            return

        raise self._error(f"invalid character '{ch}'", start)

    # ------------------------------------------------------------------
    # Field punctuation at bracket depth 0
    # ------------------------------------------------------------------

    def _lex_field_punct(self, frame: _Frame, ch: str) -> bool:
        """Handle '}', ':', '!' and '=' at the top level of a field."""
        nxt = self._peek(1)
        if ch == "}":
            self._require_expression(frame, ch)
            start = self._current_pos()
            self._advance()
            self._emit(TokenType.RBRACE, "}", "}", start)
            self._pop()
            return True

        if ch == ":":
            # A top-level ':' always starts the format spec, even before '='.
            self._require_expression(frame, ch)
            start = self._current_pos()
            self._advance()
            self._emit(TokenType.COLON, ":", ":", start)
            frame.state = _State.SPEC
            return True

        if ch == "!" and nxt != "=":
            self._require_expression(frame, ch)
            start = self._current_pos()
            self._advance()
            self._emit(TokenType.EXCLAMATION, "!", "!", start)
            return True

        if ch == "=" and nxt != "=":
            self._require_expression(frame, ch)
            start = self._current_pos()
            self._advance()
            self._emit(TokenType.EQUAL, "=", "=", start)
            return True

        return False

    def _require_expression(self, frame: _Frame, terminator: str) -> None:
        if len(self._emitter.tokens) == frame.first_token:
            raise self._error(f"f-string: valid expression required before '{terminator}'")

    def _open_field(self, outer: _Frame) -> None:
        spec_depth = outer.spec_depth + 1 if outer.state == _State.SPEC else 0
        start = self._current_pos()
        if spec_depth > self._max_depth:
            raise self._error("f-string: expressions nested too deeply", start)
        self._advance()
        self._emit(TokenType.LBRACE, "{", "{", start)
        self._push(
            _Frame(
                _State.FIELD,
                delimiter=outer.delimiter,
                start=start,
                first_token=len(self._emitter.tokens),
                spec_depth=spec_depth,
            )
        )

    # ------------------------------------------------------------------
    # String literals
    # ------------------------------------------------------------------

    def _lex_string(self, prefix: str, start: Position) -> None:
        quote = self._peek()
        length = 3 if self._at(quote * 3) else 1
        delim = Delimiter(quote, length, prefix)
        for _ in range(length):
            self._advance()

        if delim.is_fstring:
            self.delimiters.open(delim, start)
            self._emitter.start(delim, start, self._current_pos())
            self._push(_Frame(_State.LITERAL, delimiter=delim, start=start))
            return

        while self._pos < len(self._source):
            ch = self._peek()
            if ch == "\\":
                self._advance()
                if self._peek() == "\r" and self._peek(1) == "\n":
                    self._advance()
                if self._pos < len(self._source):
                    self._advance()
                continue
            if self._at(delim.closing):
                for _ in range(length):
                    self._advance()
                text = self._source[start.offset : self._pos]
                self._emitter.emit(
                    TokenType.STRING, text, text, start, self._current_pos(), delimiter=delim
                )
                return
            if ch in "\r\n" and not delim.triple:
                break
            self._advance()

        field_frame = self._innermost_field()
        if field_frame is not None:
            raise self._error("f-string: expecting '}'", field_frame.start)
        if delim.triple:
            raise self._error("unterminated triple-quoted string literal", start)
        raise self._error("unterminated string literal", start)

    # ------------------------------------------------------------------
    # f-string literal text
    # ------------------------------------------------------------------

    def _lex_literal(self) -> None:
        frame = self._frame
        delim = frame.delimiter
        text_start = self._current_pos()
        value: list[str] = []

        while self._pos < len(self._source):
            if self._at(delim.closing):
                raw = self._source[text_start.offset : self._pos]
                close_pos = self._current_pos()
                for _ in range(delim.length):
                    self._advance()
                self.delimiters.close(self._source[close_pos.offset : self._pos], close_pos)
                self._emitter.end(delim, "".join(value), raw, text_start, self._current_pos())
                self._pop()
                return

            ch = self._peek()
            if ch == "{":
                if self._peek(1) == "{":
                    self._advance()
                    self._advance()
                    value.append("{")
                    continue
                self._flush_middle(value, text_start)
                self._open_field(frame)
                return

            if ch == "}":
                if self._peek(1) == "}":
                    self._advance()
                    self._advance()
                    value.append("}")
                    continue
                raise self._error("f-string: single '}' is not allowed")

            if ch == "\\":
                self._scan_escape(delim, value)
                continue

            if ch in "\r\n" and not delim.triple:
                raise self._error("unterminated f-string literal: newline in single-quoted f-string")

            value.append(self._advance())

        raise self._error("unterminated f-string literal", frame.start)

    def _lex_spec(self) -> None:
        frame = self._frame
        delim = frame.delimiter
        text_start = self._current_pos()
        value: list[str] = []

        while self._pos < len(self._source):
            if self._at(delim.closing):
                raise self._error("f-string: expecting '}'", frame.start)

            ch = self._peek()
            if ch == "{":
                self._flush_middle(value, text_start)
                self._open_field(frame)
                return

            if ch == "}":
                self._flush_middle(value, text_start)
                start = self._current_pos()
                self._advance()
                self._emit(TokenType.RBRACE, "}", "}", start)
                self._pop()
                return

            if ch == "\\":
                self._scan_escape(delim, value)
                continue

            if ch in "\r\n" and not delim.triple:
                raise self._error(
                    "f-string: newlines are not allowed in format specifiers "
                    "for single-quoted f-strings"
                )

            value.append(self._advance())

        raise self._error("f-string: expecting '}'", frame.start)

    def _flush_middle(self, value: list[str], text_start: Position) -> None:
        raw = self._source[text_start.offset : self._pos]
        self._emitter.middle("".join(value), raw, text_start, self._current_pos())

    def _scan_escape(self, delim: Delimiter, value: list[str]) -> None:
        """Copy one backslash sequence verbatim; expansion happens later."""
        nxt = self._peek(1)
        if nxt in ("", "{", "}"):
            # A backslash never protects a brace; the brace keeps its meaning.
            value.append(self._advance())
            return

        if not delim.raw and nxt == "N" and self._peek(2) == "{":
            # \N{NAME}: the braces belong to the escape, not to a field.
            for _ in range(3):
                value.append(self._advance())
            while self._pos < len(self._source) and not self._at(delim.closing):
                ch = self._peek()
                if ch in "\r\n":
                    break
                value.append(self._advance())
                if ch == "}":
                    break
            return

        value.append(self._advance())
        if self._peek() == "\r" and self._peek(1) == "\n":
            value.append(self._advance())
        value.append(self._advance())


def tokenize(
    source: str,
    filename: str = "<input>",
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[Token]:
    """Convenience function: tokenize source text and return token list."""
    return Lexer(source, filename, max_depth).tokenize()
