"""Escape expansion for string literal segments.

The lexer keeps escapes verbatim; this runs at evaluation time, once per
literal segment.
"""

from __future__ import annotations

import unicodedata

from fstrlex.errors import LexError
from fstrlex.tokens import Position, is_hex_digit

_SIMPLE_ESCAPES = {
    "\\": "\\",
    "'": "'",
    '"': '"',
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
}

_HEX_ESCAPE_DIGITS = {"x": 2, "u": 4, "U": 8}


def expand_escapes(
    text: str,
    raw: bool,
    start: Position,
    source: str,
    braces: bool = False,
    is_bytes: bool = False,
) -> str:
    """Expand backslash escapes in `text`, the source text of one segment.

    `start` is the source position of text[0]; errors point at the offending
    backslash. With `braces`, doubled braces collapse to a single brace (the
    literal text of an f-string). With `is_bytes`, the text must be ASCII,
    ``\\u``, ``\\U`` and ``\\N`` stay as written, and every resulting
    character fits in one byte.
    """
    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if is_bytes and not ch.isascii():
            raise _escape_error(
                "bytes can only contain ASCII literal characters", text, i, start, source
            )
        if braces and ch in "{}" and text.startswith(ch * 2, i):
            out.append(ch)
            i += 2
            continue
        if ch != "\\" or raw:
            out.append(ch)
            i += 1
            continue

        nxt = text[i + 1] if i + 1 < n else ""
        if is_bytes and nxt in ("u", "U", "N"):
            # Not escapes in bytes: keep the backslash and move on.
            out.append(ch)
            i += 1
        elif nxt in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[nxt])
            i += 2
        elif nxt == "\n":
            i += 2
        elif nxt == "\r":
            i += 3 if text.startswith("\r\n", i + 1) else 2
        elif nxt in "01234567" and nxt:
            j = i + 1
            while j < n and j < i + 4 and text[j] in "01234567":
                j += 1
            value = int(text[i + 1 : j], 8)
            out.append(chr(value & 0xFF if is_bytes else value))
            i = j
        elif nxt in _HEX_ESCAPE_DIGITS:
            count = _HEX_ESCAPE_DIGITS[nxt]
            digits = text[i + 2 : i + 2 + count]
            if len(digits) != count or not all(is_hex_digit(d) for d in digits):
                raise _escape_error(
                    f"truncated \\{nxt} escape: expected {count} hex digits",
                    text,
                    i,
                    start,
                    source,
                )
            codepoint = int(digits, 16)
            if codepoint > 0x10FFFF:
                raise _escape_error(
                    f"Unicode codepoint U+{digits} is out of range", text, i, start, source
                )
            out.append(chr(codepoint))
            i += 2 + count
        elif nxt == "N":
            close = text.find("}", i)
            if not text.startswith("{", i + 2) or close == -1:
                raise _escape_error("malformed \\N character escape", text, i, start, source)
            name = text[i + 3 : close]
            try:
                out.append(unicodedata.lookup(name))
            except KeyError:
                raise _escape_error(
                    f"unknown Unicode character name '{name}'", text, i, start, source
                ) from None
            i = close + 1
        else:
            # Unknown escapes are kept verbatim, backslash included.
            out.append(ch)
            i += 1
    return "".join(out)


def _escape_error(message: str, text: str, index: int, start: Position, source: str) -> LexError:
    return LexError(message, advance_position(start, text[:index]), source)


def advance_position(start: Position, text: str) -> Position:
    """Return the position reached after consuming `text` from `start`."""
    line, col = start.line, start.column
    for ch in text:
        if ch == "\n":
            line += 1
            col = 1
        else:
            col += 1
    return Position(line, col, start.offset + len(text))
