"""Token types, data structures, and character classification helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    # Host language
    NAME = auto()
    NUMBER = auto()
    STRING = auto()  # ordinary string literal, raw source text
    OP = auto()  # any operator not listed below; value is the operator text
    NEWLINE = auto()  # logical line end at bracket depth 0

    # Brackets
    LPAR = auto()  # (
    RPAR = auto()  # )
    LSQB = auto()  # [
    RSQB = auto()  # ]
    LBRACE = auto()  # {
    RBRACE = auto()  # }

    # Field punctuation (also used by the host grammar)
    COLON = auto()  # :
    EQUAL = auto()  # =
    EXCLAMATION = auto()  # ! (conversion marker, only inside a field)

    # Interpolated string sub-tokens
    FSTRING_START = auto()  # prefix + opening quotes
    FSTRING_MIDDLE = auto()  # literal text between fields
    FSTRING_END = auto()  # trailing literal text + closing quotes

    EOF = auto()


@dataclass(frozen=True, slots=True)
class Position:
    """Source position, 1-based line and column, 0-based character offset."""

    line: int
    column: int
    offset: int


@dataclass(frozen=True, slots=True)
class Span:
    """Source range from start to end position."""

    start: Position
    end: Position


@dataclass(frozen=True, slots=True)
class Delimiter:
    """Quote character, quote length, and prefix of one open string literal."""

    quote: str
    length: int
    prefix: str = ""

    @property
    def raw(self) -> bool:
        return "r" in self.prefix.lower()

    @property
    def is_bytes(self) -> bool:
        return "b" in self.prefix.lower()

    @property
    def is_fstring(self) -> bool:
        return "f" in self.prefix.lower()

    @property
    def triple(self) -> bool:
        return self.length == 3

    @property
    def closing(self) -> str:
        return self.quote * self.length

    @property
    def opening(self) -> str:
        return self.prefix + self.closing


@dataclass(frozen=True, slots=True)
class Token:
    """A single lexer token with resolved value and original source text.

    ``delimiter`` is only set on STRING, FSTRING_START and FSTRING_END.
    """

    type: TokenType
    value: str
    raw: str
    span: Span
    delimiter: Delimiter | None = None


QUOTES = frozenset("'\"")

# Valid string prefixes, lower-cased. Any letter case is accepted.
STRING_PREFIXES = frozenset({"", "r", "u", "b", "br", "rb", "f", "fr", "rf"})

KEYWORDS = frozenset(
    {
        "and",
        "else",
        "False",
        "for",
        "if",
        "in",
        "is",
        "None",
        "not",
        "or",
        "True",
        "yield",
    }
)

# Longest first so that the lexer can match greedily.
OPERATORS: tuple[str, ...] = (
    "**=",
    "//=",
    ">>=",
    "<<=",
    "...",
    "->",
    ":=",
    "**",
    "//",
    "==",
    "!=",
    "<=",
    ">=",
    "<<",
    ">>",
    "+=",
    "-=",
    "*=",
    "/=",
    "%=",
    "@=",
    "&=",
    "|=",
    "^=",
    "+",
    "-",
    "*",
    "/",
    "%",
    "@",
    "&",
    "|",
    "^",
    "~",
    "<",
    ">",
    ".",
    ",",
    ";",
)

OPENING_BRACKETS = {"(": TokenType.LPAR, "[": TokenType.LSQB, "{": TokenType.LBRACE}
CLOSING_BRACKETS = {")": TokenType.RPAR, "]": TokenType.RSQB, "}": TokenType.RBRACE}
MATCHING_BRACKET = {")": "(", "]": "[", "}": "{"}


def is_name_start(ch: str) -> bool:
    """Return True if ch can start a NAME."""
    return ch == "_" or ch.isalpha()


def is_name_char(ch: str) -> bool:
    """Return True if ch can continue a NAME."""
    return ch == "_" or ch.isalnum()


def is_hex_digit(ch: str) -> bool:
    """Return True if ch is a hexadecimal digit."""
    return ch != "" and ch in "0123456789abcdefABCDEF"
