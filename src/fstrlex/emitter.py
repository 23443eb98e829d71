"""Token construction with source position bookkeeping."""

from __future__ import annotations

from fstrlex.tokens import Delimiter, Position, Span, Token, TokenType


class TokenEmitter:
    """Collect tokens in source order.

    The lexer owns the cursor; every method takes explicit start and end
    positions so that tokens inside nested fields point at their real
    location in the source.
    """

    def __init__(self) -> None:
        self.tokens: list[Token] = []

    def emit(
        self,
        tt: TokenType,
        value: str,
        raw: str,
        start: Position,
        end: Position,
        delimiter: Delimiter | None = None,
    ) -> Token:
        tok = Token(tt, value, raw, Span(start, end), delimiter)
        self.tokens.append(tok)
        return tok

    def start(self, delim: Delimiter, start: Position, end: Position) -> Token:
        tok = Token(TokenType.FSTRING_START, delim.opening, delim.opening, Span(start, end), delim)
        self.tokens.append(tok)
        return tok

    def middle(self, value: str, raw: str, start: Position, end: Position) -> Token | None:
        if not raw:
            return None
        return self.emit(TokenType.FSTRING_MIDDLE, value, raw, start, end)

    def end(
        self, delim: Delimiter, value: str, raw: str, start: Position, end: Position
    ) -> Token:
        tok = Token(TokenType.FSTRING_END, value, raw + delim.closing, Span(start, end), delim)
        self.tokens.append(tok)
        return tok

    def last_type(self) -> TokenType | None:
        return self.tokens[-1].type if self.tokens else None
