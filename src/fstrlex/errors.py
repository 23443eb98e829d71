"""Error types with formatted source context."""

from __future__ import annotations

from fstrlex.tokens import Position, Span


def _snippet(
    message: str,
    source: str,
    start: Position,
    underline_len: int,
    filename: str,
) -> str:
    lines = source.splitlines(keepends=True)
    line_idx = start.line - 1
    col = start.column

    # Build the source line (strip trailing newline for display)
    if 0 <= line_idx < len(lines):
        source_line = lines[line_idx].rstrip("\n").rstrip("\r")
    else:
        source_line = ""

    pad = " " * (col - 1)
    carets = "^" * max(1, underline_len)

    line_num = str(start.line)
    gutter_width = len(line_num) + 1

    blank_gutter = " " * gutter_width + "|"
    line_gutter = f"{line_num:>{gutter_width - 1}} |"

    return (
        f"error: {message}\n"
        f"{' ' * gutter_width}--> {filename}:{start.line}:{col}\n"
        f"{blank_gutter}\n"
        f"{line_gutter} {source_line}\n"
        f"{blank_gutter} {pad}{carets}"
    )


def _span_underline(span: Span, source: str) -> int:
    """Underline the full span when on one line, otherwise to end of line."""
    if span.end.line == span.start.line:
        return span.end.column - span.start.column
    lines = source.splitlines()
    idx = span.start.line - 1
    line_len = len(lines[idx]) if 0 <= idx < len(lines) else 0
    return line_len - span.start.column + 1


class LexError(Exception):
    """Raised on the first lexing error, with position and source context."""

    def __init__(self, message: str, position: Position, source: str) -> None:
        self.message = message
        self.position = position
        self.source = source
        super().__init__(self.format())

    def format(self, filename: str = "<input>") -> str:
        return _snippet(self.message, self.source, self.position, 1, filename)


class StructuralError(LexError):
    """Raised when a closing delimiter does not match the innermost open literal."""


class ParseError(Exception):
    """Raised on the first syntax error, with span and source context."""

    def __init__(self, message: str, span: Span, source: str) -> None:
        self.message = message
        self.span = span
        self.source = source
        super().__init__(self.format())

    def format(self, filename: str = "<input>") -> str:
        underline = _span_underline(self.span, self.source)
        return _snippet(self.message, self.source, self.span.start, underline, filename)


class EvalError(Exception):
    """Raised on evaluation errors, with span and source context."""

    def __init__(self, message: str, span: Span, source: str) -> None:
        self.message = message
        self.span = span
        self.source = source
        super().__init__(self.format())

    def format(self, filename: str = "<input>") -> str:
        underline = _span_underline(self.span, self.source)
        return _snippet(self.message, self.source, self.span.start, underline, filename)
