"""LIFO stack of open f-string delimiters."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager

from fstrlex.errors import LexError, StructuralError
from fstrlex.tokens import Delimiter, Position

DEFAULT_MAX_DEPTH = 200

# Upper bound on the Python frames the parser or evaluator spends per level
# of f-string nesting (one field's trip down the precedence ladder).
FRAMES_PER_LEVEL = 48


class DelimiterStack:
    """Track the delimiters of all currently open f-string literals.

    A nested literal may reuse the exact delimiter of an enclosing one; the
    two are told apart only by their depth on this stack.
    """

    def __init__(self, source: str, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self._source = source
        self._max_depth = max_depth
        self._stack: list[Delimiter] = []

    @property
    def depth(self) -> int:
        return len(self._stack)

    def open(self, delim: Delimiter, position: Position) -> None:
        if len(self._stack) >= self._max_depth:
            raise LexError("f-string: expressions nested too deeply", position, self._source)
        self._stack.append(delim)

    def current(self) -> Delimiter | None:
        return self._stack[-1] if self._stack else None

    def close(self, closing: str, position: Position) -> Delimiter:
        """Pop the innermost delimiter, checking it is closed by `closing`."""
        if not self._stack:
            raise StructuralError("closing quote with no open f-string", position, self._source)
        delim = self._stack.pop()
        if closing != delim.closing:
            raise StructuralError(
                f"mismatched f-string delimiter: expected {delim.closing!r}, got {closing!r}",
                position,
                self._source,
            )
        return delim


@contextmanager
def nesting_headroom(max_depth: int) -> Iterator[None]:
    """Let the interpreter recurse through `max_depth` nested f-strings.

    The lexer is iterative, but the parser and evaluator recurse once per
    nesting level. The recursion limit is raised for the duration of the
    block and restored afterwards.
    """
    old_limit = sys.getrecursionlimit()
    sys.setrecursionlimit(old_limit + max_depth * FRAMES_PER_LEVEL)
    try:
        yield
    finally:
        sys.setrecursionlimit(old_limit)
