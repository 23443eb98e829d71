"""Tokenizer, parser and evaluator for interpolated string literals."""

from __future__ import annotations

__version__ = "0.1.0"


def run(
    source: str,
    filename: str = "<input>",
    env: dict[str, object] | None = None,
    max_depth: int | None = None,
) -> list[object]:
    """Parse and evaluate source; return the value of each expression statement."""
    from fstrlex.delimiters import DEFAULT_MAX_DEPTH
    from fstrlex.eval import evaluate
    from fstrlex.parser import parse

    if max_depth is None:
        max_depth = DEFAULT_MAX_DEPTH
    module = parse(source, filename, max_depth)
    return evaluate(module, source, filename, env=env, max_depth=max_depth)
