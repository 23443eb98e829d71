"""--tokens / --debug dumps and token-to-source reconstruction."""

from __future__ import annotations

import sys
from typing import TextIO

from fstrlex.ast import (
    Assign,
    Concat,
    Constant,
    Expr,
    ExprStmt,
    Field,
    FString,
    Literal,
    Module,
    Name,
    String,
)
from fstrlex.tokens import Token, TokenType


def dump_tokens(tokens: list[Token], *, file: TextIO = sys.stdout) -> None:
    """Print one line per token: position, type, and raw text."""
    for tok in tokens:
        start = tok.span.start
        file.write(f"{start.line}:{start.column}\t{tok.type.name:<15}{tok.raw!r}\n")


def dump_ast(module: Module, *, file: TextIO = sys.stderr) -> None:
    """Print a human-readable AST tree to *file*."""
    file.write("Module\n")
    for stmt in module.body:
        if isinstance(stmt, Assign):
            file.write(f"{_indent(1)}Assign {stmt.target.id}\n")
            _dump_expr(stmt.value, 2, file)
        elif isinstance(stmt, ExprStmt):
            file.write(f"{_indent(1)}Expr\n")
            _dump_expr(stmt.value, 2, file)


def _indent(depth: int) -> str:
    return "  " * depth


def _dump_expr(node: Expr, depth: int, f: TextIO) -> None:
    if isinstance(node, Name):
        f.write(f"{_indent(depth)}Name({node.id})\n")
    elif isinstance(node, Constant):
        f.write(f"{_indent(depth)}Constant({node.value!r})\n")
    elif isinstance(node, String):
        f.write(f"{_indent(depth)}String({node.delimiter.prefix}{node.body!r})\n")
    elif isinstance(node, FString):
        f.write(f"{_indent(depth)}FString {node.delimiter.opening}\n")
        _dump_parts(node.parts, depth + 1, f)
    elif isinstance(node, Concat):
        f.write(f"{_indent(depth)}Concat\n")
        for part in node.parts:
            _dump_expr(part, depth + 1, f)
    else:
        f.write(f"{_indent(depth)}{type(node).__name__}\n")
        for child in _children(node):
            _dump_expr(child, depth + 1, f)


def _dump_parts(parts: tuple[Literal | Field, ...], depth: int, f: TextIO) -> None:
    for part in parts:
        if isinstance(part, Literal):
            f.write(f"{_indent(depth)}Literal({part.value!r})\n")
            continue
        flags = []
        if part.debug_text is not None:
            flags.append(f"debug={part.debug_text!r}")
        if part.conversion is not None:
            flags.append(f"!{part.conversion}")
        f.write(f"{_indent(depth)}Field {' '.join(flags)}".rstrip() + "\n")
        _dump_expr(part.expr, depth + 1, f)
        if part.format_spec is not None:
            f.write(f"{_indent(depth + 1)}FormatSpec\n")
            _dump_parts(part.format_spec, depth + 2, f)


def _children(node: Expr) -> list[Expr]:
    """Direct expression children of a node, in field order."""
    children: list[Expr] = []
    for name in node.__slots__:
        value = getattr(node, name)
        if isinstance(value, tuple):
            for item in value:
                if hasattr(item, "span"):
                    children.append(item)
                elif hasattr(item, "iter"):
                    # Comprehension clause
                    children.extend([item.target, item.iter, *item.ifs])
        elif hasattr(value, "span") and name != "span":
            children.append(value)
    return children


def untokenize(tokens: list[Token]) -> str:
    """Rebuild source text from tokens, filling gaps from their positions.

    Spaces and newlines between tokens are restored exactly; tabs and
    comments are not recoverable and come back as spaces.
    """
    out: list[str] = []
    line, col = 1, 1
    for tok in tokens:
        if tok.type == TokenType.EOF:
            break
        start = tok.span.start
        if start.line > line:
            out.append("\n" * (start.line - line))
            line, col = start.line, 1
        if start.column > col:
            out.append(" " * (start.column - col))
        out.append(tok.raw)
        line, col = tok.span.end.line, tok.span.end.column
    return "".join(out)
