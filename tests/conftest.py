"""Shared test fixtures and helpers."""

from __future__ import annotations

import pytest

from fstrlex.ast import Expr, ExprStmt, Module
from fstrlex.lexer import tokenize
from fstrlex.parser import parse
from fstrlex.tokens import Token, TokenType


@pytest.fixture
def lex():
    """Return a helper that tokenizes source and returns tokens (excluding EOF)."""

    def _lex(source: str) -> list[Token]:
        tokens = tokenize(source)
        # Strip trailing EOF for convenience
        return [t for t in tokens if t.type != TokenType.EOF]

    return _lex


@pytest.fixture
def parse_source():
    """Return a helper that parses source and returns a Module."""

    def _parse(source: str, filename: str = "test.py") -> Module:
        return parse(source, filename)

    return _parse


def assert_types(tokens: list[Token], expected: list[TokenType]) -> None:
    """Assert that the token types match the expected list."""
    actual = [t.type for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"


def assert_values(tokens: list[Token], expected: list[str]) -> None:
    """Assert that the token values match the expected list."""
    actual = [t.value for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"


def find_tokens(tokens: list[Token], tt: TokenType) -> list[Token]:
    """Return all tokens of the given type."""
    return [t for t in tokens if t.type == tt]


def only_expr(module: Module) -> Expr:
    """Return the expression of a single-statement module."""
    assert len(module.body) == 1, f"Expected one statement, got {len(module.body)}"
    stmt = module.body[0]
    assert isinstance(stmt, ExprStmt), f"Expected ExprStmt, got {type(stmt).__name__}"
    return stmt.value
