"""AST node types for fstrlex parsed modules."""

from __future__ import annotations

from dataclasses import dataclass

from fstrlex.tokens import Delimiter, Span


@dataclass(frozen=True, slots=True)
class Name:
    id: str
    span: Span


@dataclass(frozen=True, slots=True)
class Constant:
    """Number, True, False, None or Ellipsis."""

    value: object
    span: Span


@dataclass(frozen=True, slots=True)
class String:
    """Ordinary string literal; `body` is the unexpanded text between the quotes."""

    body: str
    delimiter: Delimiter
    span: Span


@dataclass(frozen=True, slots=True)
class Literal:
    """Literal text of an f-string (or of its format spec).

    `value` has doubled braces resolved; `text` is the exact source text,
    which escape expansion works on.
    """

    value: str
    text: str
    span: Span


@dataclass(frozen=True, slots=True)
class Field:
    """A ``{expr=!conv:spec}`` replacement field."""

    expr: Expr
    debug_text: str | None
    conversion: str | None
    format_spec: tuple[Literal | Field, ...] | None
    span: Span


@dataclass(frozen=True, slots=True)
class FString:
    """Interpolated string literal: alternating literal text and fields."""

    parts: tuple[Literal | Field, ...]
    delimiter: Delimiter
    span: Span


@dataclass(frozen=True, slots=True)
class Concat:
    """Implicitly concatenated adjacent string literals."""

    parts: tuple[String | FString, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class Starred:
    value: Expr
    span: Span


@dataclass(frozen=True, slots=True)
class Yield:
    value: Expr | None
    span: Span


@dataclass(frozen=True, slots=True)
class NamedExpr:
    """Assignment expression ``target := value``."""

    target: Name
    value: Expr
    span: Span


@dataclass(frozen=True, slots=True)
class IfExp:
    test: Expr
    body: Expr
    orelse: Expr
    span: Span


@dataclass(frozen=True, slots=True)
class BoolOp:
    op: str
    values: tuple[Expr, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class UnaryOp:
    op: str
    operand: Expr
    span: Span


@dataclass(frozen=True, slots=True)
class BinOp:
    op: str
    left: Expr
    right: Expr
    span: Span


@dataclass(frozen=True, slots=True)
class Compare:
    left: Expr
    ops: tuple[str, ...]
    comparators: tuple[Expr, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class Keyword:
    """Keyword argument; `arg` is None for ``**mapping``."""

    arg: str | None
    value: Expr
    span: Span


@dataclass(frozen=True, slots=True)
class Call:
    func: Expr
    args: tuple[Expr, ...]
    keywords: tuple[Keyword, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class Attribute:
    value: Expr
    attr: str
    span: Span


@dataclass(frozen=True, slots=True)
class Slice:
    lower: Expr | None
    upper: Expr | None
    step: Expr | None
    span: Span


@dataclass(frozen=True, slots=True)
class Subscript:
    value: Expr
    index: Expr
    span: Span


@dataclass(frozen=True, slots=True)
class Tuple:
    elts: tuple[Expr, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class List:
    elts: tuple[Expr, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class Set:
    elts: tuple[Expr, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class Dict:
    """Dict display; a None key marks a ``**mapping`` entry."""

    keys: tuple[Expr | None, ...]
    values: tuple[Expr, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class Comprehension:
    target: Expr
    iter: Expr
    ifs: tuple[Expr, ...]


@dataclass(frozen=True, slots=True)
class ListComp:
    elt: Expr
    generators: tuple[Comprehension, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class SetComp:
    elt: Expr
    generators: tuple[Comprehension, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class GeneratorExp:
    elt: Expr
    generators: tuple[Comprehension, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class DictComp:
    key: Expr
    value: Expr
    generators: tuple[Comprehension, ...]
    span: Span


Expr = (
    Name
    | Constant
    | String
    | FString
    | Concat
    | Starred
    | Yield
    | NamedExpr
    | IfExp
    | BoolOp
    | UnaryOp
    | BinOp
    | Compare
    | Call
    | Attribute
    | Slice
    | Subscript
    | Tuple
    | List
    | Set
    | Dict
    | ListComp
    | SetComp
    | GeneratorExp
    | DictComp
)


@dataclass(frozen=True, slots=True)
class ExprStmt:
    value: Expr
    span: Span


@dataclass(frozen=True, slots=True)
class Assign:
    target: Name
    value: Expr
    span: Span


@dataclass(frozen=True, slots=True)
class Module:
    """Root node: statements in source order."""

    body: tuple[ExprStmt | Assign, ...]
    span: Span
