"""AST evaluator: runs statements and renders interpolated strings."""

from __future__ import annotations

import operator
from collections import ChainMap
from collections.abc import Iterator, MutableMapping
from dataclasses import dataclass, field

from fstrlex.ast import (
    Assign,
    Attribute,
    BinOp,
    BoolOp,
    Call,
    Compare,
    Comprehension,
    Concat,
    Constant,
    Dict,
    DictComp,
    Expr,
    ExprStmt,
    Field,
    FString,
    GeneratorExp,
    IfExp,
    List,
    ListComp,
    Literal,
    Module,
    Name,
    NamedExpr,
    Set,
    SetComp,
    Slice,
    Starred,
    String,
    Subscript,
    Tuple,
    UnaryOp,
    Yield,
)
from fstrlex.delimiters import DEFAULT_MAX_DEPTH, nesting_headroom
from fstrlex.errors import EvalError, LexError
from fstrlex.strings import advance_position, expand_escapes
from fstrlex.tokens import Span

Scope = MutableMapping[str, object]

SAFE_BUILTINS: dict[str, object] = {
    fn.__name__: fn
    for fn in (
        abs,
        all,
        any,
        ascii,
        bool,
        chr,
        dict,
        divmod,
        enumerate,
        filter,
        float,
        format,
        hex,
        int,
        len,
        list,
        map,
        max,
        min,
        oct,
        ord,
        pow,
        range,
        repr,
        reversed,
        round,
        set,
        sorted,
        str,
        sum,
        tuple,
        zip,
    )
}

_BINARY_OPS = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "//": operator.floordiv,
    "%": operator.mod,
    "@": operator.matmul,
    "**": operator.pow,
    "<<": operator.lshift,
    ">>": operator.rshift,
    "&": operator.and_,
    "|": operator.or_,
    "^": operator.xor,
}

_UNARY_OPS = {
    "-": operator.neg,
    "+": operator.pos,
    "~": operator.invert,
    "not": operator.not_,
}

_COMPARE_OPS = {
    "<": operator.lt,
    ">": operator.gt,
    "==": operator.eq,
    "!=": operator.ne,
    "<=": operator.le,
    ">=": operator.ge,
    "in": lambda a, b: a in b,
    "not in": lambda a, b: a not in b,
    "is": operator.is_,
    "is not": operator.is_not,
}

_CONVERTERS = {"s": str, "r": repr, "a": ascii}


@dataclass
class EvalContext:
    """State carried through evaluation."""

    filename: str
    source: str
    env: dict[str, object] = field(default_factory=dict)


def evaluate(
    module: Module,
    source: str,
    filename: str = "<input>",
    env: dict[str, object] | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[object]:
    """Run every statement; return the values of the expression statements.

    `max_depth` is the f-string nesting the module was parsed with; rendering
    recurses once per level.
    """
    ctx = EvalContext(filename=filename, source=source)
    if env:
        ctx.env.update(env)
    evaluator = Evaluator(ctx)
    results: list[object] = []
    with nesting_headroom(max_depth):
        for stmt in module.body:
            if isinstance(stmt, Assign):
                ctx.env[stmt.target.id] = evaluator.eval(stmt.value, ctx.env)
            elif isinstance(stmt, ExprStmt):
                results.append(evaluator.eval(stmt.value, ctx.env))
    return results


class Evaluator:
    """Evaluate expression nodes against a scope."""

    def __init__(self, ctx: EvalContext) -> None:
        self._ctx = ctx

    def eval(self, node: Expr, scope: Scope) -> object:
        try:
            return self._eval(node, scope)
        except (EvalError, LexError):
            raise
        except Exception as exc:
            raise self._error(f"{type(exc).__name__}: {exc}", node.span) from exc

    def _error(self, message: str, span: Span) -> EvalError:
        return EvalError(message, span, self._ctx.source)

    def _eval(self, node: Expr, scope: Scope) -> object:
        if isinstance(node, Constant):
            return node.value
        if isinstance(node, Name):
            return self._lookup(node, scope)
        if isinstance(node, String):
            return self._eval_string(node)
        if isinstance(node, FString):
            return self.render_fstring(node, scope)
        if isinstance(node, Concat):
            return self._eval_concat(node, scope)
        if isinstance(node, BinOp):
            left = self.eval(node.left, scope)
            right = self.eval(node.right, scope)
            return _BINARY_OPS[node.op](left, right)
        if isinstance(node, UnaryOp):
            return _UNARY_OPS[node.op](self.eval(node.operand, scope))
        if isinstance(node, BoolOp):
            return self._eval_bool_op(node, scope)
        if isinstance(node, Compare):
            return self._eval_compare(node, scope)
        if isinstance(node, IfExp):
            if self.eval(node.test, scope):
                return self.eval(node.body, scope)
            return self.eval(node.orelse, scope)
        if isinstance(node, NamedExpr):
            value = self.eval(node.value, scope)
            self._ctx.env[node.target.id] = value
            if node.target.id in scope:
                scope[node.target.id] = value
            return value
        if isinstance(node, Attribute):
            if node.attr.startswith("_"):
                raise self._error(f"access to private attribute '{node.attr}'", node.span)
            return getattr(self.eval(node.value, scope), node.attr)
        if isinstance(node, Subscript):
            return self.eval(node.value, scope)[self.eval(node.index, scope)]
        if isinstance(node, Slice):
            return slice(
                None if node.lower is None else self.eval(node.lower, scope),
                None if node.upper is None else self.eval(node.upper, scope),
                None if node.step is None else self.eval(node.step, scope),
            )
        if isinstance(node, Call):
            return self._eval_call(node, scope)
        if isinstance(node, Tuple):
            return tuple(self._eval_elements(node.elts, scope))
        if isinstance(node, List):
            return self._eval_elements(node.elts, scope)
        if isinstance(node, Set):
            return set(self._eval_elements(node.elts, scope))
        if isinstance(node, Dict):
            return self._eval_dict(node, scope)
        if isinstance(node, ListComp):
            return [self.eval(node.elt, s) for s in self._iter_scopes(node.generators, scope)]
        if isinstance(node, SetComp):
            return {self.eval(node.elt, s) for s in self._iter_scopes(node.generators, scope)}
        if isinstance(node, DictComp):
            return {
                self.eval(node.key, s): self.eval(node.value, s)
                for s in self._iter_scopes(node.generators, scope)
            }
        if isinstance(node, GeneratorExp):
            return (self.eval(node.elt, s) for s in self._iter_scopes(node.generators, scope))
        if isinstance(node, Starred):
            raise self._error("cannot use starred expression here", node.span)
        if isinstance(node, Yield):
            raise self._error("'yield' outside function", node.span)
        raise self._error(f"cannot evaluate {type(node).__name__}", node.span)

    # ------------------------------------------------------------------
    # Names and scopes
    # ------------------------------------------------------------------

    def _lookup(self, node: Name, scope: Scope) -> object:
        if node.id in scope:
            return scope[node.id]
        if node.id in SAFE_BUILTINS:
            return SAFE_BUILTINS[node.id]
        raise self._error(f"name '{node.id}' is not defined", node.span)

    def _bind(self, target: Expr, value: object, scope: Scope) -> None:
        if isinstance(target, Name):
            scope[target.id] = value
            return
        if isinstance(target, (Tuple, List)):
            values = list(value)
            if len(values) != len(target.elts):
                raise self._error(
                    f"cannot unpack {len(values)} values into {len(target.elts)} targets",
                    target.span,
                )
            for elt, item in zip(target.elts, values):
                self._bind(elt, item, scope)
            return
        raise self._error(f"cannot assign to {type(target).__name__}", target.span)

    def _iter_scopes(
        self, generators: tuple[Comprehension, ...], scope: Scope
    ) -> Iterator[Scope]:
        """Yield one scope per innermost iteration of a comprehension."""
        if not generators:
            yield scope
            return
        first, rest = generators[0], generators[1:]
        for item in self.eval(first.iter, scope):
            inner: Scope = ChainMap({}, scope)
            self._bind(first.target, item, inner)
            if all(self.eval(cond, inner) for cond in first.ifs):
                yield from self._iter_scopes(rest, inner)

    # ------------------------------------------------------------------
    # Operators, calls, displays
    # ------------------------------------------------------------------

    def _eval_bool_op(self, node: BoolOp, scope: Scope) -> object:
        value: object = None
        for operand in node.values:
            value = self.eval(operand, scope)
            if node.op == "or" and value:
                return value
            if node.op == "and" and not value:
                return value
        return value

    def _eval_compare(self, node: Compare, scope: Scope) -> bool:
        left = self.eval(node.left, scope)
        for op, comparator in zip(node.ops, node.comparators):
            right = self.eval(comparator, scope)
            if not _COMPARE_OPS[op](left, right):
                return False
            left = right
        return True

    def _eval_call(self, node: Call, scope: Scope) -> object:
        func = self.eval(node.func, scope)
        args = self._eval_elements(node.args, scope)
        kwargs: dict[str, object] = {}
        for kw in node.keywords:
            value = self.eval(kw.value, scope)
            if kw.arg is None:
                kwargs.update(value)
            else:
                kwargs[kw.arg] = value
        return func(*args, **kwargs)

    def _eval_elements(self, elts: tuple[Expr, ...], scope: Scope) -> list[object]:
        values: list[object] = []
        for elt in elts:
            if isinstance(elt, Starred):
                values.extend(self.eval(elt.value, scope))
            else:
                values.append(self.eval(elt, scope))
        return values

    def _eval_dict(self, node: Dict, scope: Scope) -> dict[object, object]:
        result: dict[object, object] = {}
        for key, value in zip(node.keys, node.values):
            if key is None:
                result.update(self.eval(value, scope))
            else:
                result[self.eval(key, scope)] = self.eval(value, scope)
        return result

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    def _eval_string(self, node: String) -> str | bytes:
        delim = node.delimiter
        body_start = advance_position(node.span.start, delim.opening)
        text = expand_escapes(
            node.body, delim.raw, body_start, self._ctx.source, is_bytes=delim.is_bytes
        )
        if delim.is_bytes:
            return text.encode("latin-1")
        return text

    def _eval_concat(self, node: Concat, scope: Scope) -> str | bytes:
        values = [self.eval(part, scope) for part in node.parts]
        if values and isinstance(values[0], bytes):
            return b"".join(values)
        return "".join(values)

    def render_fstring(self, node: FString, scope: Scope) -> str:
        """Expand literal text and substitute every field."""
        raw = node.delimiter.raw
        return "".join([self._render_part(part, raw, scope) for part in node.parts])

    def _render_part(self, part: Literal | Field, raw: bool, scope: Scope) -> str:
        if isinstance(part, Literal):
            return expand_escapes(part.text, raw, part.span.start, self._ctx.source, braces=True)

        value = self.eval(part.expr, scope)

        conversion = part.conversion
        if part.debug_text is not None and conversion is None and part.format_spec is None:
            conversion = "r"
        if conversion is not None:
            value = _CONVERTERS[conversion](value)

        spec = ""
        if part.format_spec is not None:
            spec = "".join([self._render_part(p, raw, scope) for p in part.format_spec])
        try:
            text = format(value, spec)
        except (TypeError, ValueError) as exc:
            raise self._error(f"invalid format spec '{spec}': {exc}", part.span) from exc

        return (part.debug_text or "") + text
