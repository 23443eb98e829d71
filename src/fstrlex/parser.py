"""fstrlex parser: converts a token stream into an AST.

f-string fields are not parsed by a separate sub-parser: the expression in
``{...}`` goes through `_parse_star_expressions_or_yield`, the same entry
point used for parenthesized expressions.
"""

from __future__ import annotations

from collections.abc import Callable

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
    Keyword,
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
from fstrlex.errors import LexError, ParseError
from fstrlex.lexer import tokenize
from fstrlex.tokens import KEYWORDS, Position, Span, Token, TokenType

_CONVERSIONS = frozenset({"s", "r", "a"})


class Parser:
    """Recursive descent parser for fstrlex token streams."""

    def __init__(
        self,
        tokens: list[Token],
        source: str,
        filename: str,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._tokens = tokens
        self._source = source
        self._filename = filename
        self._max_depth = max_depth
        self._pos = 0
        self._fstring_depth = 0

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        idx = self._pos + offset
        if idx < len(self._tokens):
            return self._tokens[idx]
        return self._tokens[-1]  # EOF

    def _at(self, *types: TokenType) -> bool:
        return self._peek().type in types

    def _at_op(self, *ops: str) -> bool:
        tok = self._peek()
        return tok.type == TokenType.OP and tok.value in ops

    def _at_keyword(self, *words: str) -> bool:
        tok = self._peek()
        return tok.type == TokenType.NAME and tok.value in words

    def _at_eof(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        if tok.type != TokenType.EOF:
            self._pos += 1
        return tok

    def _expect(self, tt: TokenType, message: str) -> Token:
        tok = self._peek()
        if tok.type != tt:
            raise self._error(message, tok.span)
        return self._advance()

    def _expect_keyword(self, word: str) -> Token:
        if not self._at_keyword(word):
            raise self._error(f"expected '{word}'")
        return self._advance()

    def _prev_end(self) -> Position:
        """End position of the previously consumed token."""
        if self._pos > 0:
            return self._tokens[self._pos - 1].span.end
        return self._tokens[0].span.start

    def _span_from(self, start: Position) -> Span:
        return Span(start, self._prev_end())

    def _at_expression_start(self) -> bool:
        tok = self._peek()
        if tok.type == TokenType.NAME:
            return tok.value not in KEYWORDS or tok.value in ("True", "False", "None", "not")
        if tok.type == TokenType.OP:
            return tok.value in ("+", "-", "~", "*", "...")
        return tok.type in _ATOM_START

    # ------------------------------------------------------------------
    # Module level
    # ------------------------------------------------------------------

    def parse(self) -> Module:
        with nesting_headroom(self._max_depth):
            return self._parse_module()

    def _parse_module(self) -> Module:
        body: list[ExprStmt | Assign] = []
        start = self._peek().span.start

        while not self._at_eof():
            if self._at(TokenType.NEWLINE):
                self._advance()
                continue
            body.append(self._parse_statement())
            if not self._at(TokenType.NEWLINE, TokenType.EOF):
                raise self._error("invalid syntax")

        end = self._peek().span.end
        return Module(tuple(body), Span(start, end))

    def _parse_statement(self) -> ExprStmt | Assign:
        start = self._peek().span.start
        if (
            self._at(TokenType.NAME)
            and self._peek().value not in KEYWORDS
            and self._peek(1).type == TokenType.EQUAL
        ):
            name_tok = self._advance()
            self._advance()  # consume EQUAL
            value = self._parse_star_expressions_or_yield()
            target = Name(name_tok.value, name_tok.span)
            return Assign(target, value, self._span_from(start))

        value = self._parse_star_expressions_or_yield()
        if self._at(TokenType.EQUAL):
            raise self._error("cannot assign to expression")
        return ExprStmt(value, self._span_from(start))

    # ------------------------------------------------------------------
    # Expression entry points
    # ------------------------------------------------------------------

    def _parse_star_expressions_or_yield(self) -> Expr:
        """Entry point shared by parenthesized expressions and f-string fields."""
        if self._at_keyword("yield"):
            return self._parse_yield()
        return self._parse_star_expressions()

    def _parse_yield(self) -> Yield:
        start = self._advance().span.start  # consume 'yield'
        value = None
        if self._at_expression_start():
            value = self._parse_star_expressions()
        return Yield(value, self._span_from(start))

    def _parse_star_expressions(self) -> Expr:
        first = self._parse_star_expression()
        if not self._at_op(","):
            if isinstance(first, Starred):
                raise self._error("cannot use starred expression here", first.span)
            return first
        elts = [first]
        while self._at_op(","):
            self._advance()
            if not self._at_expression_start():
                break
            elts.append(self._parse_star_expression())
        return Tuple(tuple(elts), Span(first.span.start, self._prev_end()))

    def _parse_star_expression(self) -> Expr:
        if self._at_op("*"):
            start = self._advance().span.start
            value = self._parse_bitwise_or()
            return Starred(value, self._span_from(start))
        return self._parse_expression()

    def _parse_star_named_expression(self) -> Expr:
        if self._at_op("*"):
            start = self._advance().span.start
            value = self._parse_bitwise_or()
            return Starred(value, self._span_from(start))
        return self._parse_named_expression()

    def _parse_named_expression(self) -> Expr:
        nxt = self._peek(1)
        if self._at(TokenType.NAME) and nxt.type == TokenType.OP and nxt.value == ":=":
            name_tok = self._advance()
            if name_tok.value in KEYWORDS:
                raise self._error(
                    "cannot use assignment expressions with a keyword", name_tok.span
                )
            self._advance()  # consume ':='
            value = self._parse_expression()
            target = Name(name_tok.value, name_tok.span)
            return NamedExpr(target, value, self._span_from(name_tok.span.start))
        return self._parse_expression()

    def _parse_expression(self) -> Expr:
        start = self._peek().span.start
        body = self._parse_disjunction()
        if not self._at_keyword("if"):
            return body
        self._advance()
        test = self._parse_disjunction()
        self._expect_keyword("else")
        orelse = self._parse_expression()
        return IfExp(test, body, orelse, self._span_from(start))

    # ------------------------------------------------------------------
    # Boolean and comparison operators
    # ------------------------------------------------------------------

    def _parse_disjunction(self) -> Expr:
        return self._parse_bool_op("or", self._parse_conjunction)

    def _parse_conjunction(self) -> Expr:
        return self._parse_bool_op("and", self._parse_inversion)

    def _parse_bool_op(self, word: str, operand: Callable[[], Expr]) -> Expr:
        start = self._peek().span.start
        values = [operand()]
        while self._at_keyword(word):
            self._advance()
            values.append(operand())
        if len(values) == 1:
            return values[0]
        return BoolOp(word, tuple(values), self._span_from(start))

    def _parse_inversion(self) -> Expr:
        if self._at_keyword("not"):
            start = self._advance().span.start
            operand = self._parse_inversion()
            return UnaryOp("not", operand, self._span_from(start))
        return self._parse_comparison()

    def _parse_comparison(self) -> Expr:
        start = self._peek().span.start
        left = self._parse_bitwise_or()
        ops: list[str] = []
        comparators: list[Expr] = []
        while True:
            op = self._parse_compare_op()
            if op is None:
                break
            ops.append(op)
            comparators.append(self._parse_bitwise_or())
        if not ops:
            return left
        return Compare(left, tuple(ops), tuple(comparators), self._span_from(start))

    def _parse_compare_op(self) -> str | None:
        if self._at_op("<", ">", "==", "!=", "<=", ">="):
            return self._advance().value
        if self._at_keyword("in"):
            self._advance()
            return "in"
        if self._at_keyword("not") and self._peek(1).type == TokenType.NAME:
            if self._peek(1).value == "in":
                self._advance()
                self._advance()
                return "not in"
        if self._at_keyword("is"):
            self._advance()
            if self._at_keyword("not"):
                self._advance()
                return "is not"
            return "is"
        return None

    # ------------------------------------------------------------------
    # Arithmetic and bitwise operators
    # ------------------------------------------------------------------

    def _parse_binary(self, ops: tuple[str, ...], operand: Callable[[], Expr]) -> Expr:
        start = self._peek().span.start
        left = operand()
        while self._at_op(*ops):
            op = self._advance().value
            right = operand()
            left = BinOp(op, left, right, self._span_from(start))
        return left

    def _parse_bitwise_or(self) -> Expr:
        return self._parse_binary(("|",), self._parse_bitwise_xor)

    def _parse_bitwise_xor(self) -> Expr:
        return self._parse_binary(("^",), self._parse_bitwise_and)

    def _parse_bitwise_and(self) -> Expr:
        return self._parse_binary(("&",), self._parse_shift)

    def _parse_shift(self) -> Expr:
        return self._parse_binary(("<<", ">>"), self._parse_sum)

    def _parse_sum(self) -> Expr:
        return self._parse_binary(("+", "-"), self._parse_term)

    def _parse_term(self) -> Expr:
        return self._parse_binary(("*", "/", "//", "%", "@"), self._parse_factor)

    def _parse_factor(self) -> Expr:
        if self._at_op("+", "-", "~"):
            tok = self._advance()
            operand = self._parse_factor()
            return UnaryOp(tok.value, operand, self._span_from(tok.span.start))
        return self._parse_power()

    def _parse_power(self) -> Expr:
        start = self._peek().span.start
        base = self._parse_primary()
        if self._at_op("**"):
            self._advance()
            exponent = self._parse_factor()
            return BinOp("**", base, exponent, self._span_from(start))
        return base

    # ------------------------------------------------------------------
    # Primaries
    # ------------------------------------------------------------------

    def _parse_primary(self) -> Expr:
        start = self._peek().span.start
        node = self._parse_atom()
        while True:
            if self._at_op("."):
                self._advance()
                name_tok = self._expect(TokenType.NAME, "expected attribute name after '.'")
                node = Attribute(node, name_tok.value, self._span_from(start))
            elif self._at(TokenType.LPAR):
                node = self._parse_call(node, start)
            elif self._at(TokenType.LSQB):
                self._advance()
                index = self._parse_slices()
                self._expect(TokenType.RSQB, "expected ']'")
                node = Subscript(node, index, self._span_from(start))
            else:
                return node

    def _parse_call(self, func: Expr, start: Position) -> Call:
        self._advance()  # consume LPAR
        args: list[Expr] = []
        keywords: list[Keyword] = []

        while not self._at(TokenType.RPAR):
            arg_start = self._peek().span.start
            if self._at_op("*"):
                self._advance()
                value = self._parse_expression()
                args.append(Starred(value, self._span_from(arg_start)))
            elif self._at_op("**"):
                self._advance()
                value = self._parse_expression()
                keywords.append(Keyword(None, value, self._span_from(arg_start)))
            elif self._at(TokenType.NAME) and self._peek(1).type == TokenType.EQUAL:
                name_tok = self._advance()
                self._advance()  # consume EQUAL
                value = self._parse_expression()
                keywords.append(Keyword(name_tok.value, value, self._span_from(arg_start)))
            else:
                if keywords:
                    raise self._error("positional argument follows keyword argument")
                value = self._parse_named_expression()
                if self._at_keyword("for"):
                    generators = self._parse_comprehensions()
                    value = GeneratorExp(value, generators, self._span_from(arg_start))
                args.append(value)

            if not self._at_op(","):
                break
            self._advance()

        self._expect(TokenType.RPAR, "expected ')'")
        return Call(func, tuple(args), tuple(keywords), self._span_from(start))

    def _parse_slices(self) -> Expr:
        start = self._peek().span.start
        first = self._parse_slice()
        if not self._at_op(","):
            return first
        elts = [first]
        while self._at_op(","):
            self._advance()
            if self._at(TokenType.RSQB):
                break
            elts.append(self._parse_slice())
        return Tuple(tuple(elts), self._span_from(start))

    def _parse_slice(self) -> Expr:
        start = self._peek().span.start
        lower = None
        if not self._at(TokenType.COLON):
            lower = self._parse_named_expression()
            if not self._at(TokenType.COLON):
                return lower

        self._advance()  # consume COLON
        upper = None
        step = None
        if self._at_expression_start():
            upper = self._parse_expression()
        if self._at(TokenType.COLON):
            self._advance()
            if self._at_expression_start():
                step = self._parse_expression()
        return Slice(lower, upper, step, self._span_from(start))

    # ------------------------------------------------------------------
    # Atoms
    # ------------------------------------------------------------------

    def _parse_atom(self) -> Expr:
        tok = self._peek()

        if tok.type == TokenType.NAME:
            if tok.value in _NAMED_CONSTANTS:
                self._advance()
                return Constant(_NAMED_CONSTANTS[tok.value], tok.span)
            if tok.value in KEYWORDS:
                raise self._error("invalid syntax", tok.span)
            self._advance()
            return Name(tok.value, tok.span)

        if tok.type == TokenType.NUMBER:
            self._advance()
            return Constant(_parse_number(tok.value), tok.span)

        if tok.type in (TokenType.STRING, TokenType.FSTRING_START):
            return self._parse_strings()

        if tok.type == TokenType.LPAR:
            return self._parse_paren()

        if tok.type == TokenType.LSQB:
            return self._parse_list()

        if tok.type == TokenType.LBRACE:
            return self._parse_brace()

        if tok.type == TokenType.OP and tok.value == "...":
            self._advance()
            return Constant(Ellipsis, tok.span)

        raise self._error("expected expression", tok.span)

    def _parse_paren(self) -> Expr:
        start = self._advance().span.start  # consume LPAR
        if self._at(TokenType.RPAR):
            self._advance()
            return Tuple((), self._span_from(start))

        if self._at_keyword("yield"):
            node = self._parse_yield()
            self._expect(TokenType.RPAR, "expected ')'")
            return node

        first = self._parse_star_named_expression()
        if self._at_keyword("for"):
            generators = self._parse_comprehensions()
            self._expect(TokenType.RPAR, "expected ')'")
            return GeneratorExp(first, generators, self._span_from(start))

        if not self._at_op(","):
            self._expect(TokenType.RPAR, "expected ')'")
            if isinstance(first, Starred):
                raise self._error("cannot use starred expression here", first.span)
            return first

        elts = self._parse_elements(first, TokenType.RPAR)
        self._expect(TokenType.RPAR, "expected ')'")
        return Tuple(elts, self._span_from(start))

    def _parse_list(self) -> Expr:
        start = self._advance().span.start  # consume LSQB
        if self._at(TokenType.RSQB):
            self._advance()
            return List((), self._span_from(start))

        first = self._parse_star_named_expression()
        if self._at_keyword("for"):
            generators = self._parse_comprehensions()
            self._expect(TokenType.RSQB, "expected ']'")
            return ListComp(first, generators, self._span_from(start))

        elts = self._parse_elements(first, TokenType.RSQB)
        self._expect(TokenType.RSQB, "expected ']'")
        return List(elts, self._span_from(start))

    def _parse_brace(self) -> Expr:
        start = self._advance().span.start  # consume LBRACE
        if self._at(TokenType.RBRACE):
            self._advance()
            return Dict((), (), self._span_from(start))

        if self._at_op("**"):
            return self._parse_dict(start, None)

        first = self._parse_star_named_expression()
        if self._at(TokenType.COLON):
            return self._parse_dict(start, first)

        if self._at_keyword("for"):
            generators = self._parse_comprehensions()
            self._expect(TokenType.RBRACE, "expected '}'")
            return SetComp(first, generators, self._span_from(start))

        elts = self._parse_elements(first, TokenType.RBRACE)
        self._expect(TokenType.RBRACE, "expected '}'")
        return Set(elts, self._span_from(start))

    def _parse_dict(self, start: Position, first_key: Expr | None) -> Expr:
        keys: list[Expr | None] = []
        values: list[Expr] = []

        key = first_key
        while True:
            if key is None and self._at_op("**"):
                self._advance()
                keys.append(None)
                values.append(self._parse_bitwise_or())
            else:
                if key is None:
                    key = self._parse_expression()
                self._expect(TokenType.COLON, "expected ':'")
                value = self._parse_expression()
                if len(keys) == 0 and first_key is not None and self._at_keyword("for"):
                    generators = self._parse_comprehensions()
                    self._expect(TokenType.RBRACE, "expected '}'")
                    return DictComp(key, value, generators, self._span_from(start))
                keys.append(key)
                values.append(value)
            key = None
            if not self._at_op(","):
                break
            self._advance()
            if self._at(TokenType.RBRACE):
                break

        self._expect(TokenType.RBRACE, "expected '}'")
        return Dict(tuple(keys), tuple(values), self._span_from(start))

    def _parse_elements(self, first: Expr, closer: TokenType) -> tuple[Expr, ...]:
        elts = [first]
        while self._at_op(","):
            self._advance()
            if self._at(closer):
                break
            elts.append(self._parse_star_named_expression())
        return tuple(elts)

    def _parse_comprehensions(self) -> tuple[Comprehension, ...]:
        generators: list[Comprehension] = []
        while self._at_keyword("for"):
            self._advance()
            target = self._parse_target_list()
            self._expect_keyword("in")
            iterable = self._parse_disjunction()
            ifs: list[Expr] = []
            while self._at_keyword("if"):
                self._advance()
                ifs.append(self._parse_disjunction())
            generators.append(Comprehension(target, iterable, tuple(ifs)))
        return tuple(generators)

    def _parse_target_list(self) -> Expr:
        start = self._peek().span.start
        elts = [self._parse_bitwise_or()]
        while self._at_op(","):
            self._advance()
            elts.append(self._parse_bitwise_or())
        if len(elts) == 1:
            return elts[0]
        return Tuple(tuple(elts), self._span_from(start))

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    def _parse_strings(self) -> Expr:
        start = self._peek().span.start
        parts: list[String | FString] = []
        while self._at(TokenType.STRING, TokenType.FSTRING_START):
            if self._at(TokenType.STRING):
                parts.append(self._parse_string())
            else:
                parts.append(self._parse_fstring())

        kinds = {part.delimiter.is_bytes for part in parts}
        if len(kinds) > 1:
            raise self._error("cannot mix bytes and nonbytes literals", self._span_from(start))
        if len(parts) == 1:
            return parts[0]
        return Concat(tuple(parts), self._span_from(start))

    def _parse_string(self) -> String:
        tok = self._advance()
        delim = tok.delimiter
        body = tok.raw[len(delim.opening) : len(tok.raw) - delim.length]
        return String(body, delim, tok.span)

    def _parse_fstring(self) -> FString:
        """FSTRING_START (FSTRING_MIDDLE | field)* FSTRING_END"""
        start_tok = self._advance()  # consume FSTRING_START
        delim = start_tok.delimiter
        if self._fstring_depth >= self._max_depth:
            raise LexError(
                "f-string: expressions nested too deeply", start_tok.span.start, self._source
            )
        self._fstring_depth += 1
        try:
            parts = self._parse_fstring_parts()
        finally:
            self._fstring_depth -= 1

        end_tok = self._expect(TokenType.FSTRING_END, "f-string: expecting '}'")
        text = end_tok.raw[: len(end_tok.raw) - delim.length]
        if text:
            end = end_tok.span.end
            text_end = Position(end.line, end.column - delim.length, end.offset - delim.length)
            parts.append(Literal(end_tok.value, text, Span(end_tok.span.start, text_end)))

        return FString(tuple(parts), delim, Span(start_tok.span.start, end_tok.span.end))

    def _parse_fstring_parts(self) -> list[Literal | Field]:
        parts: list[Literal | Field] = []
        while self._at(TokenType.FSTRING_MIDDLE, TokenType.LBRACE):
            if self._at(TokenType.FSTRING_MIDDLE):
                tok = self._advance()
                parts.append(Literal(tok.value, tok.raw, tok.span))
            else:
                parts.append(self._parse_field())
        return parts

    def _parse_field(self) -> Field:
        lbrace = self._advance()  # consume LBRACE
        expr = self._parse_star_expressions_or_yield()

        debug_text = None
        if self._at(TokenType.EQUAL):
            self._advance()
            # Everything from after '{' up to the next token, whitespace included.
            debug_text = self._source[lbrace.span.end.offset : self._peek().span.start.offset]

        conversion = None
        if self._at(TokenType.EXCLAMATION):
            conversion = self._parse_conversion()

        format_spec = None
        if self._at(TokenType.COLON):
            self._advance()
            format_spec = tuple(self._parse_fstring_parts())

        rbrace = self._expect(TokenType.RBRACE, "f-string: expecting '}'")
        return Field(
            expr,
            debug_text,
            conversion,
            format_spec,
            Span(lbrace.span.start, rbrace.span.end),
        )

    def _parse_conversion(self) -> str:
        bang = self._advance()  # consume EXCLAMATION
        tok = self._peek()
        if tok.type != TokenType.NAME:
            raise self._error("f-string: missing conversion character", tok.span)
        if tok.span.start.offset != bang.span.end.offset:
            raise self._error(
                "f-string: conversion type must come right after the exclamation mark",
                tok.span,
            )
        if tok.value not in _CONVERSIONS:
            raise self._error(
                f"f-string: invalid conversion character '{tok.value}': "
                "expected 's', 'r', or 'a'",
                tok.span,
            )
        self._advance()
        return tok.value

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _error(self, message: str, span: Span | None = None) -> ParseError:
        if span is None:
            span = self._peek().span
        return ParseError(message, span, self._source)


# Module-level constants
_NAMED_CONSTANTS: dict[str, object] = {"True": True, "False": False, "None": None}
_ATOM_START: frozenset[TokenType] = frozenset(
    {
        TokenType.NUMBER,
        TokenType.STRING,
        TokenType.FSTRING_START,
        TokenType.LPAR,
        TokenType.LSQB,
        TokenType.LBRACE,
    }
)


def _parse_number(text: str) -> int | float | complex:
    text = text.replace("_", "")
    if text[-1] in "jJ":
        return complex(text)
    if text[:2].lower() in ("0x", "0o", "0b"):
        return int(text, 0)
    if any(ch in text for ch in ".eE"):
        return float(text)
    return int(text)


def parse(
    source: str,
    filename: str = "<input>",
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Module:
    """Convenience function: parse source text and return a Module AST."""
    tokens = tokenize(source, filename, max_depth)
    return Parser(tokens, source, filename, max_depth).parse()


def parse_expression(source: str, filename: str = "<input>") -> Expr:
    """Parse source holding a single expression statement and return the expression."""
    module = parse(source, filename)
    if len(module.body) != 1 or not isinstance(module.body[0], ExprStmt):
        raise ParseError("expected a single expression", module.span, source)
    return module.body[0].value
