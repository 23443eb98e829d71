"""Command-line interface for fstrlex."""

from __future__ import annotations

import argparse
import io
import sys
import time
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from fstrlex.delimiters import DEFAULT_MAX_DEPTH, nesting_headroom
from fstrlex.errors import EvalError, LexError, ParseError

CONFIG_NAME = "fstrlex.toml"


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Everything one run needs, after the config file and flags are merged."""

    source: Path
    output: Path | None = None
    variables: dict[str, str] = field(default_factory=dict)
    max_depth: int = DEFAULT_MAX_DEPTH
    show_tokens: bool = False
    debug: bool = False
    watch: bool = False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fstrlex",
        description="Evaluate a file of expressions and f-strings, printing one value per line.",
    )
    parser.add_argument("input", help="source file to run")
    parser.add_argument("-o", "--output", help="write results here instead of stdout")
    parser.add_argument(
        "-e",
        "--env",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="bind NAME to the string VALUE before running (repeatable)",
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        help=f"TOML settings file (default: {CONFIG_NAME} beside the input)",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        metavar="N",
        help=f"ceiling on f-string nesting (default: {DEFAULT_MAX_DEPTH})",
    )
    parser.add_argument(
        "--tokens", action="store_true", help="print the token stream instead of running"
    )
    parser.add_argument("--debug", action="store_true", help="dump the AST to stderr")
    parser.add_argument("--watch", action="store_true", help="re-run whenever the input changes")
    return parser


def parse_env_arg(s: str) -> tuple[str, str]:
    """Split ``NAME=VALUE`` at the first '='."""
    name, sep, value = s.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"invalid env format (expected NAME=VALUE): {s}")
    if not name.isidentifier():
        raise argparse.ArgumentTypeError(f"invalid variable name: {name!r}")
    return name, value


def load_config(config_path: Path | None, search_dir: Path) -> dict[str, Any]:
    """Read the TOML settings file; a missing file means no settings."""
    path = config_path if config_path is not None else search_dir / CONFIG_NAME
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except FileNotFoundError:
        return {}


def _config_variables(config: dict[str, Any]) -> dict[str, str]:
    table = config.get("env")
    if not isinstance(table, dict):
        return {}
    return {str(name): str(value) for name, value in table.items()}


def _config_max_depth(config: dict[str, Any]) -> int | None:
    table = config.get("lexer")
    if not isinstance(table, dict):
        return None
    depth = table.get("max_depth")
    # bool is an int subclass; `max_depth = true` is not a depth
    if isinstance(depth, int) and not isinstance(depth, bool):
        return depth
    return None


def resolve_options(args: argparse.Namespace) -> CliOptions:
    """Combine the config file with command-line flags; flags win."""
    source = Path(args.input)
    config = load_config(
        Path(args.config) if args.config else None,
        source.parent if source.parent.parts else Path("."),
    )

    variables = _config_variables(config)
    variables.update(parse_env_arg(item) for item in args.env)

    max_depth = args.max_depth
    if max_depth is None:
        max_depth = _config_max_depth(config)
    if max_depth is None:
        max_depth = DEFAULT_MAX_DEPTH
    if max_depth < 1:
        raise argparse.ArgumentTypeError(f"max depth must be at least 1, got {max_depth}")

    return CliOptions(
        source=source,
        output=Path(args.output) if args.output else None,
        variables=variables,
        max_depth=max_depth,
        show_tokens=args.tokens,
        debug=args.debug,
        watch=args.watch,
    )


def run_file(options: CliOptions) -> str:
    """Tokenize, parse and evaluate the source file; return the text to output."""
    from fstrlex.debug import dump_ast, dump_tokens
    from fstrlex.eval import evaluate
    from fstrlex.lexer import tokenize
    from fstrlex.parser import Parser

    text = options.source.read_text(encoding="utf-8")
    filename = str(options.source)
    tokens = tokenize(text, filename, options.max_depth)

    if options.show_tokens:
        buf = io.StringIO()
        dump_tokens(tokens, file=buf)
        return buf.getvalue()

    module = Parser(tokens, text, filename, options.max_depth).parse()
    if options.debug:
        with nesting_headroom(options.max_depth):
            dump_ast(module, file=sys.stderr)

    values = evaluate(
        module, text, filename, env=dict(options.variables), max_depth=options.max_depth
    )
    return "".join(f"{value}\n" for value in values)


def _run_once(options: CliOptions) -> int:
    """Run and write results; report a failure on stderr and return its exit code."""
    try:
        result = run_file(options)
    except (LexError, ParseError, EvalError) as exc:
        print(exc.format(str(options.source)), file=sys.stderr)
        return 2 if isinstance(exc, EvalError) else 1

    if options.output is not None:
        options.output.write_text(result, encoding="utf-8")
    else:
        sys.stdout.write(result)
        sys.stdout.flush()
    return 0


def _mtime(path: Path) -> float | None:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


def watch_loop(options: CliOptions, interval: float = 0.5) -> None:
    """Re-run each time the source file's mtime changes, until Ctrl-C."""
    print(f"fstrlex: watching {options.source}", file=sys.stderr)
    seen: float | None = None
    try:
        while True:
            mtime = _mtime(options.source)
            if mtime is not None and mtime != seen:
                seen = mtime
                code = _run_once(options)
                status = "ok" if code == 0 else f"failed (exit {code})"
                print(f"fstrlex: {options.source}: {status}", file=sys.stderr)
            time.sleep(interval)
    except KeyboardInterrupt:
        pass


def main(argv: list[str] | None = None) -> int:
    """Entry point for ``fstrlex``.

    Returns 0 on success, 1 for lex and syntax errors, 2 for evaluation and
    usage errors.
    """
    args = build_parser().parse_args(argv)
    try:
        options = resolve_options(args)
    except argparse.ArgumentTypeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if options.watch:
        watch_loop(options)
        return 0
    return _run_once(options)
