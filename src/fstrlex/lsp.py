"""Language server for fstrlex sources.

Only diagnostics are provided. Lex and syntax errors are reported as errors;
failures found while evaluating an otherwise valid file are warnings.
"""

from __future__ import annotations

from lsprotocol import types as lsp
from pygls.lsp.server import LanguageServer

from fstrlex.errors import EvalError, LexError, ParseError
from fstrlex.eval import evaluate
from fstrlex.parser import parse
from fstrlex.tokens import Position, Span

DIAGNOSTIC_SOURCE = "fstrlex"

server = LanguageServer(
    "fstrlex-lsp", "0.1.0", text_document_sync_kind=lsp.TextDocumentSyncKind.Full
)


def _lsp_position(pos: Position) -> lsp.Position:
    # fstrlex positions are 1-based, LSP positions 0-based
    return lsp.Position(line=pos.line - 1, character=pos.column - 1)


def _char_range(pos: Position) -> lsp.Range:
    start = _lsp_position(pos)
    end = lsp.Position(line=start.line, character=start.character + 1)
    return lsp.Range(start=start, end=end)


def _span_range(span: Span) -> lsp.Range:
    return lsp.Range(start=_lsp_position(span.start), end=_lsp_position(span.end))


def check_source(source: str, filename: str = "<input>") -> list[lsp.Diagnostic]:
    """Run the whole pipeline over `source` and describe the first failure."""
    severity = lsp.DiagnosticSeverity.Error
    try:
        evaluate(parse(source, filename), source, filename)
    except LexError as exc:
        rng, message = _char_range(exc.position), exc.message
    except ParseError as exc:
        rng, message = _span_range(exc.span), exc.message
    except EvalError as exc:
        rng, message = _span_range(exc.span), exc.message
        severity = lsp.DiagnosticSeverity.Warning
    else:
        return []
    return [
        lsp.Diagnostic(range=rng, message=message, severity=severity, source=DIAGNOSTIC_SOURCE)
    ]


def _validate(ls: LanguageServer, uri: str) -> None:
    document = ls.workspace.get_text_document(uri)
    diagnostics = check_source(document.source, uri.rpartition("/")[2])
    ls.text_document_publish_diagnostics(
        lsp.PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
def on_open(ls: LanguageServer, params: lsp.DidOpenTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
def on_change(ls: LanguageServer, params: lsp.DidChangeTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


def main() -> None:
    server.start_io()
