"""Tests for the LSP server: diagnostic generation."""

from __future__ import annotations

import pytest
from lsprotocol.types import (
    DiagnosticSeverity,
    PublishDiagnosticsParams,
    TextDocumentItem,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer
from pygls.workspace import Workspace

from fstrlex.lsp import _validate, check_source

URI = "file:///test.py"


@pytest.fixture
def lsp_env():
    """Create a LanguageServer with an initialized workspace and captured diagnostics."""
    ls = LanguageServer("test", "v0", text_document_sync_kind=TextDocumentSyncKind.Full)
    ws = Workspace(None)
    ls.protocol._workspace = ws

    published: list[PublishDiagnosticsParams] = []
    ls.text_document_publish_diagnostics = lambda params: published.append(params)

    def put(source: str, uri: str = URI) -> None:
        ws.put_text_document(
            TextDocumentItem(uri=uri, language_id="python", version=0, text=source)
        )

    return ls, published, put


# ---------------------------------------------------------------------------
# Lex errors → Error severity
# ---------------------------------------------------------------------------


class TestLexErrors:
    def test_unterminated_field(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put('f"{unterminated"')
        _validate(ls, URI)

        assert len(published) == 1
        diags = published[0].diagnostics
        assert len(diags) == 1
        d = diags[0]
        assert d.severity == DiagnosticSeverity.Error
        assert d.message == "f-string: expecting '}'"
        assert d.source == "fstrlex"
        # '{' is at column 3 (1-based) → character 2 (0-based)
        assert d.range.start.line == 0
        assert d.range.start.character == 2

    def test_bad_escape_found_during_evaluation(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put('f"\\x4"')
        _validate(ls, URI)

        d = published[0].diagnostics[0]
        assert d.severity == DiagnosticSeverity.Error
        assert "truncated" in d.message
        assert d.range.start.character == 2


# ---------------------------------------------------------------------------
# Parse errors → Error severity
# ---------------------------------------------------------------------------


class TestParseErrors:
    def test_invalid_conversion(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put('f"{x!q}"')
        _validate(ls, URI)

        diags = published[0].diagnostics
        assert len(diags) == 1
        d = diags[0]
        assert d.severity == DiagnosticSeverity.Error
        assert "conversion" in d.message
        assert d.range.start.character == 5
        assert d.range.end.character == 6

    def test_unclosed_paren(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("x = (1, 2")
        _validate(ls, URI)

        d = published[0].diagnostics[0]
        assert d.severity == DiagnosticSeverity.Error
        assert "never closed" in d.message


# ---------------------------------------------------------------------------
# Eval errors → Warning severity
# ---------------------------------------------------------------------------


class TestEvalErrors:
    def test_undefined_name(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put('f"{missing}"')
        _validate(ls, URI)

        diags = published[0].diagnostics
        assert len(diags) == 1
        d = diags[0]
        assert d.severity == DiagnosticSeverity.Warning
        assert "missing" in d.message
        assert d.range.start.character == 3
        assert d.range.end.character == 10


# ---------------------------------------------------------------------------
# Clean document → empty diagnostics
# ---------------------------------------------------------------------------


class TestCleanDocument:
    def test_valid_document(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put('width = 6\nf"{f"{1+1}":>{width}}"\n')
        _validate(ls, URI)

        assert len(published) == 1
        assert published[0].uri == URI
        assert published[0].diagnostics == []


# ---------------------------------------------------------------------------
# Position conversion (1-based → 0-based)
# ---------------------------------------------------------------------------


class TestPositionConversion:
    def test_error_on_second_line(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put('ok = 1\nf"}"')
        _validate(ls, URI)

        d = published[0].diagnostics[0]
        # Error is on line 2 (1-based) → LSP line 1 (0-based)
        assert d.range.start.line == 1
        assert d.range.start.character == 2


# ---------------------------------------------------------------------------
# check_source without a server
# ---------------------------------------------------------------------------


class TestCheckSource:
    def test_clean_source(self) -> None:
        assert check_source("1 + 1") == []

    def test_only_first_failure_reported(self) -> None:
        diags = check_source('f"{a}"\nf"{b"')
        assert len(diags) == 1
        assert diags[0].severity == DiagnosticSeverity.Error
        assert diags[0].range.start.line == 1
