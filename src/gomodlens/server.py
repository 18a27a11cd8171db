from __future__ import annotations

from typing import Callable

from loguru import logger
from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    Diagnostic,
    PublishDiagnosticsParams,
)
from pygls.lsp.server import LanguageServer

from gomodlens import __version__
from gomodlens.cancellation import PassContext
from gomodlens.config import diagnostics_options
from gomodlens.diagnostics import DiagnosticsMap, compute_diagnostics
from gomodlens.exceptions import DiagnosticsCancelled, FatalIOError, GomodlensError
from gomodlens.graph import FactsFileGraph
from gomodlens.snapshot import MOD_FILE_NAME, DiskSnapshot, uri_to_path

server = LanguageServer("gomodlens", __version__)


def _is_mod_uri(uri: str) -> bool:
    return uri_to_path(uri).name == MOD_FILE_NAME


def _diagnostics_for_document(
    ls: LanguageServer,
    uri: str,
    compute: Callable[..., DiagnosticsMap] = compute_diagnostics,
) -> list[Diagnostic] | None:
    doc = ls.workspace.get_text_document(uri)
    root = uri_to_path(uri).parent
    options = diagnostics_options(root=root)
    snapshot = DiskSnapshot(
        root=root,
        version=doc.version or 0,
        overlay=doc.source.encode("utf-8"),
        graph=FactsFileGraph(options.facts_path),
    )
    context = PassContext.with_timeout_ms(options.timeout_ms)
    try:
        by_file = compute(context, snapshot, options)
    except DiagnosticsCancelled as exc:
        logger.info("{}: {}", uri, exc)
        return None
    except FatalIOError as exc:
        logger.error("{}", exc)
        return None
    except GomodlensError as exc:
        logger.error("{}: diagnostics pass failed: {}", uri, exc)
        return None
    # At most one file is ever reported for a module-file pass.
    return next(iter(by_file.values()), [])


def _publish(ls: LanguageServer, uri: str, diagnostics: list[Diagnostic]) -> None:
    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


def refresh(ls: LanguageServer, uri: str) -> None:
    if not _is_mod_uri(uri):
        return
    diagnostics = _diagnostics_for_document(ls, uri)
    if diagnostics is None:
        return
    _publish(ls, uri, diagnostics)


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params) -> None:
    refresh(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params) -> None:
    refresh(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_SAVE)
def did_save(ls: LanguageServer, params) -> None:
    refresh(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: LanguageServer, params) -> None:
    uri = params.text_document.uri
    if _is_mod_uri(uri):
        _publish(ls, uri, [])


def start(start_fn: Callable[[], None] | None = None) -> None:
    """Start the language server over stdio."""
    (start_fn or server.start_io)()


if __name__ == "__main__":  # pragma: no cover
    start()  # pragma: no cover
