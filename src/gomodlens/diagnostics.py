"""Module-file diagnostics pass.

``compute_diagnostics`` is the entry point used by the session layer. A pass
reads the module file once, reports syntax problems from the real content,
and only when the file parses cleanly asks the build-graph collaborator for
facts (against a shadow copy when enabled) and runs the tidy checks. Only
``FatalIOError`` and ``DiagnosticsCancelled`` escape; everything else ends up
as diagnostics or as a skipped semantic analysis.
"""

from __future__ import annotations

from collections.abc import Iterable
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger
from lsprotocol.types import Diagnostic

from gomodlens.cancellation import PassContext
from gomodlens.config import DiagnosticsOptions
from gomodlens.exceptions import FatalIOError, GraphUnavailable
from gomodlens.graph import GraphOutcome, Skipped
from gomodlens.model import FileHandle, Finding, ModuleFile
from gomodlens.modfile import parse
from gomodlens.position import LineIndex
from gomodlens.schema import DiagnosticDTO, DiagnosticsReportDTO, FileDiagnosticsDTO
from gomodlens.shadow import Fingerprint, staged, verify_unchanged
from gomodlens.snapshot import Snapshot
from gomodlens.tidy import TidyAnalyzed, TidyOutcome, TidySkipped, analyze

DiagnosticsMap = dict[FileHandle, list[Diagnostic]]


@dataclass(frozen=True)
class DiagnosticsReport:
    diagnostics: DiagnosticsMap = field(default_factory=dict)
    tidy: TidyOutcome = TidySkipped("not run")

    @property
    def analyzed(self) -> bool:
        return isinstance(self.tidy, TidyAnalyzed)

    def to_dto(self) -> DiagnosticsReportDTO:
        files = [
            FileDiagnosticsDTO(
                uri=handle.uri,
                version=handle.version,
                diagnostics=[DiagnosticDTO.from_diagnostic(d) for d in diagnostics],
            )
            for handle, diagnostics in sorted(
                self.diagnostics.items(), key=lambda item: item[0].uri
            )
        ]
        if isinstance(self.tidy, TidySkipped):
            return DiagnosticsReportDTO(
                files=files, semantic="skipped", skipped_reason=self.tidy.reason
            )
        return DiagnosticsReportDTO(files=files)


def _finding_key(finding: Finding) -> tuple[int, int, str]:
    return (finding.span.start, finding.span.end, finding.message)


def _to_diagnostic(index: LineIndex, finding: Finding) -> Diagnostic:
    return Diagnostic(
        range=index.range(finding.span),
        message=finding.message,
        severity=finding.severity,
        source=finding.source,
    )


def assemble(
    syntax_findings: Iterable[Finding],
    semantic_findings: Iterable[Finding],
    handle: FileHandle,
    text: str,
) -> DiagnosticsMap:
    """Map findings of one file to editor diagnostics.

    Syntax findings come first, then semantic ones; each group is sorted by
    range so repeated passes yield identical lists. A file with no findings
    gets no entry.
    """
    index = LineIndex(text)
    ordered = [
        *sorted(syntax_findings, key=_finding_key),
        *sorted(semantic_findings, key=_finding_key),
    ]
    if not ordered:
        return {}
    return {handle: [_to_diagnostic(index, finding) for finding in ordered]}


def _fingerprint(path: Path | None) -> Fingerprint | None:
    if path is None:
        return None
    try:
        return Fingerprint.capture(path)
    except OSError as exc:
        logger.debug("not fingerprinting {}: {}", path, exc)
        return None


def _build_graph(
    context: PassContext,
    snapshot: Snapshot,
    content: bytes,
    options: DiagnosticsOptions,
) -> GraphOutcome:
    real = snapshot.mod_path()
    with ExitStack() as stack:
        modfile: Path | None = None
        if options.temp_modfile and real is not None:
            shadow = stack.enter_context(
                staged(real, content, scratch_dir=options.scratch_dir)
            )
            modfile = shadow.path if shadow is not None else None
        try:
            return snapshot.build_graph(context, modfile)
        except GraphUnavailable as exc:
            logger.warning("skipping dependency analysis: {}", exc)
            return Skipped(str(exc))


def semantic_findings(
    context: PassContext,
    snapshot: Snapshot,
    module_file: ModuleFile,
    content: bytes,
    options: DiagnosticsOptions,
) -> TidyOutcome:
    real = snapshot.mod_path()
    before = _fingerprint(real)
    context.check("computing the build graph")
    graph = _build_graph(context, snapshot, content, options)
    if before is not None and real is not None:
        verify_unchanged(real, before)
    context.check("dependency analysis")
    return analyze(module_file, graph, options.tidy)


def compute_report(
    context: PassContext,
    snapshot: Snapshot,
    options: DiagnosticsOptions = DiagnosticsOptions(),
) -> DiagnosticsReport:
    handle = snapshot.mod_handle()
    context.check("reading the module file")
    try:
        content = snapshot.read_mod()
    except OSError as exc:
        raise FatalIOError(handle.uri, exc) from exc
    text = content.decode("utf-8", errors="replace")
    parsed = parse(text, handle)
    if parsed.has_errors:
        tidy: TidyOutcome = TidySkipped("module file has syntax errors")
    else:
        tidy = semantic_findings(context, snapshot, parsed.module_file, content, options)
    if isinstance(tidy, TidySkipped):
        logger.debug("{}: dependency analysis skipped ({})", handle.uri, tidy.reason)
    diagnostics = assemble(parsed.findings, tidy.findings, handle, text)
    return DiagnosticsReport(diagnostics=diagnostics, tidy=tidy)


def compute_diagnostics(
    context: PassContext,
    snapshot: Snapshot,
    options: DiagnosticsOptions = DiagnosticsOptions(),
) -> DiagnosticsMap:
    return compute_report(context, snapshot, options).diagnostics
