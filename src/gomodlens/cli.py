from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from lsprotocol.types import Diagnostic, DiagnosticSeverity

from gomodlens.cancellation import PassContext
from gomodlens.config import diagnostics_options
from gomodlens.diagnostics import DiagnosticsReport, compute_report
from gomodlens.exceptions import GomodlensError
from gomodlens.graph import FactsFileGraph
from gomodlens.snapshot import MOD_FILE_NAME, DiskSnapshot

app = typer.Typer(add_completion=False)

_SEVERITY_NAMES = {
    DiagnosticSeverity.Error: "error",
    DiagnosticSeverity.Warning: "warning",
    DiagnosticSeverity.Information: "info",
    DiagnosticSeverity.Hint: "hint",
}
EXIT_FINDINGS = 1
EXIT_FAILURE = 2


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def _module_root(path: Path) -> Path:
    if path.is_dir():
        return path
    if path.name != MOD_FILE_NAME:
        raise typer.BadParameter(f"expected a directory or a {MOD_FILE_NAME} file: {path}")
    return path.parent


def _render_line(path: Path, diagnostic: Diagnostic) -> str:
    start = diagnostic.range.start
    end = diagnostic.range.end
    severity = _SEVERITY_NAMES.get(diagnostic.severity, "error")
    return (
        f"{path}:{start.line + 1}:{start.character + 1}-{end.line + 1}:{end.character + 1}: "
        f"{severity}: {diagnostic.message} [{diagnostic.source}]"
    )


def _has_errors(report: DiagnosticsReport) -> bool:
    return any(
        diagnostic.severity == DiagnosticSeverity.Error
        for diagnostics in report.diagnostics.values()
        for diagnostic in diagnostics
    )


@app.command()
def check(
    path: Path = typer.Argument(Path("."), help="Module directory or go.mod file."),
    facts: Optional[Path] = typer.Option(
        None, "--facts", help="Build-graph facts JSON (default from gomodlens.toml)."
    ),
    config: Optional[Path] = typer.Option(None, "--config"),
    temp_modfile: Optional[bool] = typer.Option(
        None,
        "--temp-modfile/--no-temp-modfile",
        help="Stage a shadow copy of go.mod for dependency analysis.",
    ),
    timeout_ms: Optional[int] = typer.Option(None, "--timeout-ms", min=1),
    json_output: bool = typer.Option(False, "--json", help="Emit the report as JSON."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Report diagnostics for a module file."""
    _configure_logging(verbose)
    root = _module_root(path)
    overrides = {
        "facts_path": str(facts) if facts is not None else None,
        "temp_modfile": temp_modfile,
        "timeout_ms": timeout_ms,
    }
    options = diagnostics_options(root=root, config_path=config, overrides=overrides)
    snapshot = DiskSnapshot(root=root, graph=FactsFileGraph(options.facts_path))
    context = PassContext.with_timeout_ms(options.timeout_ms)
    try:
        report = compute_report(context, snapshot, options)
    except GomodlensError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=EXIT_FAILURE)
    if json_output:
        typer.echo(report.to_dto().model_dump_json(indent=2))
    else:
        mod_path = snapshot.mod_path()
        for diagnostics in report.diagnostics.values():
            for diagnostic in diagnostics:
                typer.echo(_render_line(mod_path, diagnostic))
        if not report.analyzed:
            typer.echo(f"dependency analysis skipped: {report.tidy.reason}", err=True)
    if _has_errors(report):
        raise typer.Exit(code=EXIT_FINDINGS)


@app.command()
def lsp(verbose: bool = typer.Option(False, "--verbose", "-v")) -> None:
    """Run the language server over stdio."""
    from gomodlens.server import start

    _configure_logging(verbose)
    start()


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
