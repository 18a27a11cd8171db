"""Dependency consistency checks for requirements, like ``go mod tidy``."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from lsprotocol.types import DiagnosticSeverity

from gomodlens.graph import Analyzed, GraphOutcome, Skipped, Usage
from gomodlens.model import TIDY_SOURCE, Finding, ModuleFile, Requirement


class IndirectCheck(StrEnum):
    # declared "// indirect" but imported directly
    NOT_INDIRECT = "not_indirect"
    # declared direct but only reached transitively
    MISSING_INDIRECT = "missing_indirect"


ALL_INDIRECT_CHECKS = frozenset(IndirectCheck)


@dataclass(frozen=True)
class TidyOptions:
    indirect_checks: frozenset[IndirectCheck] = ALL_INDIRECT_CHECKS
    report_duplicates: bool = True


@dataclass(frozen=True)
class TidyAnalyzed:
    findings: tuple[Finding, ...] = ()


@dataclass(frozen=True)
class TidySkipped:
    reason: str

    @property
    def findings(self) -> tuple[Finding, ...]:
        return ()


TidyOutcome = TidyAnalyzed | TidySkipped


def _warning(message: str, requirement: Requirement) -> Finding:
    return Finding(
        message=message,
        source=TIDY_SOURCE,
        severity=DiagnosticSeverity.Warning,
        span=requirement.span,
    )


def check_requirement(
    requirement: Requirement, usage: Usage, options: TidyOptions
) -> Finding | None:
    path = requirement.path
    if usage is Usage.UNUSED:
        return _warning(f"{path} is not used in this module.", requirement)
    if (
        usage is Usage.DIRECT
        and requirement.indirect
        and IndirectCheck.NOT_INDIRECT in options.indirect_checks
    ):
        return _warning(f"{path} should not be an indirect dependency.", requirement)
    if (
        usage is Usage.INDIRECT
        and not requirement.indirect
        and IndirectCheck.MISSING_INDIRECT in options.indirect_checks
    ):
        return _warning(f"{path} should be an indirect dependency.", requirement)
    return None


def analyze(
    module_file: ModuleFile,
    graph: GraphOutcome | None,
    options: TidyOptions = TidyOptions(),
) -> TidyOutcome:
    """Compare declared requirements against build-graph facts.

    A missing or skipped graph is not a fault: the outcome says so instead of
    pretending the module is clean. Requirements the graph knows nothing about
    are left alone.
    """
    if graph is None:
        return TidySkipped("no build-graph facts")
    if isinstance(graph, Skipped):
        return TidySkipped(graph.reason)
    if not isinstance(graph, Analyzed):
        raise TypeError(f"unexpected graph outcome: {graph!r}")
    findings: list[Finding] = []
    seen: set[str] = set()
    for requirement in module_file.requirements:
        if options.report_duplicates and requirement.path in seen:
            findings.append(
                _warning(f"{requirement.path} is required more than once.", requirement)
            )
        seen.add(requirement.path)
        fact = graph.facts.lookup(requirement.path)
        if fact is None:
            continue
        finding = check_requirement(requirement, fact.usage, options)
        if finding is not None:
            findings.append(finding)
    return TidyAnalyzed(tuple(findings))
