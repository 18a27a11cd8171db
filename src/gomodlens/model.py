"""In-memory model of a parsed module file.

Spans are UTF-8 byte offsets into the original, unmodified text. They are
converted to editor coordinates only at the very end of a pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from lsprotocol.types import DiagnosticSeverity

SYNTAX_SOURCE = "syntax"
TIDY_SOURCE = "go mod tidy"


@dataclass(frozen=True, order=True)
class Span:
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"invalid span [{self.start}, {self.end})")

    def extract(self, text: str) -> str:
        return text.encode("utf-8")[self.start:self.end].decode("utf-8")


@dataclass(frozen=True)
class FileHandle:
    """Identity of one version of a file; the key of a diagnostics report."""

    uri: str
    version: int = 0


class DirectiveKind(StrEnum):
    MODULE = "module"
    GO = "go"
    REQUIRE = "require"
    REPLACE = "replace"
    EXCLUDE = "exclude"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Token:
    value: str
    span: Span
    quoted: bool = False


@dataclass(frozen=True)
class Directive:
    kind: DirectiveKind
    span: Span
    text: str
    keyword: str
    keyword_span: Span
    args: tuple[Token, ...] = ()
    comment: str = ""
    block: bool = False
    valid: bool = True


@dataclass(frozen=True)
class Requirement:
    path: str
    version: str
    indirect: bool
    span: Span


@dataclass(frozen=True)
class Replacement:
    old_path: str
    old_version: str
    new_path: str
    new_version: str
    span: Span


@dataclass(frozen=True)
class Exclusion:
    path: str
    version: str
    span: Span


@dataclass(frozen=True)
class Finding:
    """A diagnostic that has not yet been mapped to editor coordinates."""

    message: str
    source: str
    severity: DiagnosticSeverity
    span: Span


@dataclass(frozen=True)
class ModuleFile:
    handle: FileHandle | None
    text: str
    directives: tuple[Directive, ...] = ()
    module_path: str | None = None
    go_version: str | None = None
    requirements: tuple[Requirement, ...] = ()
    replacements: tuple[Replacement, ...] = ()
    exclusions: tuple[Exclusion, ...] = ()
    _by_path: dict[str, tuple[Requirement, ...]] = field(
        default_factory=dict, compare=False, repr=False
    )

    def __post_init__(self) -> None:
        grouped: dict[str, list[Requirement]] = {}
        for requirement in self.requirements:
            grouped.setdefault(requirement.path, []).append(requirement)
        self._by_path.update({path: tuple(items) for path, items in grouped.items()})

    def requirements_for(self, path: str) -> tuple[Requirement, ...]:
        return self._by_path.get(path, ())
