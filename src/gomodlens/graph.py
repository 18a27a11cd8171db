"""Build-graph facts: the external truth the tidy analysis checks against.

The collaborator that computes these facts (for example by running the go
tool against a shadow module file) lives outside this package. A provider
returns either ``Analyzed`` facts or ``Skipped`` with a reason; it raises
``GraphUnavailable`` when it tried and failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Protocol, TypeAlias

from loguru import logger
from pydantic import ValidationError

from gomodlens.cancellation import PassContext
from gomodlens.exceptions import GraphUnavailable
from gomodlens.schema import BuildGraphFactsDTO


class Usage(StrEnum):
    DIRECT = "direct"
    INDIRECT = "indirect"
    UNUSED = "unused"


@dataclass(frozen=True)
class BuildGraphFact:
    path: str
    usage: Usage


@dataclass(frozen=True)
class BuildGraphFacts:
    facts: Mapping[str, BuildGraphFact] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def from_usages(cls, usages: Mapping[str, Usage | str]) -> "BuildGraphFacts":
        return cls(
            MappingProxyType(
                {path: BuildGraphFact(path, Usage(usage)) for path, usage in usages.items()}
            )
        )

    def lookup(self, path: str) -> BuildGraphFact | None:
        return self.facts.get(path)

    def __len__(self) -> int:
        return len(self.facts)


@dataclass(frozen=True)
class Analyzed:
    facts: BuildGraphFacts


@dataclass(frozen=True)
class Skipped:
    reason: str


GraphOutcome: TypeAlias = Analyzed | Skipped


class BuildGraphProvider(Protocol):
    def __call__(self, context: PassContext, modfile: Path | None) -> GraphOutcome:
        """Return facts for the module file at ``modfile`` (a shadow when staged)."""


def no_graph(context: PassContext, modfile: Path | None) -> GraphOutcome:
    return Skipped("dependency resolution disabled")


def load_facts(path: Path) -> BuildGraphFacts:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise GraphUnavailable(f"cannot read build-graph facts {path}: {exc}") from exc
    try:
        dto = BuildGraphFactsDTO.model_validate_json(raw)
    except ValidationError as exc:
        raise GraphUnavailable(f"malformed build-graph facts {path}: {exc}") from exc
    return BuildGraphFacts.from_usages({fact.path: fact.usage for fact in dto.modules})


@dataclass(frozen=True)
class FactsFileGraph:
    """Provider that reads precomputed facts from a JSON file."""

    path: Path

    def __call__(self, context: PassContext, modfile: Path | None) -> GraphOutcome:
        context.check("reading build-graph facts")
        if not self.path.exists():
            logger.debug("no build-graph facts at {}", self.path)
            return Skipped(f"no build-graph facts at {self.path}")
        facts = load_facts(self.path)
        logger.debug("loaded {} build-graph facts from {}", len(facts), self.path)
        return Analyzed(facts)


@dataclass(frozen=True)
class StaticGraph:
    """Provider over facts already held in memory."""

    facts: BuildGraphFacts

    def __call__(self, context: PassContext, modfile: Path | None) -> GraphOutcome:
        return Analyzed(self.facts)
