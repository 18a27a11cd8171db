"""Explicit pass context: deadline, tick budget and cooperative cancellation.

A ``PassContext`` is handed to every stage that may be expensive. Stages call
``context.check(stage)`` before starting work; nothing here is module-global.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from loguru import logger

from gomodlens.exceptions import DiagnosticsCancelled
from gomodlens.invariants import never


@dataclass
class TickBudget:
    """Number of ``check`` calls a pass may make, for deterministic tests.

    The check that brings ``spent`` up to ``limit`` is the one that fails.
    """

    limit: int
    spent: int = 0

    def __post_init__(self) -> None:
        if self.limit <= 0:
            never("invalid tick budget limit", limit=self.limit)
        if self.spent < 0:
            never("invalid tick budget spent", spent=self.spent)

    def spend(self) -> bool:
        self.spent += 1
        return self.spent < self.limit


@dataclass(frozen=True)
class Deadline:
    deadline_ns: int

    @classmethod
    def from_timeout_ms(cls, milliseconds: int) -> "Deadline":
        if milliseconds < 0:
            never("invalid timeout milliseconds", milliseconds=milliseconds)
        return cls(deadline_ns=time.monotonic_ns() + milliseconds * 1_000_000)

    def expired(self) -> bool:
        return time.monotonic_ns() >= self.deadline_ns


class CancellationToken:
    """Thread-safe cancellation flag shared between a caller and a pass."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class PassContext:
    token: CancellationToken = field(default_factory=CancellationToken)
    deadline: Deadline | None = None
    budget: TickBudget | None = None

    @classmethod
    def with_timeout_ms(
        cls,
        milliseconds: int,
        *,
        token: CancellationToken | None = None,
    ) -> "PassContext":
        return cls(
            token=token if token is not None else CancellationToken(),
            deadline=Deadline.from_timeout_ms(milliseconds),
        )

    def check(self, stage: str) -> None:
        if self.token.cancelled:
            logger.debug("diagnostics pass cancelled before {}", stage)
            raise DiagnosticsCancelled(stage)
        if self.budget is not None and not self.budget.spend():
            logger.debug("diagnostics pass ran out of ticks before {}", stage)
            raise DiagnosticsCancelled(stage, "exhausted its tick budget")
        if self.deadline is not None and self.deadline.expired():
            logger.debug("diagnostics pass timed out before {}", stage)
            raise DiagnosticsCancelled(stage, "timed out")
