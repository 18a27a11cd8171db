"""Error taxonomy for module-file diagnostics passes."""

from __future__ import annotations


class GomodlensError(RuntimeError):
    """Base class for errors raised by gomodlens."""


class NeverThrown(GomodlensError):
    """Raised by ``never()`` when a path that should be unreachable runs."""

    def __init__(self, message: str, *, env: dict[str, object] | None = None):
        super().__init__(message)
        self.env = dict(env or {})


class StagingFailure(GomodlensError):
    """The shadow copy of a module file could not be created.

    Recoverable: the pass continues without a shadow.
    """


class GraphUnavailable(GomodlensError):
    """Build-graph facts could not be obtained for a snapshot.

    Recoverable: semantic analysis is skipped for the pass.
    """


class DiagnosticsCancelled(GomodlensError):
    """The caller cancelled the pass or its deadline passed."""

    def __init__(self, stage: str, reason: str = "cancelled") -> None:
        super().__init__(f"Diagnostics pass {reason} before {stage}.")
        self.stage = stage
        self.reason = reason


class FatalIOError(GomodlensError):
    """The real module file could not be read."""

    def __init__(self, uri: str, cause: OSError) -> None:
        super().__init__(f"cannot read module file {uri}: {cause}")
        self.uri = uri
        self.cause = cause
