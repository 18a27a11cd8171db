"""gomodlens package root."""

from gomodlens.cancellation import CancellationToken, PassContext
from gomodlens.diagnostics import compute_diagnostics, compute_report
from gomodlens.exceptions import DiagnosticsCancelled, FatalIOError
from gomodlens.invariants import never

__all__ = [
    "__version__",
    "CancellationToken",
    "DiagnosticsCancelled",
    "FatalIOError",
    "PassContext",
    "compute_diagnostics",
    "compute_report",
    "never",
]

__version__ = "0.1.0"
