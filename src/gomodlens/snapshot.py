"""Snapshot collaborator interface and an on-disk implementation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlparse

from gomodlens.cancellation import PassContext
from gomodlens.graph import BuildGraphProvider, GraphOutcome, no_graph
from gomodlens.model import FileHandle

MOD_FILE_NAME = "go.mod"


class Snapshot(Protocol):
    def mod_handle(self) -> FileHandle:
        """Identity of the module file at this snapshot version."""

    def mod_path(self) -> Path | None:
        """On-disk location of the real module file, if there is one."""

    def read_mod(self) -> bytes:
        """Current module file content; raises OSError when unreadable."""

    def build_graph(self, context: PassContext, modfile: Path | None) -> GraphOutcome:
        """Build-graph facts computed against ``modfile`` (a shadow when staged)."""


def uri_to_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(uri)


@dataclass(frozen=True)
class DiskSnapshot:
    """A module directory on disk, optionally overlaid with unsaved content."""

    root: Path
    version: int = 0
    overlay: bytes | None = None
    graph: BuildGraphProvider = no_graph

    def mod_path(self) -> Path:
        return self.root / MOD_FILE_NAME

    def mod_handle(self) -> FileHandle:
        return FileHandle(uri=self.mod_path().resolve().as_uri(), version=self.version)

    def read_mod(self) -> bytes:
        if self.overlay is not None:
            return self.overlay
        return self.mod_path().read_bytes()

    def build_graph(self, context: PassContext, modfile: Path | None) -> GraphOutcome:
        return self.graph(context, modfile)
