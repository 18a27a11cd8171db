from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for entry in (ROOT, ROOT / "src"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))


import pytest

from gomodlens.cancellation import PassContext, TickBudget
from gomodlens.config import DiagnosticsOptions
from gomodlens.graph import BuildGraphFacts, StaticGraph
from gomodlens.snapshot import DiskSnapshot

TOOLS = "golang.org/x/tools"
TOOLS_VERSION = "v0.0.0-20191219192050-56b0b28a00f7"


@pytest.fixture
def pass_context() -> PassContext:
    return PassContext(budget=TickBudget(limit=1_000))


@pytest.fixture
def write_module(tmp_path: Path):
    def _write(text: str, *, name: str = "module", go_sum: str | None = None) -> Path:
        folder = tmp_path / name
        folder.mkdir(parents=True, exist_ok=True)
        (folder / "go.mod").write_text(text, encoding="utf-8")
        if go_sum is not None:
            (folder / "go.sum").write_text(go_sum, encoding="utf-8")
        return folder

    return _write


@pytest.fixture
def scratch_options(tmp_path: Path) -> DiagnosticsOptions:
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    return DiagnosticsOptions(scratch_dir=scratch)


@pytest.fixture
def static_snapshot():
    def _snapshot(folder: Path, usages: dict[str, str], *, version: int = 1) -> DiskSnapshot:
        return DiskSnapshot(
            root=folder,
            version=version,
            graph=StaticGraph(BuildGraphFacts.from_usages(usages)),
        )

    return _snapshot
