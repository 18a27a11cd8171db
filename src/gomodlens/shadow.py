"""Disposable copies of a module file.

Anything that might write a module file (the go tool, for one) is pointed at a
shadow copy in a scratch directory. The real file is only ever read.
"""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from gomodlens.exceptions import StagingFailure
from gomodlens.invariants import never

SUM_FILE_NAME = "go.sum"
_SCRATCH_PREFIX = "gomodlens-"


@dataclass(frozen=True)
class ShadowModfile:
    original: Path
    directory: Path
    path: Path
    sum_path: Path | None = None

    def cleanup(self) -> None:
        shutil.rmtree(self.directory, ignore_errors=True)


@dataclass(frozen=True)
class Fingerprint:
    """Bytes and mtime of a file, captured before a pass."""

    content: bytes
    mtime_ns: int

    @classmethod
    def capture(cls, path: Path) -> "Fingerprint":
        stat = path.stat()
        return cls(content=path.read_bytes(), mtime_ns=stat.st_mtime_ns)


def stage(
    original: Path,
    content: bytes | None = None,
    *,
    scratch_dir: Path | None = None,
) -> ShadowModfile:
    """Copy ``original`` (or ``content`` on its behalf) into a fresh scratch dir.

    Each call gets its own uniquely named directory, so concurrent passes over
    the same real file never share a shadow.
    """
    try:
        data = content if content is not None else original.read_bytes()
        directory = Path(tempfile.mkdtemp(prefix=_SCRATCH_PREFIX, dir=scratch_dir))
    except OSError as exc:
        raise StagingFailure(f"cannot stage {original}: {exc}") from exc
    shadow = ShadowModfile(original=original, directory=directory, path=directory / original.name)
    try:
        shadow.path.write_bytes(data)
        sibling_sum = original.with_name(SUM_FILE_NAME)
        if sibling_sum.is_file():
            sum_path = directory / SUM_FILE_NAME
            shutil.copyfile(sibling_sum, sum_path)
            shadow = ShadowModfile(
                original=original,
                directory=directory,
                path=shadow.path,
                sum_path=sum_path,
            )
    except OSError as exc:
        shadow.cleanup()
        raise StagingFailure(f"cannot stage {original}: {exc}") from exc
    logger.debug("staged {} at {}", original, shadow.path)
    return shadow


@contextmanager
def staged(
    original: Path,
    content: bytes | None = None,
    *,
    scratch_dir: Path | None = None,
) -> Iterator[ShadowModfile | None]:
    """Yield a shadow of ``original``, or ``None`` if staging failed."""
    try:
        shadow = stage(original, content, scratch_dir=scratch_dir)
    except StagingFailure as exc:
        logger.warning("continuing without a shadow module file: {}", exc)
        yield None
        return
    try:
        yield shadow
    finally:
        shadow.cleanup()


def verify_unchanged(path: Path, before: Fingerprint) -> None:
    try:
        after = Fingerprint.capture(path)
    except OSError as exc:
        never("real module file vanished during diagnostics pass", path=str(path), error=str(exc))
    if after != before:
        never("real module file was modified during diagnostics pass", path=str(path))
