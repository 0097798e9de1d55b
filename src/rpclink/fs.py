"""Filesystem helpers used by the build steps.

Writes go through a temporary sibling file followed by os.replace(), so a
reader never observes a half-written file at the destination path.
"""

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


@contextmanager
def atomic_destination(dest: Path, suffix: str = ".tmp") -> Iterator[Path]:
    """Yield a temporary path that replaces dest when the block succeeds.

    The temporary file is created in dest's directory so the final rename
    stays on one filesystem. If the block raises, the temporary file is
    removed and dest is left untouched.

    Args:
        dest: Final destination path
        suffix: Suffix for the temporary file name

    Yields:
        Path the caller should write to
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=suffix, dir=dest.parent)
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        yield tmp_path
        os.replace(tmp_path, dest)
    finally:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError as e:
                logger.warning(f"Failed to remove temporary file {tmp_path}: {e}")


def copy_file_atomic(source: Path, dest: Path) -> None:
    """Copy source to dest byte for byte, replacing dest atomically.

    Args:
        source: File to copy
        dest: Destination path (parent directories are created)

    Raises:
        OSError: If the source cannot be read or the destination written
    """
    with atomic_destination(dest) as tmp_path:
        shutil.copyfile(source, tmp_path)
    logger.debug(f"Copied {source} -> {dest}")


def write_bytes_atomic(dest: Path, data: bytes) -> None:
    """Write data to dest atomically, flushing it to disk before the rename."""
    with atomic_destination(dest) as tmp_path:
        with open(tmp_path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())


def exists(path: Path) -> bool:
    return path.exists()


def mtime(path: Path) -> float:
    """Modification time of a file.

    For a directory, the newest modification time of the directory itself
    and every file below it, so that a changed file deep in a source tree
    counts as a change of the tree.

    Raises:
        FileNotFoundError: If path does not exist
    """
    stat = path.stat()
    if not path.is_dir():
        return stat.st_mtime

    newest = stat.st_mtime
    for child in path.rglob("*"):
        try:
            newest = max(newest, child.stat().st_mtime)
        except FileNotFoundError:
            # Removed while walking
            continue
    return newest


def oldest_mtime(path: Path) -> float:
    """Oldest modification time of a file, or of the files below a directory."""
    if not path.is_dir():
        return path.stat().st_mtime

    files = [p for p in path.rglob("*") if p.is_file()]
    if not files:
        return path.stat().st_mtime
    return min(p.stat().st_mtime for p in files)
