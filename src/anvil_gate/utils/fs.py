"""
anvil-gate — filesystem utilities

File: src/anvil_gate/utils/fs.py

Purpose
- Write workspace files (gate config, plans, exported schemas) atomically.

Functional requirements
- Missing parent directories are created before writing.
- The target is replaced in a single ``os.replace`` step so readers never observe partial content.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = ["atomic_write", "ensure_parent_dir"]


def ensure_parent_dir(path: PathLike) -> Path:
    """Create the parent directory of ``path`` if needed and return it."""

    parent = Path(path).parent
    parent.mkdir(parents=True, exist_ok=True)
    return parent


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create the parent directory when missing,
    2. write + flush + fsync a temp file in the same directory,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    target_parent = ensure_parent_dir(target).resolve(strict=True)

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        mode = "wb" if isinstance(data, bytes) else "w"
        file_encoding = None if isinstance(data, bytes) else encoding
        with os.fdopen(fd, mode, encoding=file_encoding) as file_handle:
            file_handle.write(data)
            file_handle.flush()
            os.fsync(file_handle.fileno())

        os.replace(temp_path, target)
        _fsync_directory(target_parent)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def _fsync_directory(path: Path) -> None:
    # Some platforms/filesystems do not support fsync on directories.
    if os.name == "nt":
        return

    flags = os.O_RDONLY
    if hasattr(os, "O_DIRECTORY"):
        flags |= os.O_DIRECTORY

    try:
        dir_fd = os.open(path, flags)
    except OSError:
        return
    try:
        with contextlib.suppress(OSError):
            os.fsync(dir_fd)
    finally:
        os.close(dir_fd)
