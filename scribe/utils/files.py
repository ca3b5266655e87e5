"""Filesystem helpers for single-document atomic writes."""

from __future__ import annotations

import os
from pathlib import Path
import tempfile


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """Write ``content`` to ``path`` so readers see the old or the new file, never a mix.

    The data goes to a temporary file in the same directory which then
    replaces the target with ``os.replace``. On failure the temporary file is
    removed and the previous version stays in place.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def atomic_write_text(path: Path, text: str) -> None:
    atomic_write_bytes(path, text.encode("utf-8"))


def write_if_changed(path: Path, content: bytes) -> bool:
    """Atomically write ``content`` unless ``path`` already holds exactly these bytes.

    Returns:
        True if the file was written
    """
    if path.is_file() and path.read_bytes() == content:
        return False
    atomic_write_bytes(path, content)
    return True
