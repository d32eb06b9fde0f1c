"""Line-oriented file writing helpers with durability guarantees."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterable
from pathlib import Path


def atomic_write_lines(path: Path, lines: Iterable[str]) -> int:
    """Write ``lines`` to ``path`` atomically, one per line.

    The write is performed via a temporary file followed by an ``os.replace``
    once the contents are flushed and fsynced, ensuring durability even if the
    process crashes mid-write.

    Returns:
        Number of lines written.
    """
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)

    fd: int | None = None
    tmp_path: str | None = None
    count = 0

    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(destination.parent),
            prefix=destination.name,
            suffix=".tmp",
            text=True,
        )

        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            fd = None  # Ownership transferred to file object
            for line in lines:
                line = line.rstrip("\n")
                if not line:
                    raise ValueError("Blank line provided to atomic writer.")
                handle.write(line)
                handle.write("\n")
                count += 1
            handle.flush()
            os.fsync(handle.fileno())

        os.replace(tmp_path, destination)
        tmp_path = None
    finally:
        if fd is not None:
            os.close(fd)
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass

    return count
