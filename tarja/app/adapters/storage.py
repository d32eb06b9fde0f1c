"""Filesystem-backed storage port implementation."""

from __future__ import annotations

import hashlib
import os
import tempfile
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from tarja.app.ports import StoragePort
from tarja.config import StorageConfig


class FileSystemStorageAdapter(StoragePort):
    """Adapter that stores objects as files under a configured root.

    Keys are resolved relative to ``config.local_path``; absolute keys and
    ``..`` segments are rejected so no key can escape the root.
    """

    def __init__(self, config: StorageConfig) -> None:
        self.config = config
        self.root = Path(config.local_path)
        self.root.mkdir(parents=True, exist_ok=True)

    def read_bytes(self, key: str) -> bytes:
        return self._resolve(key).read_bytes()

    def open(self, key: str) -> BinaryIO:
        return self._resolve(key).open("rb")

    def write_bytes(self, key: str, data: bytes) -> str:
        destination = self._resolve(key)
        destination.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            dir=str(destination.parent), prefix=destination.name, suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, destination)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

        return key

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def delete(self, key: str) -> bool:
        try:
            self._resolve(key).unlink()
        except FileNotFoundError:
            return False
        return True

    def compute_hash(self, key: str) -> str:
        sha = hashlib.sha256()
        with self._resolve(key).open("rb") as handle:
            for chunk in iter(lambda: handle.read(65536), b""):
                sha.update(chunk)
        return sha.hexdigest()

    def _resolve(self, key: str) -> Path:
        relative = PurePosixPath(str(key).replace("\\", "/"))
        if not key or relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.root.joinpath(*relative.parts)
