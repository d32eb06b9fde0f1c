"""Utility modules for common operations."""

from tarja.utils.hashing import compute_detection_id, compute_sha256
from tarja.utils.jsonl import atomic_write_lines

__all__ = [
    "atomic_write_lines",
    "compute_detection_id",
    "compute_sha256",
]
