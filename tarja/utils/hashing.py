"""Hashing utilities for content digests and detection identifiers."""

import hashlib


def compute_sha256(content: bytes) -> str:
    """Compute SHA-256 hash of content.

    Args:
        content: Bytes to hash

    Returns:
        Hexadecimal hash string
    """
    return hashlib.sha256(content).hexdigest()


def compute_detection_id(document_id: str, entity_type: str, start: int, end: int) -> str:
    """Derive a stable identifier for a detection within a document.

    Re-running detection over the same text yields the same identifiers, so
    review decisions can be matched back to findings.
    """
    payload = f"{document_id}|{entity_type}|{start}|{end}".encode("utf-8")
    return hashlib.sha256(payload).hexdigest()[:16]
