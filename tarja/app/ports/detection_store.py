"""Persistence port for source documents and their detections."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, Field

from tarja.app.ports.pii import Detection


class DocumentNotFoundError(KeyError):
    """No document (or detection) is registered under the requested id."""


class ReviewConflictError(RuntimeError):
    """A detection's review state changed between read and write."""


class DuplicateDocumentError(ValueError):
    """A live document with the same content hash is already registered."""


class DocumentStatus(str, Enum):
    UPLOADED = "UPLOADED"
    PROCESSING = "PROCESSING"
    DETECTION_COMPLETE = "DETECTION_COMPLETE"
    REDACTED = "REDACTED"
    FAILED = "FAILED"
    DELETED = "DELETED"


class SourceDocument(BaseModel):
    """Registered document and its lifecycle state."""

    id: str
    storage_key: str
    mime_type: str
    sha256: str
    created_at: datetime
    status: DocumentStatus = DocumentStatus.UPLOADED
    original_filename: str | None = None
    purpose: str | None = Field(default=None, description="Why the document is processed")
    legal_basis: str | None = Field(default=None, description="LGPD legal basis for processing")
    retention_days: int | None = Field(
        default=None, ge=1, description="Days to keep the document (None = global default)"
    )
    page_count: int | None = Field(default=None, ge=0)
    redacted_key: str | None = None
    redacted_hash: str | None = None


class DetectionStorePort(Protocol):
    """Port interface for document and detection persistence.

    Adapters must make :meth:`compare_and_set` atomic with respect to other
    writers of the same document.

    Side effects: Writes encrypted records to disk.
    """

    def save_document(self, document: SourceDocument) -> None:
        ...

    def get_document(self, document_id: str) -> SourceDocument:
        """Return the document record.

        Raises:
            DocumentNotFoundError: When ``document_id`` is unknown
        """
        ...

    def list_documents(self) -> list[SourceDocument]:
        ...

    def replace_detections(self, document_id: str, detections: list[Detection]) -> int:
        """Replace every stored detection of ``document_id``; returns the count."""
        ...

    def list_detections(self, document_id: str) -> list[Detection]:
        ...

    def compare_and_set(
        self,
        document_id: str,
        *,
        expected: Detection,
        replacement: Detection,
    ) -> Detection:
        """Replace a detection only if its review state still equals ``expected``.

        Raises:
            DocumentNotFoundError: When the detection does not exist
            ReviewConflictError: When the stored review state has changed
        """
        ...

    def delete_detections(self, document_id: str) -> int:
        """Remove every detection of ``document_id``; returns the count removed."""
        ...
