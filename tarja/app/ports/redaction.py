"""Redaction rendering port and result contract."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from pydantic import BaseModel, Field

from tarja.app.ports.pii import Detection


class InvalidDocumentError(ValueError):
    """Source bytes are corrupt or cannot be parsed for the declared type."""


class UnsupportedDocumentTypeError(InvalidDocumentError):
    """The mime type has no redaction or extraction path."""


class NoApprovedDetectionsError(ValueError):
    """Redaction was requested for a document without approved detections."""


@dataclass(frozen=True, slots=True)
class RenderedDocument:
    """Bytes produced by a format-specific redactor, before they are stored."""

    data: bytes
    extension: str
    mime_type: str
    applied: int
    skipped: int


class RedactionResult(BaseModel):
    """Output descriptor of a render pass."""

    document_id: str
    output_path: str = Field(..., description="Storage key of the redacted artifact")
    content_hash: str = Field(..., description="Hex SHA-256 of the rendered bytes")
    mime_type: str
    success: bool = True
    applied: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)


class RedactorPort(Protocol):
    """Port interface for irreversibly blacking out approved detections.

    Side effects: Writes the redacted artifact through the storage port.
    """

    def render(
        self,
        source: bytes,
        *,
        mime_type: str,
        detections: Sequence[Detection],
        output_dir: str,
        document_id: str,
    ) -> RedactionResult:
        """Render ``source`` with every eligible detection obliterated.

        Raises:
            UnsupportedDocumentTypeError: Mime type is neither PDF nor image
            InvalidDocumentError: Source cannot be parsed; nothing is written
        """
        ...
