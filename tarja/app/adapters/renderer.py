"""Redaction renderer routing documents to the PDF or raster redactor."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from tarja.app.adapters.image_redactor import ImageRedactor, MissingBoxPolicy
from tarja.app.adapters.pdf_redactor import PDFRedactor
from tarja.app.ports import StoragePort
from tarja.app.ports.pii import Detection
from tarja.app.ports.redaction import (
    RedactionResult,
    RedactorPort,
    RenderedDocument,
    UnsupportedDocumentTypeError,
)
from tarja.utils.hashing import compute_sha256

PDF_MIME_TYPE = "application/pdf"


def normalize_mime_type(mime_type: str) -> str:
    """Lower-case ``mime_type`` and drop parameters such as ``; charset=``."""
    return mime_type.split(";", 1)[0].strip().lower()


class DocumentRedactionRenderer(RedactorPort):
    """Render approved detections into a new, content-addressed artifact.

    Only detections that are approved and not rejected are painted; anything
    else handed in is dropped with a warning. The artifact is written through
    the storage port as ``<output_dir>/<document_id>_redacted.<ext>`` and only
    after the source parsed and rendered completely.
    """

    _LOG = logging.getLogger(__name__)

    def __init__(
        self,
        storage: StoragePort,
        *,
        pdf_redactor: PDFRedactor | None = None,
        image_redactor: ImageRedactor | None = None,
        image_missing_box_policy: MissingBoxPolicy = "skip",
    ) -> None:
        self.storage = storage
        self.pdf_redactor = pdf_redactor or PDFRedactor()
        self.image_redactor = image_redactor or ImageRedactor(
            missing_box_policy=image_missing_box_policy
        )

    def render(
        self,
        source: bytes,
        *,
        mime_type: str,
        detections: Sequence[Detection],
        output_dir: str,
        document_id: str,
    ) -> RedactionResult:
        normalized = normalize_mime_type(mime_type)

        eligible = [detection for detection in detections if detection.is_renderable]
        dropped = len(detections) - len(eligible)
        if dropped:
            self._LOG.warning(
                "Dropped %d detection(s) for %s that are not approved or were rejected",
                dropped,
                document_id,
            )

        rendered = self._render_bytes(source, normalized, eligible)

        key = self.output_key(output_dir, document_id, rendered.extension)
        self.storage.write_bytes(key, rendered.data)
        content_hash = compute_sha256(rendered.data)

        self._LOG.info(
            "Redacted %s: %d applied, %d skipped", document_id, rendered.applied, rendered.skipped
        )

        return RedactionResult(
            document_id=document_id,
            output_path=key,
            content_hash=content_hash,
            mime_type=rendered.mime_type,
            success=True,
            applied=rendered.applied,
            skipped=rendered.skipped,
        )

    @staticmethod
    def output_key(output_dir: str, document_id: str, extension: str) -> str:
        name = f"{document_id}_redacted.{extension}"
        prefix = output_dir.strip("/")
        return f"{prefix}/{name}" if prefix else name

    def _render_bytes(
        self,
        source: bytes,
        mime_type: str,
        detections: list[Detection],
    ) -> RenderedDocument:
        if mime_type == PDF_MIME_TYPE:
            return self.pdf_redactor.redact(source, detections)
        if mime_type.startswith("image/"):
            return self.image_redactor.redact(source, detections)
        raise UnsupportedDocumentTypeError(f"Unsupported file type for redaction: {mime_type}")
