"""Redaction service: register, analyze, review and apply.

Every step reads and writes through ports. Detections only reach the
renderer after a reviewer approved them, and the artifact is reported only
once it exists in storage.
"""

from __future__ import annotations

import logging
import mimetypes
import re
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from tarja.app.ports import (
    BoundingBox,
    Detection,
    DetectionStorePort,
    DocumentNotFoundError,
    DocumentStatus,
    DuplicateDocumentError,
    ExtractedText,
    InvalidDocumentError,
    LedgerPort,
    NoApprovedDetectionsError,
    PIIPort,
    RedactionResult,
    RedactorPort,
    SourceDocument,
    StoragePort,
    TextExtractionPort,
)
from tarja.config import Settings, get_settings
from tarja.utils.hashing import compute_detection_id, compute_sha256
from tarja.utils.layout import attach_bounding_boxes
from tarja.utils.pagination import attribute_pages

logger = logging.getLogger(__name__)

_DOCUMENT_ID = re.compile(r"^[A-Za-z0-9._-]+$")
_EXTENSIONS = {
    "application/pdf": "pdf",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/tiff": "tif",
}

StageStatus = Literal["pending", "completed", "skipped", "failed"]


class ReviewAction(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    MODIFIED = "MODIFIED"


@dataclass(slots=True)
class PipelineStage:
    """Represents the status of a pipeline phase."""

    name: str
    status: StageStatus = "pending"
    detail: str | None = None
    duration_seconds: float | None = None
    metrics: dict[str, Any] | None = None


class AnalysisResult(BaseModel):
    """Summary of an extract -> detect -> attribute -> layout run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    document_id: str | None = None
    detections: list[Detection] = Field(default_factory=list)
    page_count: int = 0
    ocr_pages: list[int] = Field(default_factory=list)
    stages: list[PipelineStage] = Field(default_factory=list)

    @property
    def located(self) -> int:
        """Number of detections that carry a bounding box."""
        return sum(1 for detection in self.detections if detection.bounding_box is not None)


@contextmanager
def _stage(stages: list[PipelineStage], name: str) -> Iterator[PipelineStage]:
    """Context manager to standardize pipeline stage error handling."""
    stage = PipelineStage(name=name)
    stages.append(stage)
    start_time = time.monotonic()
    try:
        yield stage
    except Exception as exc:
        stage.status = "failed"
        stage.detail = str(exc)
        raise
    else:
        if stage.status == "pending":
            stage.status = "completed"
    finally:
        stage.duration_seconds = time.monotonic() - start_time


class RedactionService:
    """Orchestrates the detection and redaction pipeline.

    1. register: store the original and record its hash
    2. analyze: extract text, detect PII, attribute pages and locate boxes
    3. review: approve, reject or correct individual detections
    4. apply: render approved detections into a new artifact

    All I/O is delegated to ports.
    """

    def __init__(
        self,
        *,
        pii_port: PIIPort,
        extractor: TextExtractionPort,
        storage_port: StoragePort,
        store: DetectionStorePort,
        redactor: RedactorPort,
        ledger_port: LedgerPort | None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize redaction service.

        Args:
            pii_port: PII detection port
            extractor: Text and layout extraction port
            storage_port: Object storage port for originals and artifacts
            store: Document and detection persistence port
            redactor: Redaction renderer port
            ledger_port: Audit logging port
            settings: Application settings (output prefix)
        """
        self.pii = pii_port
        self.extractor = extractor
        self.storage = storage_port
        self.store = store
        self.redactor = redactor
        self.ledger = ledger_port
        self._settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(
        self,
        source: Path | bytes,
        *,
        document_id: str,
        purpose: str,
        legal_basis: str,
        retention_days: int | None = None,
        mime_type: str | None = None,
        original_filename: str | None = None,
    ) -> SourceDocument:
        """Store an original document and record it as ``UPLOADED``.

        Args:
            source: Path to the document or its raw bytes
            document_id: Caller-chosen identifier (letters, digits, ``._-``)
            purpose: Why the document is being processed
            legal_basis: Legal basis for processing the personal data in it
            retention_days: Days to keep it (defaults to ``Settings.retention_days``)
            mime_type: Media type; guessed from the file name when omitted
            original_filename: Name shown to reviewers

        Raises:
            ValueError: If the id is malformed, purpose or legal basis is blank,
                or the type cannot be determined
            DuplicateDocumentError: If the id or the content is already registered
        """
        if not _DOCUMENT_ID.match(document_id) or document_id in {".", ".."}:
            raise ValueError(f"Invalid document id: {document_id!r}")
        purpose = purpose.strip()
        legal_basis = legal_basis.strip()
        if not purpose or not legal_basis:
            raise ValueError("Purpose and legal basis are required")
        if retention_days is None:
            retention_days = self._settings.retention_days
        if retention_days < 1:
            raise ValueError("retention_days must be at least 1")

        if isinstance(source, Path):
            resolved = source.resolve()
            if not resolved.is_file():
                raise FileNotFoundError(f"Document not found: {resolved}")
            data = resolved.read_bytes()
            original_filename = original_filename or resolved.name
        else:
            data = source

        if mime_type is None and original_filename:
            mime_type, _ = mimetypes.guess_type(original_filename)
        if not mime_type:
            raise ValueError("Cannot determine the document's mime type")
        mime_type = mime_type.split(";", 1)[0].strip().lower()

        sha256 = compute_sha256(data)
        self._check_not_registered(document_id, sha256)

        extension = _EXTENSIONS.get(mime_type, mime_type.rsplit("/", 1)[-1])
        key = self.storage.write_bytes(f"originals/{document_id}.{extension}", data)
        document = SourceDocument(
            id=document_id,
            storage_key=key,
            mime_type=mime_type,
            sha256=sha256,
            created_at=datetime.now(UTC),
            original_filename=original_filename,
            purpose=purpose,
            legal_basis=legal_basis,
            retention_days=retention_days,
        )
        self.store.save_document(document)

        if self.ledger is not None:
            self.ledger.log(
                operation="document_register",
                inputs=[document_id],
                outputs=[key, document.sha256],
                args={
                    "mime_type": mime_type,
                    "size_bytes": len(data),
                    "purpose": purpose,
                    "legal_basis": legal_basis,
                    "retention_days": retention_days,
                },
            )
        return document

    def _check_not_registered(self, document_id: str, sha256: str) -> None:
        """Reject a live document id or content hash that is already registered."""
        for existing in self.store.list_documents():
            if existing.status == DocumentStatus.DELETED:
                continue
            if existing.id == document_id:
                raise DuplicateDocumentError(f"Document id already registered: {document_id}")
            if existing.sha256 == sha256:
                raise DuplicateDocumentError(
                    f"Document already registered as {existing.id} (sha256 {sha256})"
                )

    # ------------------------------------------------------------------
    # Analyze
    # ------------------------------------------------------------------

    def scan(
        self,
        data: bytes,
        mime_type: str,
        *,
        entities: list[str] | None = None,
    ) -> AnalysisResult:
        """Detect PII in a document without persisting anything."""
        stages: list[PipelineStage] = []
        return self._detect(data, mime_type, entities=entities, stages=stages)

    def analyze(
        self,
        document_id: str,
        *,
        entities: list[str] | None = None,
    ) -> AnalysisResult:
        """Run detection on a registered document and replace its detections.

        The document is marked ``FAILED`` when any stage raises; the error
        propagates to the caller.
        """
        document = self.store.get_document(document_id)
        if document.status == DocumentStatus.DELETED:
            raise DocumentNotFoundError(document_id)

        self.store.save_document(document.model_copy(update={"status": DocumentStatus.PROCESSING}))
        stages: list[PipelineStage] = []

        try:
            with _stage(stages, "load") as stage:
                data = self.storage.read_bytes(document.storage_key)
                stage.metrics = {"size_bytes": len(data)}

            result = self._detect(data, document.mime_type, entities=entities, stages=stages)

            with _stage(stages, "persist") as stage:
                detections = [
                    detection.model_copy(
                        update={
                            "id": compute_detection_id(
                                document_id,
                                detection.type.value,
                                detection.start_index,
                                detection.end_index,
                            )
                        }
                    )
                    for detection in result.detections
                ]
                self.store.replace_detections(document_id, detections)
                stage.metrics = {"detections": len(detections)}
        except Exception:
            self.store.save_document(document.model_copy(update={"status": DocumentStatus.FAILED}))
            logger.exception("Analysis of %s failed", document_id)
            raise

        self.store.save_document(
            document.model_copy(
                update={
                    "status": DocumentStatus.DETECTION_COMPLETE,
                    "page_count": result.page_count,
                }
            )
        )

        result = result.model_copy(
            update={"document_id": document_id, "detections": detections, "stages": stages}
        )

        if self.ledger is not None:
            self.ledger.log(
                operation="detection_run",
                inputs=[document_id],
                outputs=[],
                args={
                    "detector": self.pii.__class__.__name__,
                    "detection_count": len(detections),
                    "located_count": result.located,
                    "entity_types": sorted({d.type.value for d in detections}),
                    "page_count": result.page_count,
                    "ocr_pages": result.ocr_pages,
                },
            )

        logger.info(
            "Analyzed %s: %d detections, %d with bounding boxes",
            document_id,
            len(detections),
            result.located,
        )
        return result

    def _detect(
        self,
        data: bytes,
        mime_type: str,
        *,
        entities: list[str] | None,
        stages: list[PipelineStage],
    ) -> AnalysisResult:
        with _stage(stages, "extract") as stage:
            extracted: ExtractedText = self.extractor.extract(data, mime_type)
            stage.metrics = {
                "pages": len(extracted.pages),
                "ocr_pages": len(extracted.ocr_pages),
                "characters": len(extracted.text),
            }

        with _stage(stages, "detect") as stage:
            detections = self.pii.analyze_text(extracted.text, entities=entities)
            stage.metrics = {"detections": len(detections)}

        with _stage(stages, "attribute") as stage:
            detections = attribute_pages(detections, extracted.page_texts, len(extracted.text))

        with _stage(stages, "layout") as stage:
            if any(page.words for page in extracted.pages):
                detections = attach_bounding_boxes(detections, extracted.pages, extracted.text)
            else:
                stage.status = "skipped"
                stage.detail = "No word layout available"
            located = sum(1 for d in detections if d.bounding_box is not None)
            stage.metrics = {"located": located, "unlocated": len(detections) - located}

        return AnalysisResult(
            detections=detections,
            page_count=len(extracted.pages),
            ocr_pages=list(extracted.ocr_pages),
            stages=stages,
        )

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    def list_detections(self, document_id: str) -> list[Detection]:
        """Detections of a document, ordered by position for display."""
        self.store.get_document(document_id)
        return sorted(
            self.store.list_detections(document_id),
            key=lambda detection: (detection.start_index, detection.end_index),
        )

    def review(
        self,
        document_id: str,
        detection_id: str,
        action: ReviewAction | str,
        *,
        bounding_box: BoundingBox | None = None,
        page_number: int | None = None,
        reviewer: str | None = None,
        comment: str | None = None,
    ) -> Detection:
        """Record a reviewer decision on one detection.

        APPROVED and REJECTED are mutually exclusive; a later REJECTED
        overrides an earlier approval. MODIFIED corrects the box or page and
        clears both flags, so the detection needs a fresh decision.

        Raises:
            DocumentNotFoundError: If the document or detection does not exist
            ReviewConflictError: If another reviewer changed it concurrently
        """
        action = ReviewAction(action)
        self.store.get_document(document_id)

        current = next(
            (d for d in self.store.list_detections(document_id) if d.id == detection_id),
            None,
        )
        if current is None:
            raise DocumentNotFoundError(f"{document_id}/{detection_id}")

        if action == ReviewAction.APPROVED:
            update: dict[str, Any] = {"is_approved": True, "is_rejected": False}
        elif action == ReviewAction.REJECTED:
            update = {"is_approved": False, "is_rejected": True}
        else:
            if bounding_box is None and page_number is None:
                raise ValueError("MODIFIED requires a bounding box or a page number")
            update = {"is_approved": False, "is_rejected": False}
            if bounding_box is not None:
                if not bounding_box.is_well_formed():
                    raise ValueError("Bounding box must be finite, non-negative and non-empty")
                update["bounding_box"] = bounding_box
            if page_number is not None:
                update["page_number"] = page_number

        replacement = Detection.model_validate({**current.model_dump(), **update})
        updated = self.store.compare_and_set(document_id, expected=current, replacement=replacement)

        if self.ledger is not None:
            self.ledger.log(
                operation="review_detection",
                inputs=[document_id, detection_id],
                outputs=[],
                args={
                    "action": action.value,
                    "entity_type": current.type.value,
                    "reviewer": reviewer,
                    "has_comment": bool(comment),
                },
            )
        return updated

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply(
        self,
        document_id: str,
        *,
        output_dir: str | None = None,
        force: bool = False,
    ) -> RedactionResult:
        """Render approved detections into ``<output_dir>/<id>_redacted.<ext>``.

        Safety checks:
        1. Only approved, non-rejected detections are rendered
        2. The stored original must still match its registered hash (unless force)
        3. The artifact must exist in storage before success is reported

        Raises:
            NoApprovedDetectionsError: If nothing is approved
            InvalidDocumentError: If the source is corrupt or was altered
        """
        document = self.store.get_document(document_id)
        if document.status not in {DocumentStatus.DETECTION_COMPLETE, DocumentStatus.REDACTED}:
            raise ValueError(
                f"Document {document_id} is {document.status.value}; run analysis first"
            )

        approved = [d for d in self.store.list_detections(document_id) if d.is_renderable]
        if not approved:
            raise NoApprovedDetectionsError(f"No approved detections for {document_id}")

        source = self.storage.read_bytes(document.storage_key)
        if not force:
            current_hash = compute_sha256(source)
            if current_hash != document.sha256:
                raise InvalidDocumentError(
                    "Source document hash mismatch detected. "
                    f"Expected {document.sha256}, computed {current_hash}."
                )

        target_dir = output_dir if output_dir is not None else self._settings.output_prefix
        result = self.redactor.render(
            source,
            mime_type=document.mime_type,
            detections=approved,
            output_dir=target_dir,
            document_id=document_id,
        )

        if not self.storage.exists(result.output_path):
            raise RuntimeError(f"Redacted artifact was not written: {result.output_path}")

        self.store.save_document(
            document.model_copy(
                update={
                    "status": DocumentStatus.REDACTED,
                    "redacted_key": result.output_path,
                    "redacted_hash": result.content_hash,
                }
            )
        )

        if result.skipped:
            logger.warning(
                "%d approved detection(s) of %s could not be placed and were not redacted",
                result.skipped,
                document_id,
            )

        if self.ledger is not None:
            self.ledger.log(
                operation="apply_redaction",
                inputs=[document_id, document.storage_key],
                outputs=[result.output_path, result.content_hash],
                args={
                    "document_sha256": document.sha256,
                    "approved_count": len(approved),
                    "applied": result.applied,
                    "skipped": result.skipped,
                    "force": force,
                },
            )
        return result
