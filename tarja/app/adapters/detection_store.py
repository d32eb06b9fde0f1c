"""Encrypted on-disk persistence for source documents and detections."""

from __future__ import annotations

import json
import re
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from cryptography.fernet import InvalidToken
from pydantic import BaseModel, Field

from tarja import __version__
from tarja.app.ports.detection_store import (
    DetectionStorePort,
    DocumentNotFoundError,
    ReviewConflictError,
    SourceDocument,
)
from tarja.app.ports.pii import Detection
from tarja.config import Settings
from tarja.utils.crypto import decrypt_blob, encrypt_blob
from tarja.utils.jsonl import atomic_write_lines

_SAFE_ID = re.compile(r"^[A-Za-z0-9._-]+$")


class DetectionRecord(BaseModel):
    """Schema-stamped envelope for one stored detection."""

    schema_id: str = Field(default="detection", description="Schema identifier.")
    schema_version: int = Field(default=1, description="Schema version number.")
    producer: str = Field(
        default_factory=lambda: f"tarja-{__version__}",
        description="Producer identifier (tool version).",
    )
    produced_at: str = Field(
        default_factory=lambda: datetime.now(UTC).isoformat(),
        description="Timestamp when the record was written.",
    )
    document_id: str
    detection: Detection


def review_state(detection: Detection) -> tuple[Any, ...]:
    """Fields a reviewer may change; compared by :meth:`compare_and_set`."""
    box = detection.bounding_box.model_dump() if detection.bounding_box else None
    return (detection.is_approved, detection.is_rejected, detection.page_number, box)


class EncryptedDetectionStore(DetectionStorePort):
    """Fernet-encrypted JSONL store, one file per document.

    Detections hold raw PII, so every line on disk is an encrypted token.
    Files are rewritten atomically (temp file, fsync, rename). Writers within
    this process are serialized by a lock, which makes compare-and-set atomic
    for a single service instance.
    """

    def __init__(self, settings: Settings, *, directory: Path | None = None) -> None:
        self._settings = settings
        self._root = directory or settings.get_detection_store_dir()
        self._key = settings.get_detection_key()
        self._lock = threading.RLock()
        (self._root / "documents").mkdir(parents=True, exist_ok=True)
        (self._root / "detections").mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        """Return the underlying storage directory."""
        return self._root

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def save_document(self, document: SourceDocument) -> None:
        with self._lock:
            self._write_tokens(self._document_path(document.id), [document.model_dump(mode="json")])

    def get_document(self, document_id: str) -> SourceDocument:
        path = self._document_path(document_id)
        records = self._read_tokens(path)
        if not records:
            raise DocumentNotFoundError(document_id)
        return SourceDocument.model_validate(records[0])

    def list_documents(self) -> list[SourceDocument]:
        documents: list[SourceDocument] = []
        for path in sorted((self._root / "documents").glob("*.enc")):
            records = self._read_tokens(path)
            if records:
                documents.append(SourceDocument.model_validate(records[0]))
        return documents

    # ------------------------------------------------------------------
    # Detections
    # ------------------------------------------------------------------

    def replace_detections(self, document_id: str, detections: list[Detection]) -> int:
        with self._lock:
            self._write_detections(document_id, detections)
        return len(detections)

    def list_detections(self, document_id: str) -> list[Detection]:
        return [
            DetectionRecord.model_validate(data).detection
            for data in self._read_tokens(self._detections_path(document_id))
        ]

    def compare_and_set(
        self,
        document_id: str,
        *,
        expected: Detection,
        replacement: Detection,
    ) -> Detection:
        if expected.id is None or replacement.id != expected.id:
            raise ValueError("compare_and_set requires matching detection ids")

        with self._lock:
            detections = self.list_detections(document_id)
            for index, current in enumerate(detections):
                if current.id == expected.id:
                    break
            else:
                raise DocumentNotFoundError(f"{document_id}/{expected.id}")

            if review_state(current) != review_state(expected):
                raise ReviewConflictError(
                    f"Detection {expected.id} of {document_id} was reviewed concurrently"
                )

            detections[index] = replacement
            self._write_detections(document_id, detections)

        return replacement

    def delete_detections(self, document_id: str) -> int:
        with self._lock:
            path = self._detections_path(document_id)
            count = len(self._read_tokens(path))
            try:
                path.unlink()
            except FileNotFoundError:
                return 0
        return count

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _write_detections(self, document_id: str, detections: list[Detection]) -> None:
        records = [
            DetectionRecord(document_id=document_id, detection=detection).model_dump(mode="json")
            for detection in detections
        ]
        self._write_tokens(self._detections_path(document_id), records)

    def _document_path(self, document_id: str) -> Path:
        return self._root / "documents" / f"{self._check_id(document_id)}.enc"

    def _detections_path(self, document_id: str) -> Path:
        return self._root / "detections" / f"{self._check_id(document_id)}.jsonl.enc"

    @staticmethod
    def _check_id(document_id: str) -> str:
        if not _SAFE_ID.match(document_id) or document_id in {".", ".."}:
            raise ValueError(f"Invalid document id: {document_id!r}")
        return document_id

    def _write_tokens(self, path: Path, records: list[dict[str, Any]]) -> None:
        lines = []
        for record in records:
            payload = json.dumps(record, sort_keys=True, separators=(",", ":")).encode("utf-8")
            lines.append(encrypt_blob(payload, key=self._key).decode("utf-8"))
        atomic_write_lines(path, lines)

    def _read_tokens(self, path: Path) -> list[dict[str, Any]]:
        if not path.exists():
            return []

        records: list[dict[str, Any]] = []
        with open(path, encoding="utf-8") as fh:
            for line_num, raw_line in enumerate(fh, 1):
                token = raw_line.strip()
                if not token:
                    continue

                try:
                    decrypted = decrypt_blob(token.encode("utf-8"), key=self._key)
                except InvalidToken as exc:
                    raise ValueError(
                        f"Failed to decrypt record at line {line_num} of {path.name}"
                    ) from exc
                records.append(json.loads(decrypted.decode("utf-8")))

        return records
