"""Retention: purge documents older than their retention period."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, Field

from tarja.app.ports import (
    DetectionStorePort,
    DocumentStatus,
    LedgerPort,
    SourceDocument,
    StoragePort,
)

logger = logging.getLogger(__name__)


class PurgeResult(BaseModel):
    """Outcome of one retention pass."""

    reference_time: datetime
    cutoff: datetime = Field(..., description="Cutoff for documents without their own period")
    expired: int = 0
    deleted: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


class RetentionService:
    """Delete originals, redacted artifacts and detections past retention.

    Documents are kept as ``DELETED`` tombstones so the audit trail still
    resolves their ids. A failure on one document is logged and reported in
    :attr:`PurgeResult.failed`; the pass continues with the next one.
    """

    def __init__(
        self,
        *,
        store: DetectionStorePort,
        storage_port: StoragePort,
        ledger_port: LedgerPort | None,
        retention_days: int,
    ) -> None:
        if retention_days < 1:
            raise ValueError("retention_days must be at least 1")
        self.store = store
        self.storage = storage_port
        self.ledger = ledger_port
        self.retention_days = retention_days

    def purge_expired(
        self,
        now: datetime | None = None,
        *,
        mime_type: str | None = None,
    ) -> PurgeResult:
        """Purge every document created on or before ``now`` minus its retention period.

        A document registered with its own ``retention_days`` is kept for that
        many days; the others use the service default.

        Args:
            now: Reference time (defaults to the current UTC time)
            mime_type: Only purge documents of this media type
        """
        reference = now or datetime.now(UTC)
        cutoff = reference - timedelta(days=self.retention_days)
        result = PurgeResult(reference_time=reference, cutoff=cutoff)

        candidates = [
            document
            for document in self.store.list_documents()
            if document.status != DocumentStatus.DELETED
            and document.created_at <= reference - timedelta(days=self._period(document))
            and (mime_type is None or document.mime_type == mime_type)
        ]
        result.expired = len(candidates)
        logger.info("Retention pass at %s: %d document(s) expired", reference, len(candidates))

        for document in candidates:
            try:
                removed = [document.storage_key]
                self.storage.delete(document.storage_key)
                if document.redacted_key:
                    self.storage.delete(document.redacted_key)
                    removed.append(document.redacted_key)
                detection_count = self.store.delete_detections(document.id)
                self.store.save_document(
                    document.model_copy(
                        update={
                            "status": DocumentStatus.DELETED,
                            "redacted_key": None,
                        }
                    )
                )
            except (OSError, KeyError, ValueError):
                logger.exception("Error expiring document %s", document.id)
                result.failed.append(document.id)
                continue

            result.deleted.append(document.id)
            if self.ledger is not None:
                self.ledger.log(
                    operation="retention_purge",
                    inputs=[document.id],
                    outputs=[],
                    args={
                        "retention_days": self._period(document),
                        "removed_keys": removed,
                        "detection_count": detection_count,
                        "created_at": document.created_at.isoformat(),
                    },
                )

        logger.info(
            "Retention pass complete: %d deleted, %d failed",
            len(result.deleted),
            len(result.failed),
        )
        return result

    def _period(self, document: SourceDocument) -> int:
        return document.retention_days or self.retention_days
