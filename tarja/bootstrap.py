"""Application bootstrap wiring ports, adapters, and services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tarja.app.adapters import (
    BrazilianPIIRegexAdapter,
    DocumentRedactionRenderer,
    DocumentTextExtractor,
    EncryptedDetectionStore,
    FileSystemStorageAdapter,
)
from tarja.app.audit_service import AuditService
from tarja.app.ports import (
    DetectionStorePort,
    LedgerPort,
    PIIPort,
    RedactorPort,
    StoragePort,
    TextExtractionPort,
)
from tarja.app.redaction_service import RedactionService
from tarja.app.retention_service import RetentionService
from tarja.audit.ledger import AuditLedger
from tarja.config import Settings, get_settings


@dataclass(slots=True)
class ApplicationContainer:
    """Aggregates wired services and adapters for the CLI layer."""

    settings: Settings
    redaction_service: RedactionService
    retention_service: RetentionService
    audit_service: AuditService
    ledger_port: LedgerPort
    storage_port: StoragePort
    detection_store: DetectionStorePort
    pii_port: PIIPort
    extractor: TextExtractionPort
    redactor: RedactorPort


class NoOpLedger:
    """Ledger implementation that drops all writes."""

    def log(self, *args: Any, **kwargs: Any) -> None:
        return None

    def read_all(self) -> list[Any]:
        return []

    def verify(self) -> tuple[bool, str | None]:
        return (True, None)


def _create_ledger(settings: Settings) -> LedgerPort | None:
    if not settings.audit_enabled:
        return None

    return AuditLedger(  # type: ignore[return-value]
        settings.get_audit_path(),
        hmac_key=settings.get_audit_hmac_key(),
    )


def _create_storage(settings: Settings) -> StoragePort:
    return FileSystemStorageAdapter(settings.storage_config())


def _create_extractor(settings: Settings) -> TextExtractionPort:
    return DocumentTextExtractor(
        lang=settings.ocr_language,
        dpi_scale=settings.ocr_dpi_scale,
        min_text_threshold=settings.ocr_min_text_threshold,
        ocr_enabled=settings.ocr_enabled,
        page_split=settings.page_split,
    )


def bootstrap_application(settings: Settings | None = None) -> ApplicationContainer:
    """Instantiate adapters and services for CLI consumption."""

    active_settings = settings or get_settings()

    storage = _create_storage(active_settings)
    store = EncryptedDetectionStore(active_settings)
    extractor = _create_extractor(active_settings)
    pii_adapter = BrazilianPIIRegexAdapter()
    redactor = DocumentRedactionRenderer(
        storage,
        image_missing_box_policy=active_settings.image_missing_box_policy,
    )

    ledger = _create_ledger(active_settings)
    ledger_for_services: LedgerPort = ledger or NoOpLedger()  # type: ignore[assignment]

    redaction_service = RedactionService(
        pii_port=pii_adapter,
        extractor=extractor,
        storage_port=storage,
        store=store,
        redactor=redactor,
        ledger_port=ledger_for_services,
        settings=active_settings,
    )
    retention_service = RetentionService(
        store=store,
        storage_port=storage,
        ledger_port=ledger_for_services,
        retention_days=active_settings.retention_days,
    )
    audit_service = AuditService(ledger=ledger)

    return ApplicationContainer(
        settings=active_settings,
        redaction_service=redaction_service,
        retention_service=retention_service,
        audit_service=audit_service,
        ledger_port=ledger_for_services,
        storage_port=storage,
        detection_store=store,
        pii_port=pii_adapter,
        extractor=extractor,
        redactor=redactor,
    )
