"""Port interfaces for the Tarja application layer.

These protocol interfaces define contracts for adapters.
Domain logic depends on these ports, never on concrete implementations.
"""

__all__ = [
    "AuditRecord",
    "BoundingBox",
    "Detection",
    "DetectionStorePort",
    "DetectionType",
    "DocumentNotFoundError",
    "DocumentStatus",
    "DuplicateDocumentError",
    "ExtractedPage",
    "ExtractedText",
    "InvalidDocumentError",
    "LedgerPort",
    "NoApprovedDetectionsError",
    "PIIPort",
    "RedactionResult",
    "RedactorPort",
    "RenderedDocument",
    "ReviewConflictError",
    "RiskLevel",
    "SourceDocument",
    "StoragePort",
    "TextExtractionPort",
    "UnsupportedDocumentTypeError",
    "WordBox",
]

from tarja.app.ports.detection_store import (
    DetectionStorePort,
    DocumentNotFoundError,
    DocumentStatus,
    DuplicateDocumentError,
    ReviewConflictError,
    SourceDocument,
)
from tarja.app.ports.extraction import (
    ExtractedPage,
    ExtractedText,
    TextExtractionPort,
    WordBox,
)
from tarja.app.ports.ledger import AuditRecord, LedgerPort
from tarja.app.ports.pii import BoundingBox, Detection, DetectionType, PIIPort, RiskLevel
from tarja.app.ports.redaction import (
    InvalidDocumentError,
    NoApprovedDetectionsError,
    RedactionResult,
    RedactorPort,
    RenderedDocument,
    UnsupportedDocumentTypeError,
)
from tarja.app.ports.storage import StoragePort
