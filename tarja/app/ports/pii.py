"""PII port interface and detection records for Brazilian personal data."""

from __future__ import annotations

import math
from collections.abc import Mapping
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, Field, model_validator


class DetectionType(str, Enum):
    """Entity kinds recognised by the detector."""

    CPF = "CPF"
    RG = "RG"
    CNH = "CNH"
    TITLE = "TITLE"
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    BANK_AGENCY = "BANK_AGENCY"
    BANK_ACCOUNT = "BANK_ACCOUNT"
    PIX = "PIX"
    ADDRESS = "ADDRESS"
    CEP = "CEP"
    CREDIT_CARD = "CREDIT_CARD"


class RiskLevel(str, Enum):
    """Static severity attached to each entity type."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class BoundingBox(BaseModel):
    """Rectangle in the page's top-left-origin point/pixel space."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_raw(cls, value: Any) -> BoundingBox | None:
        """Coerce a loosely typed mapping into a box.

        Returns ``None`` for anything structurally invalid: non-mappings,
        missing keys, booleans, or values that are not real numbers.
        """
        if isinstance(value, BoundingBox):
            return value
        if not isinstance(value, Mapping):
            return None

        coords: dict[str, float] = {}
        for key in ("x", "y", "width", "height"):
            raw = value.get(key)
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                return None
            coords[key] = float(raw)
        return cls(**coords)

    def is_well_formed(self) -> bool:
        """True when every field is finite, the origin is non-negative and the size positive."""
        values = (self.x, self.y, self.width, self.height)
        if not all(math.isfinite(v) for v in values):
            return False
        return self.x >= 0 and self.y >= 0 and self.width > 0 and self.height > 0

    @property
    def x1(self) -> float:
        return self.x + self.width

    @property
    def y1(self) -> float:
        return self.y + self.height


class Detection(BaseModel):
    """A single candidate PII instance located in a document's full text."""

    id: str | None = Field(default=None, description="Stable identifier assigned at persistence")
    type: DetectionType
    risk_level: RiskLevel
    confidence: int = Field(..., ge=0, le=100)
    text: str = Field(..., description="Exact matched substring (raw PII)")
    start_index: int = Field(..., ge=0)
    end_index: int = Field(..., ge=0)
    page_number: int | None = Field(default=None, ge=1)
    bounding_box: BoundingBox | None = None
    is_approved: bool = False
    is_rejected: bool = False

    @model_validator(mode="after")
    def _check_invariants(self) -> Detection:
        if self.start_index >= self.end_index:
            raise ValueError("start_index must be lower than end_index")
        if self.is_approved and self.is_rejected:
            raise ValueError("a detection cannot be both approved and rejected")
        return self

    @property
    def is_renderable(self) -> bool:
        """Eligible for redaction: approved and not rejected."""
        return self.is_approved and not self.is_rejected


class PIIPort(Protocol):
    """Port interface for PII detection operations.

    Adapters: Brazilian regex/checksum detector.

    Side effects: None (read-only analysis).
    """

    def analyze_text(
        self,
        text: str,
        *,
        entities: list[str] | None = None,
    ) -> list[Detection]:
        """Analyze text for PII.

        Args:
            text: Full extracted text
            entities: Entity types to detect (None = all)

        Returns:
            Detections with offsets into ``text`` and no page attribution
        """
        ...

    def get_supported_entities(self) -> list[str]:
        """Get list of supported entity types."""
        ...

    def requires_online(self) -> bool:
        """Return True when the adapter needs network access."""
        ...
