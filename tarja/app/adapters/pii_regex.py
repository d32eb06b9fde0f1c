"""PII detection adapter for Brazilian identifiers using regex patterns and checksums."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from tarja.app.ports.pii import Detection, DetectionType, RiskLevel
from tarja.utils import validators

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionProfile:
    """Fixed scoring attached to every validated match of one entity type."""

    confidence: int
    risk_level: RiskLevel


DETECTION_PROFILES: dict[DetectionType, DetectionProfile] = {
    DetectionType.CPF: DetectionProfile(95, RiskLevel.HIGH),
    DetectionType.RG: DetectionProfile(90, RiskLevel.HIGH),
    DetectionType.CNH: DetectionProfile(90, RiskLevel.HIGH),
    DetectionType.TITLE: DetectionProfile(85, RiskLevel.MEDIUM),
    DetectionType.EMAIL: DetectionProfile(90, RiskLevel.MEDIUM),
    DetectionType.PHONE: DetectionProfile(80, RiskLevel.MEDIUM),
    DetectionType.CREDIT_CARD: DetectionProfile(85, RiskLevel.HIGH),
    DetectionType.CEP: DetectionProfile(70, RiskLevel.MEDIUM),
    DetectionType.ADDRESS: DetectionProfile(75, RiskLevel.MEDIUM),
    DetectionType.BANK_AGENCY: DetectionProfile(80, RiskLevel.HIGH),
    DetectionType.BANK_ACCOUNT: DetectionProfile(80, RiskLevel.HIGH),
    DetectionType.PIX: DetectionProfile(85, RiskLevel.HIGH),
}

# (start, end) spans of validated matches for one pass
_Span = tuple[int, int]


def _digit_count(text: str) -> int:
    return len(validators.only_digits(text))


class BrazilianPIIRegexAdapter:
    """Regex and checksum based PII detector implementing PIIPort.

    Detects:
    - CPF, RG, CNH, Título de Eleitor: checksum validated
    - EMAIL, PHONE, CEP, CREDIT_CARD (Luhn)
    - ADDRESS: street-type prefix with a house number
    - BANK_AGENCY / BANK_ACCOUNT: labelled numbers with a bounded payload
    - PIX: random keys and values introduced by a "chave pix" label

    Each entity type runs as an independent pass and the results are
    concatenated; nothing is shared between passes.

    Always offline (requires_online() -> False).
    """

    PATTERNS: dict[DetectionType, re.Pattern[str]] = {
        DetectionType.CPF: re.compile(r"\b\d{3}\.?\d{3}\.?\d{3}-?\d{2}\b"),
        DetectionType.RG: re.compile(r"\b\d{1,2}\.?\d{3}\.?\d{3}-?\d{0,2}\b"),
        DetectionType.CNH: re.compile(r"\b\d{11}\b"),
        DetectionType.TITLE: re.compile(r"\b\d{4}\s?\d{4}\s?\d{4}\b"),
        DetectionType.EMAIL: re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        DetectionType.PHONE: re.compile(r"(?<!\d)(?:\(?\d{2}\)?\s?)?\d{4,5}-?\d{4}(?!\d)"),
        DetectionType.CREDIT_CARD: re.compile(r"\b\d{4}[ -]?\d{4}[ -]?\d{4}[ -]?\d{4}\b"),
        DetectionType.CEP: re.compile(r"\b\d{5}-?\d{3}\b"),
        DetectionType.ADDRESS: re.compile(
            r"\b(?:Rua|Avenida|Av\.?|Rodovia|Rod\.|Estrada|Praça|Alameda|Travessa|R\.)"
            r"[^\S\n]+[\w ,.'-]+?,[^\S\n]*\d+[A-Za-z]?"
            r"(?:[^\S\n]*-?[^\S\n]*\d+)?[A-Za-z]?\b",
            re.IGNORECASE,
        ),
        DetectionType.BANK_AGENCY: re.compile(
            r"\b(?:ag[êe]ncia|ag\.?)\s*:?\s*(?P<number>\d{3,8})(?:-?(?P<check>\d|[xX]))?\b",
            re.IGNORECASE,
        ),
        DetectionType.BANK_ACCOUNT: re.compile(
            r"\b(?:conta|cc)\s*:?\s*(?P<number>\d{4,12})(?P<check>-?\d{1,2})?\b",
            re.IGNORECASE,
        ),
        DetectionType.PIX: re.compile(r"\b[A-Za-z0-9]{26,35}\b"),
    }

    PIX_LABEL = re.compile(r"chave\s+pix\s*:?\s*(?P<key>[^\s,;]*[^\s,;.:!?])", re.IGNORECASE)

    AGENCY_DIGITS = (4, 5)
    ACCOUNT_DIGITS = (4, 10)
    ADDRESS_MIN_LENGTH = 10

    def __init__(self, *, enabled: list[str] | None = None) -> None:
        """Initialize the detector.

        Args:
            enabled: Entity type names to run (default: all). Unknown names
                are ignored.
        """
        self.enabled = self._resolve_types(enabled) if enabled else list(DetectionType)
        self._passes: dict[DetectionType, Callable[[str], Iterator[_Span]]] = {
            DetectionType.CPF: self._checked(DetectionType.CPF, validators.validate_cpf),
            DetectionType.RG: self._checked(DetectionType.RG, validators.validate_rg),
            DetectionType.CNH: self._checked(DetectionType.CNH, validators.validate_cnh),
            DetectionType.TITLE: self._checked(DetectionType.TITLE, validators.validate_title),
            DetectionType.EMAIL: self._checked(DetectionType.EMAIL, validators.validate_email),
            DetectionType.PHONE: self._checked(
                DetectionType.PHONE, lambda text: 10 <= _digit_count(text) <= 11
            ),
            DetectionType.CREDIT_CARD: self._checked(
                DetectionType.CREDIT_CARD, validators.validate_credit_card
            ),
            DetectionType.CEP: self._checked(DetectionType.CEP, validators.validate_cep),
            DetectionType.ADDRESS: self._checked(
                DetectionType.ADDRESS, lambda text: len(text) > self.ADDRESS_MIN_LENGTH
            ),
            DetectionType.BANK_AGENCY: self._labelled(
                DetectionType.BANK_AGENCY, self.AGENCY_DIGITS
            ),
            DetectionType.BANK_ACCOUNT: self._labelled(
                DetectionType.BANK_ACCOUNT, self.ACCOUNT_DIGITS
            ),
            DetectionType.PIX: self._pix_spans,
        }

    def analyze_text(
        self,
        text: str,
        *,
        entities: list[str] | None = None,
    ) -> list[Detection]:
        """Analyze text for PII entities.

        Args:
            text: Text to analyze
            entities: Entity types to detect (None = all enabled types)

        Returns:
            Detections in discovery order per type, types concatenated
        """
        if entities is None:
            targets = self.enabled
        else:
            requested = set(self._resolve_types(entities))
            targets = [entity for entity in self.enabled if entity in requested]

        detections: list[Detection] = []
        for entity_type in targets:
            detections.extend(self._run_pass(entity_type, text))

        logger.info("Detected %d sensitive data items", len(detections))
        return detections

    def get_supported_entities(self) -> list[str]:
        """Get list of supported entity types.

        Returns:
            List of entity type names
        """
        return [entity.value for entity in self.enabled]

    def requires_online(self) -> bool:
        """Return True when adapter needs network access.

        Always returns False for regex-based detection.
        """
        return False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run_pass(self, entity_type: DetectionType, text: str) -> list[Detection]:
        profile = DETECTION_PROFILES[entity_type]
        return [
            Detection(
                type=entity_type,
                risk_level=profile.risk_level,
                confidence=profile.confidence,
                text=text[start:end],
                start_index=start,
                end_index=end,
            )
            for start, end in self._passes[entity_type](text)
        ]

    def _checked(
        self,
        entity_type: DetectionType,
        validator: Callable[[str], bool],
    ) -> Callable[[str], Iterator[_Span]]:
        pattern = self.PATTERNS[entity_type]

        def spans(text: str) -> Iterator[_Span]:
            for match in pattern.finditer(text):
                if validator(match.group(0)):
                    yield match.start(), match.end()

        return spans

    def _labelled(
        self,
        entity_type: DetectionType,
        digits: tuple[int, int],
    ) -> Callable[[str], Iterator[_Span]]:
        """Labelled numbers: the payload length is checked, not the whole match."""
        pattern = self.PATTERNS[entity_type]
        low, high = digits

        def spans(text: str) -> Iterator[_Span]:
            for match in pattern.finditer(text):
                if low <= len(match.group("number")) <= high:
                    yield match.start(), match.end()

        return spans

    def _pix_spans(self, text: str) -> Iterator[_Span]:
        """Bare random keys plus labelled keys; the span covers the key only."""
        seen: set[_Span] = set()

        for match in self.PATTERNS[DetectionType.PIX].finditer(text):
            span = match.span()
            if validators.validate_pix(match.group(0)) and span not in seen:
                seen.add(span)
                yield span

        for match in self.PIX_LABEL.finditer(text):
            span = match.span("key")
            if validators.validate_pix(match.group("key")) and span not in seen:
                seen.add(span)
                yield span

    @staticmethod
    def _resolve_types(names: list[str]) -> list[DetectionType]:
        resolved: list[DetectionType] = []
        for name in names:
            try:
                entity = DetectionType(str(name).upper())
            except ValueError:
                continue
            if entity not in resolved:
                resolved.append(entity)
        return resolved
