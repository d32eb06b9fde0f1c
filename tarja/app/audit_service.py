"""Audit ledger read and verification services."""

from __future__ import annotations

from dataclasses import dataclass

from tarja.app.ports import AuditRecord, LedgerPort


@dataclass(slots=True)
class AuditService:
    """Expose read/verify operations over the chain-of-custody ledger."""

    ledger: LedgerPort | None

    def is_enabled(self) -> bool:
        return self.ledger is not None

    def get_entries(self, *, tail: int | None = None) -> list[AuditRecord]:
        """Return ledger entries, oldest first (empty list when disabled)."""
        if self.ledger is None:
            return []
        entries = self.ledger.read_all()
        if tail is not None:
            entries = entries[-tail:] if tail > 0 else []
        return entries

    def trail(self, document_id: str) -> list[AuditRecord]:
        """Entries that name ``document_id`` among their inputs."""
        return [entry for entry in self.get_entries() if document_id in entry.inputs]

    def verify(self) -> tuple[bool, str | None]:
        """Verify ledger integrity, treating a disabled ledger as valid."""
        if self.ledger is None:
            return True, None
        return self.ledger.verify()
