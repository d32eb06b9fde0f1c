"""Ledger port interface for the chain-of-custody trail."""

from typing import Any, Protocol

from pydantic import BaseModel, Field


class AuditRecord(BaseModel):
    """Normalized view of an audit ledger entry."""

    timestamp: str = Field(..., description="ISO-8601 timestamp")
    operation: str = Field(..., description="Operation name recorded in the ledger")
    inputs: list[str] = Field(default_factory=list, description="Document ids or storage keys read")
    outputs: list[str] = Field(
        default_factory=list, description="Artifact keys or content hashes produced"
    )
    args: dict[str, Any] = Field(default_factory=dict, description="Counts and parameters")
    versions: dict[str, str] | None = Field(default=None, description="Tool versions (optional)")


class LedgerPort(Protocol):
    """Port interface for audit ledger operations.

    Adapters implementing this port must provide:
    - Append-only audit logging
    - Hash chain verification
    - Tamper-evident storage

    Entries never carry raw PII; only ids, types, counts and hashes.

    Side effects: Writes to audit ledger (offline).
    """

    def log(
        self,
        operation: str,
        inputs: list[str],
        outputs: list[str],
        args: dict[str, Any],
    ) -> Any:
        """Log an operation to the audit ledger.

        Args:
            operation: Operation name (e.g., "detection_run", "apply_redaction")
            inputs: Document ids or storage keys
            outputs: Output keys or hashes
            args: Additional arguments/metadata
        """
        ...

    def verify(self) -> tuple[bool, str | None]:
        """Verify audit ledger integrity.

        Returns:
            (is_valid, error_message)
        """
        ...

    def read_all(self) -> list[AuditRecord]:
        """Read all audit entries."""
        ...
