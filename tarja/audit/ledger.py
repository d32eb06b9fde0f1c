"""Append-only audit ledger with hash chaining and HMAC seals for chain-of-custody.

Entries reference documents by id and artifacts by storage key or content hash;
they never contain detected text.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import os
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from tarja import __version__
from tarja.utils.crypto import load_or_create_hmac_key
from tarja.utils.hashing import compute_sha256

GENESIS_HASH = "0" * 64
GENESIS_SIGNATURE = "0" * 64

# The only operation names accepted by AuditLedger.log.
OPERATIONS = (
    "document_register",
    "detection_run",
    "review_detection",
    "apply_redaction",
    "retention_purge",
)


class AuditEntry(BaseModel):
    """Single audit ledger entry.

    Entries are linked in a hash chain (``previous_hash``) and each one is
    sealed with an HMAC over its hash and the previous signature.
    """

    timestamp: str = Field(..., description="ISO 8601 timestamp in UTC")
    operation: str = Field(..., description="Operation name (e.g., detection_run, apply_redaction)")
    inputs: list[str] = Field(default_factory=list, description="Document ids or storage keys read")
    outputs: list[str] = Field(
        default_factory=list, description="Artifact keys or SHA-256 hashes produced"
    )
    args: dict[str, Any] = Field(
        default_factory=dict, description="Counts, entity types and other non-PII parameters"
    )
    versions: dict[str, str] = Field(default_factory=dict, description="Tool versions")
    previous_hash: str = Field(
        default=GENESIS_HASH,
        description="SHA-256 hash of previous entry (chain link). Genesis entry has 64 zeros.",
    )
    sequence: int | None = Field(default=None, ge=1, description="Sequence number starting at 1.")
    entry_hash: str | None = Field(
        default=None,
        description="SHA-256 of the entry content including previous_hash",
    )
    signature: str | None = Field(default=None, description="HMAC seal of the entry.")

    def compute_hash(self) -> str:
        """SHA-256 of the canonical JSON form, excluding ``entry_hash`` and ``signature``."""
        data = self.model_dump(
            mode="json",
            exclude={"entry_hash", "signature"},
            exclude_none=True,
        )
        content = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return compute_sha256(content.encode("utf-8"))

    def model_post_init(self, __context: Any) -> None:
        if self.entry_hash is None:
            self.entry_hash = self.compute_hash()


class AuditLedger:
    """Append-only audit ledger recording every step a document goes through.

    Stored as JSONL next to a ``.meta`` file that seals the chain tip
    (sequence and last hash) with an HMAC, so truncating the ledger is
    detected as well as editing it.
    """

    def __init__(self, ledger_path: Path, *, hmac_key: bytes | None = None) -> None:
        """Initialize audit ledger.

        Args:
            ledger_path: Path to JSONL ledger file
            hmac_key: Key sealing entries and metadata (defaults to an on-disk secret)
        """
        self.ledger_path = ledger_path
        self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
        self._metadata_path = ledger_path.with_suffix(".meta")
        self._hmac_key = (
            hmac_key
            if hmac_key is not None
            else load_or_create_hmac_key(ledger_path.with_suffix(".key"), length=32)
        )
        self._lock = threading.Lock()

        self._last_hash = GENESIS_HASH
        self._last_sequence = 0
        self._last_signature = GENESIS_SIGNATURE
        self._restore_tip()

    # ---------------------------------------------------------------------#
    # Internal helpers
    # ---------------------------------------------------------------------#

    def _restore_tip(self) -> None:
        """Resume the chain from the last entry on disk."""
        entries = self._read_entries()
        if entries:
            last_entry = entries[-1]
            self._last_hash = last_entry.entry_hash or GENESIS_HASH
            self._last_sequence = last_entry.sequence or len(entries)
            self._last_signature = last_entry.signature or GENESIS_SIGNATURE

        try:
            metadata = self._load_metadata()
        except ValueError:
            # Left untouched so verify() reports it.
            return
        if metadata is None:
            last_hash = None if self._last_sequence == 0 else self._last_hash
            self._write_metadata(self._last_sequence, last_hash)

    def _read_entries(self) -> list[AuditEntry]:
        if not self.ledger_path.exists():
            return []

        entries: list[AuditEntry] = []
        with open(self.ledger_path, encoding="utf-8") as fh:
            for line_num, raw_line in enumerate(fh, 1):
                line = raw_line.strip()
                if not line:
                    continue
                try:
                    entries.append(AuditEntry.model_validate_json(line))
                except ValidationError as exc:
                    raise ValueError(
                        f"Invalid entry at line {line_num} in {self.ledger_path}: {exc}"
                    ) from exc
        return entries

    def _compute_signature(self, entry: AuditEntry, previous_signature: str) -> str:
        payload = "|".join(
            [
                str(entry.sequence or 0),
                entry.previous_hash,
                entry.entry_hash or "",
                previous_signature,
            ]
        ).encode("utf-8")
        return hmac.new(self._hmac_key, payload, hashlib.sha256).hexdigest()

    def _compute_metadata_hmac(self, last_sequence: int, last_hash: str | None) -> str:
        payload = f"{last_sequence}:{last_hash or GENESIS_HASH}".encode("utf-8")
        return hmac.new(self._hmac_key, payload, hashlib.sha256).hexdigest()

    def _write_metadata(self, last_sequence: int, last_hash: str | None) -> None:
        payload = {
            "version": 1,
            "last_sequence": last_sequence,
            "last_hash": last_hash,
            "hmac": self._compute_metadata_hmac(last_sequence, last_hash),
        }
        data = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")

        fd = os.open(self._metadata_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            os.write(fd, data)
            os.fsync(fd)
        finally:
            os.close(fd)

    def _load_metadata(self) -> dict[str, Any] | None:
        """Load ledger metadata, raising ValueError when its seal does not match."""
        try:
            raw = self._metadata_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError("Audit metadata is not valid JSON") from exc

        expected_hmac = self._compute_metadata_hmac(
            int(data.get("last_sequence", 0)), data.get("last_hash")
        )
        actual_hmac = data.get("hmac")
        if not isinstance(actual_hmac, str) or not hmac.compare_digest(expected_hmac, actual_hmac):
            raise ValueError("Audit metadata HMAC mismatch")
        return data

    # ---------------------------------------------------------------------#
    # Public API
    # ---------------------------------------------------------------------#

    def log(
        self,
        operation: str,
        inputs: list[str] | None = None,
        outputs: list[str] | None = None,
        args: dict[str, Any] | None = None,
        versions: dict[str, str] | None = None,
    ) -> AuditEntry:
        """Append a sealed entry and advance the chain tip.

        Args:
            operation: One of :data:`OPERATIONS`
            inputs: Document ids or storage keys
            outputs: Artifact keys or content hashes
            args: Non-PII parameters such as counts and entity types
            versions: Tool versions (defaults to the tarja version)
        """
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown audit operation: {operation!r}")

        versions = dict(versions or {})
        versions.setdefault("tarja", __version__)

        with self._lock:
            sequence = self._last_sequence + 1
            entry = AuditEntry(
                timestamp=datetime.now(UTC).isoformat(),
                operation=operation,
                inputs=inputs or [],
                outputs=outputs or [],
                args=args or {},
                versions=versions,
                previous_hash=self._last_hash,
                sequence=sequence,
            )
            entry.entry_hash = entry.compute_hash()
            entry.signature = self._compute_signature(entry, self._last_signature)

            with open(self.ledger_path, "a", encoding="utf-8") as fh:
                fh.write(entry.model_dump_json() + "\n")
                fh.flush()
                os.fsync(fh.fileno())

            self._last_sequence = sequence
            self._last_hash = entry.entry_hash or GENESIS_HASH
            self._last_signature = entry.signature or GENESIS_SIGNATURE
            self._write_metadata(sequence, entry.entry_hash)

        return entry

    def read_all(self) -> list[AuditEntry]:
        """Read all entries in chronological order."""
        return self._read_entries()

    def verify(self) -> tuple[bool, str | None]:
        """Verify the hash chain, signatures and metadata seal.

        Returns:
            Tuple of (is_valid, error_message). error_message is None if valid.
        """
        try:
            metadata = self._load_metadata()
        except ValueError as exc:
            return False, f"Audit metadata integrity failure: {exc}"

        try:
            entries = self._read_entries()
        except ValueError as exc:
            return False, str(exc)

        if not entries:
            if metadata and metadata.get("last_sequence", 0) > 0:
                return False, "Audit ledger appears truncated (metadata expects entries)."
            return True, None

        previous_hash = GENESIS_HASH
        previous_signature = GENESIS_SIGNATURE

        for idx, entry in enumerate(entries, 1):
            if entry.sequence != idx:
                return False, f"Entry {idx} sequence mismatch (got {entry.sequence})."
            if entry.entry_hash is None or entry.signature is None:
                return False, f"Entry {idx} is missing its hash or signature."

            expected_hash = entry.compute_hash()
            if not hmac.compare_digest(entry.entry_hash, expected_hash):
                return False, f"Entry {idx} has invalid hash; content was modified."

            if entry.previous_hash != previous_hash:
                return False, f"Entry {idx} breaks hash chain."

            expected_signature = self._compute_signature(entry, previous_signature)
            if not hmac.compare_digest(entry.signature, expected_signature):
                return False, f"Entry {idx} has invalid signature; ledger may have been tampered."

            previous_hash = entry.entry_hash
            previous_signature = entry.signature

        if metadata is None:
            return False, "Audit metadata file is missing."

        last_entry = entries[-1]
        if int(metadata.get("last_sequence", 0)) != last_entry.sequence:
            return False, "Ledger metadata sequence mismatch; possible truncation."
        if metadata.get("last_hash") != last_entry.entry_hash:
            return False, "Ledger metadata hash mismatch; possible truncation or tampering."

        return True, None

    def get_by_operation(self, operation: str) -> list[AuditEntry]:
        """Get all entries for a specific operation."""
        return [entry for entry in self.read_all() if entry.operation == operation]

    def get_by_document(self, document_id: str) -> list[AuditEntry]:
        """Get the custody trail of one document (entries listing it as input)."""
        return [entry for entry in self.read_all() if document_id in entry.inputs]
