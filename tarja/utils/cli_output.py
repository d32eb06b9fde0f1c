"""Schema-stamped JSON output for CLI commands."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from tarja import __version__


def json_response(
    schema_id: str,
    schema_version: int,
    **data: Any,
) -> str:
    """Wrap ``data`` with schema metadata for machine-readable CLI output.

    Example:
        >>> json_response("detections", 1, document_id="doc-1", detections=[])
        {
          "schema_id": "detections",
          "schema_version": 1,
          "producer": "tarja-0.1.0",
          "produced_at": "2026-01-01T10:30:00+00:00",
          "document_id": "doc-1",
          "detections": []
        }
    """
    wrapped = {
        "schema_id": schema_id,
        "schema_version": schema_version,
        "producer": f"tarja-{__version__}",
        "produced_at": datetime.now(UTC).isoformat(),
        **data,
    }
    return json.dumps(wrapped, indent=2, ensure_ascii=False, default=str)


def mask_text(text: str, *, visible: int = 2) -> str:
    """Mask all but the last ``visible`` alphanumeric characters of ``text``."""
    total = sum(1 for char in text if char.isalnum())
    keep_from = total - visible
    seen = 0
    masked: list[str] = []
    for char in text:
        if char.isalnum():
            masked.append(char if seen >= keep_from else "*")
            seen += 1
        else:
            masked.append(char)
    return "".join(masked)
