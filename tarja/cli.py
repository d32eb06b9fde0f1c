"""Tarja CLI application with Typer."""

import logging
import mimetypes
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, NoReturn

import click
import typer

from tarja import __version__
from tarja.app.ports import (
    BoundingBox,
    DocumentNotFoundError,
    DuplicateDocumentError,
    InvalidDocumentError,
    NoApprovedDetectionsError,
    ReviewConflictError,
)
from tarja.app.redaction_service import ReviewAction
from tarja.bootstrap import bootstrap_application
from tarja.config import get_settings, set_settings
from tarja.utils.cli_output import json_response, mask_text
from tarja.utils.hashing import compute_sha256

if TYPE_CHECKING:
    from tarja.app.ports import Detection
    from tarja.bootstrap import ApplicationContainer

app = typer.Typer(
    name="tarja",
    help="Detect and irreversibly redact Brazilian personal data in PDFs and images",
    add_completion=True,
    no_args_is_help=True,
)
audit_app = typer.Typer(help="Audit ledger management")
app.add_typer(audit_app, name="audit")

_REVIEW_ACTIONS = {
    "approve": ReviewAction.APPROVED,
    "reject": ReviewAction.REJECTED,
    "modify": ReviewAction.MODIFIED,
}

# Errors reported to the user as a message and exit code 1.
_USER_ERRORS = (
    DocumentNotFoundError,
    DuplicateDocumentError,
    FileNotFoundError,
    InvalidDocumentError,
    NoApprovedDetectionsError,
    ReviewConflictError,
    ValueError,
    RuntimeError,
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"Tarja version {__version__}")
        raise typer.Exit()


def _fail(exc: BaseException) -> NoReturn:
    message = exc.args[0] if isinstance(exc, KeyError) and exc.args else str(exc)
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def _bootstrap() -> "ApplicationContainer":
    try:
        return bootstrap_application()
    except OSError as exc:
        _fail(exc)


def _parse_comma_list(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    items = [item.strip().upper() for item in raw.split(",") if item.strip()]
    return items or None


def _guess_mime_type(path: Path, explicit: str | None) -> str:
    if explicit:
        return explicit
    guessed, _ = mimetypes.guess_type(path.name)
    if not guessed:
        raise typer.BadParameter(f"Cannot infer the mime type of {path.name}; pass --mime-type")
    return guessed


def _parse_box(raw: str) -> BoundingBox:
    parts = [part.strip() for part in raw.split(",")]
    if len(parts) != 4:
        raise typer.BadParameter("Bounding box must be 'x,y,width,height'")
    try:
        x, y, width, height = (float(part) for part in parts)
    except ValueError as exc:
        raise typer.BadParameter("Bounding box values must be numbers") from exc
    return BoundingBox(x=x, y=y, width=width, height=height)


def _detection_payload(detection: "Detection", *, show_text: bool) -> dict:
    payload = detection.model_dump(mode="json")
    if not show_text:
        payload["text"] = mask_text(detection.text)
    return payload


def _print_detections(detections: list["Detection"], *, show_text: bool) -> None:
    if not detections:
        typer.secho("No sensitive data found", fg=typer.colors.GREEN)
        return

    for detection in detections:
        text = detection.text if show_text else mask_text(detection.text)
        if detection.is_approved:
            state = "approved"
        elif detection.is_rejected:
            state = "rejected"
        else:
            state = "pending"
        located = "box" if detection.bounding_box is not None else "no box"
        typer.echo(
            f"{detection.id or '-':<16}  {detection.type.value:<12}  "
            f"{detection.confidence:>3}  {detection.risk_level.value:<6}  "
            f"p{detection.page_number or '?':<3}  "
            f"[{detection.start_index}:{detection.end_index}]  {located:<6}  {state:<8}  {text}"
        )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Override data directory"),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Override log level (DEBUG, INFO, WARNING, ...)"),
    ] = None,
) -> None:
    """Tarja - Brazilian PII detection and redaction."""
    settings = get_settings()
    if data_dir:
        settings.data_dir = data_dir
    if log_level:
        settings.log_level = log_level.upper()
    set_settings(settings)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("scan")
def scan(
    input_path: Annotated[
        Path,
        typer.Argument(
            help="PDF or image to scan", exists=True, dir_okay=False, resolve_path=True
        ),
    ],
    mime_type: Annotated[
        str | None,
        typer.Option("--mime-type", help="Override the detected mime type"),
    ] = None,
    entities: Annotated[
        str | None,
        typer.Option("--entities", help="Comma-separated entity types (e.g. CPF,EMAIL,PIX)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
    show_text: Annotated[
        bool,
        typer.Option("--show-text", help="Print matched text instead of a masked form"),
    ] = False,
) -> None:
    """Detect personal data in a file without storing anything."""

    container = _bootstrap()
    resolved_type = _guess_mime_type(input_path, mime_type)

    try:
        result = container.redaction_service.scan(
            input_path.read_bytes(),
            resolved_type,
            entities=_parse_comma_list(entities),
        )
    except _USER_ERRORS as exc:
        _fail(exc)

    if json_output:
        typer.echo(
            json_response(
                "scan_result",
                1,
                source=str(input_path),
                page_count=result.page_count,
                ocr_pages=result.ocr_pages,
                detections=[_detection_payload(d, show_text=show_text) for d in result.detections],
            )
        )
        return

    _print_detections(result.detections, show_text=show_text)
    typer.echo(f"\n{len(result.detections)} detection(s) across {result.page_count} page(s)")


@app.command("analyze")
def analyze(
    input_path: Annotated[
        Path,
        typer.Argument(
            help="PDF or image to register", exists=True, dir_okay=False, resolve_path=True
        ),
    ],
    purpose: Annotated[
        str,
        typer.Option("--purpose", help="Why the document is processed"),
    ],
    legal_basis: Annotated[
        str,
        typer.Option("--legal-basis", help="Legal basis for processing (e.g. LGPD art. 7, II)"),
    ],
    document_id: Annotated[
        str | None,
        typer.Option("--document-id", "-d", help="Identifier (defaults to a content hash prefix)"),
    ] = None,
    retention_days: Annotated[
        int | None,
        typer.Option("--retention-days", min=1, help="Days to keep the document"),
    ] = None,
    mime_type: Annotated[
        str | None,
        typer.Option("--mime-type", help="Override the detected mime type"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Register a document and store its detections for review."""

    container = _bootstrap()
    service = container.redaction_service
    resolved_type = _guess_mime_type(input_path, mime_type)
    data = input_path.read_bytes()
    resolved_id = document_id or compute_sha256(data)[:16]

    try:
        service.register(
            data,
            document_id=resolved_id,
            purpose=purpose,
            legal_basis=legal_basis,
            retention_days=retention_days,
            mime_type=resolved_type,
            original_filename=input_path.name,
        )
        result = service.analyze(resolved_id)
    except _USER_ERRORS as exc:
        _fail(exc)

    if json_output:
        typer.echo(
            json_response(
                "analysis_result",
                1,
                document_id=resolved_id,
                page_count=result.page_count,
                ocr_pages=result.ocr_pages,
                detection_count=len(result.detections),
                located_count=result.located,
                stages=[
                    {
                        "name": stage.name,
                        "status": stage.status,
                        "detail": stage.detail,
                        "duration_seconds": stage.duration_seconds,
                        "metrics": stage.metrics,
                    }
                    for stage in result.stages
                ],
            )
        )
        return

    typer.secho(f"✅ Analyzed {input_path.name} as {resolved_id}", fg=typer.colors.GREEN)
    typer.echo(f"   Pages: {result.page_count} (OCR: {len(result.ocr_pages)})")
    typer.echo(f"   Detections: {len(result.detections)} ({result.located} with bounding boxes)")
    unlocated = len(result.detections) - result.located
    if unlocated:
        typer.secho(
            f"   {unlocated} detection(s) have no bounding box and will be skipped on apply "
            "unless corrected with 'tarja review ... modify'",
            fg=typer.colors.YELLOW,
        )


@app.command("detections")
def detections(
    document_id: Annotated[str, typer.Argument(help="Document identifier")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
    show_text: Annotated[
        bool,
        typer.Option("--show-text", help="Print matched text instead of a masked form"),
    ] = False,
) -> None:
    """List stored detections of a document."""

    container = _bootstrap()
    try:
        items = container.redaction_service.list_detections(document_id)
    except _USER_ERRORS as exc:
        _fail(exc)

    if json_output:
        typer.echo(
            json_response(
                "detections",
                1,
                document_id=document_id,
                detections=[_detection_payload(d, show_text=show_text) for d in items],
            )
        )
        return

    _print_detections(items, show_text=show_text)


@app.command("review")
def review(
    document_id: Annotated[str, typer.Argument(help="Document identifier")],
    detection_id: Annotated[str, typer.Argument(help="Detection identifier")],
    action: Annotated[
        str,
        typer.Argument(
            help="approve, reject or modify",
            click_type=click.Choice(sorted(_REVIEW_ACTIONS), case_sensitive=False),
        ),
    ],
    box: Annotated[
        str | None,
        typer.Option("--box", help="Corrected bounding box 'x,y,width,height' (modify)"),
    ] = None,
    page: Annotated[
        int | None,
        typer.Option("--page", min=1, help="Corrected page number (modify)"),
    ] = None,
    reviewer: Annotated[
        str | None,
        typer.Option("--reviewer", help="Reviewer name recorded in the audit ledger"),
    ] = None,
    comment: Annotated[
        str | None,
        typer.Option("--comment", help="Free-text review note"),
    ] = None,
) -> None:
    """Approve, reject or correct a single detection."""

    review_action = _REVIEW_ACTIONS[action.lower()]

    bounding_box = _parse_box(box) if box else None
    container = _bootstrap()

    try:
        updated = container.redaction_service.review(
            document_id,
            detection_id,
            review_action,
            bounding_box=bounding_box,
            page_number=page,
            reviewer=reviewer,
            comment=comment,
        )
    except _USER_ERRORS as exc:
        _fail(exc)

    typer.secho(
        f"✅ {updated.type.value} {detection_id}: {review_action.value.lower()}",
        fg=typer.colors.GREEN,
    )


@app.command("apply")
def apply(
    document_id: Annotated[str, typer.Argument(help="Document identifier")],
    output_dir: Annotated[
        str | None,
        typer.Option("--output-dir", help="Storage prefix for the redacted artifact"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Apply even if the stored original changed since upload"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Render approved detections into a redacted copy."""

    container = _bootstrap()
    try:
        result = container.redaction_service.apply(document_id, output_dir=output_dir, force=force)
    except _USER_ERRORS as exc:
        _fail(exc)

    if json_output:
        typer.echo(json_response("redaction_result", 1, **result.model_dump(mode="json")))
        return

    typer.secho(f"✅ Redacted {document_id}: {result.output_path}", fg=typer.colors.GREEN)
    typer.echo(f"   SHA-256: {result.content_hash}")
    typer.echo(f"   Applied: {result.applied}")
    if result.skipped:
        typer.secho(
            f"   Skipped: {result.skipped} (no safe placement; these were NOT redacted)",
            fg=typer.colors.YELLOW,
        )


@app.command("purge")
def purge(
    mime_type: Annotated[
        str | None,
        typer.Option("--mime-type", help="Only purge documents of this type"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Delete documents older than the retention period."""

    container = _bootstrap()
    result = container.retention_service.purge_expired(mime_type=mime_type)

    if json_output:
        typer.echo(json_response("retention_result", 1, **result.model_dump(mode="json")))
    else:
        typer.echo(f"Expired: {result.expired}  Deleted: {len(result.deleted)}")
        for document_id in result.failed:
            typer.secho(f"   Failed: {document_id}", fg=typer.colors.RED)

    if result.failed:
        raise typer.Exit(code=1)


@audit_app.command("show")
def audit_show(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
    tail: Annotated[
        int | None,
        typer.Option("--tail", "-n", help="Show last N entries"),
    ] = None,
    document_id: Annotated[
        str | None,
        typer.Option("--document", help="Only entries concerning this document"),
    ] = None,
) -> None:
    """Show audit ledger entries."""

    container = _bootstrap()

    if not container.audit_service.is_enabled():
        typer.secho("No audit ledger found", fg=typer.colors.YELLOW)
        return

    if document_id:
        entries = container.audit_service.trail(document_id)
        if tail:
            entries = entries[-tail:]
    else:
        entries = container.audit_service.get_entries(tail=tail)

    if not entries:
        typer.secho("No audit ledger entries found", fg=typer.colors.YELLOW)
        return

    if json_output:
        typer.echo(
            json_response(
                "audit_log",
                1,
                total_entries=len(entries),
                entries=[e.model_dump(mode="json") for e in entries],
            )
        )
    else:
        for entry in entries:
            typer.echo(f"{entry.timestamp} | {entry.operation} | {entry.inputs}")


@audit_app.command("verify")
def audit_verify() -> None:
    """Verify audit ledger integrity."""
    container = _bootstrap()

    if not container.audit_service.is_enabled():
        typer.secho("No audit ledger found", fg=typer.colors.YELLOW)
        return

    valid, error = container.audit_service.verify()

    if valid:
        typer.secho("Audit ledger is valid", fg=typer.colors.GREEN)
        return

    message = error or "Audit ledger integrity check failed"
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
