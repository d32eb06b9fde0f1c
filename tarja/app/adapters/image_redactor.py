"""Raster image redaction with Pillow."""

from __future__ import annotations

import io
import logging
import math
from collections.abc import Sequence
from typing import Literal

from PIL import Image, ImageDraw, UnidentifiedImageError

from tarja.app.ports.pii import BoundingBox, Detection
from tarja.app.ports.redaction import (
    InvalidDocumentError,
    RenderedDocument,
    UnsupportedDocumentTypeError,
)

logger = logging.getLogger(__name__)

MissingBoxPolicy = Literal["skip", "estimate"]

_EXTENSIONS = {"JPEG": "jpg", "PNG": "png", "TIFF": "tif"}


def estimate_box(detection: Detection) -> BoundingBox:
    """Heuristic band derived from the text offset.

    Places a 200x20 box at x=50 and ``y = (start_index % 1000) * 0.5``. It has
    no relation to where the text is actually drawn and is only used when the
    ``estimate`` policy is selected explicitly.
    """
    return BoundingBox(
        x=50.0,
        y=(detection.start_index % 1000) * 0.5,
        width=200.0,
        height=20.0,
    )


class ImageRedactor:
    """Paint opaque black rectangles over approved detections in raster images.

    The image is decoded, painted and re-encoded in its own format with fixed
    encoder parameters and no EXIF, so identical inputs give identical bytes.
    """

    def __init__(self, *, missing_box_policy: MissingBoxPolicy = "skip") -> None:
        self.missing_box_policy = missing_box_policy

    def redact(self, source: bytes, detections: Sequence[Detection]) -> RenderedDocument:
        image, image_format = self._open(source)
        applied = 0
        skipped = 0
        estimated = 0

        try:
            image = self._normalize_mode(image, image_format)
            fill = self._black(image.mode)
            draw = ImageDraw.Draw(image)

            for detection in detections:
                box = detection.bounding_box
                if box is None or not box.is_well_formed():
                    if self.missing_box_policy != "estimate":
                        skipped += 1
                        continue
                    box = estimate_box(detection)
                    estimated += 1

                clamped = self._clamp(box, image.width, image.height)
                if clamped is None:
                    skipped += 1
                    continue

                draw.rectangle(clamped, fill=fill)
                applied += 1

            data = self._encode(image, image_format)
        finally:
            image.close()

        if skipped:
            logger.warning("Skipped %d image redaction(s) without a usable bounding box", skipped)
        if estimated:
            logger.warning(
                "Painted %d image redaction(s) at estimated positions; review the output",
                estimated,
            )

        return RenderedDocument(
            data=data,
            extension=_EXTENSIONS.get(image_format, image_format.lower()),
            mime_type=Image.MIME.get(image_format, f"image/{image_format.lower()}"),
            applied=applied,
            skipped=skipped,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _open(source: bytes) -> tuple[Image.Image, str]:
        try:
            image = Image.open(io.BytesIO(source))
            image.load()
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise InvalidDocumentError(f"Unreadable image: {exc}") from exc

        image_format = image.format or "PNG"
        if getattr(image, "n_frames", 1) > 1:
            image.close()
            raise UnsupportedDocumentTypeError(
                f"Multi-frame {image_format} images cannot be redacted safely"
            )
        return image, image_format

    @staticmethod
    def _normalize_mode(image: Image.Image, image_format: str) -> Image.Image:
        if image_format == "JPEG":
            target = "L" if image.mode == "L" else "RGB"
        elif image.mode in {"RGB", "RGBA", "L"}:
            target = image.mode
        elif "A" in image.mode or "transparency" in image.info:
            target = "RGBA"
        else:
            target = "RGB"

        if image.mode == target:
            return image
        converted = image.convert(target)
        image.close()
        return converted

    @staticmethod
    def _black(mode: str) -> int | tuple[int, ...]:
        if mode == "L":
            return 0
        if mode == "RGBA":
            return (0, 0, 0, 255)
        return (0, 0, 0)

    @staticmethod
    def _clamp(box: BoundingBox, width: int, height: int) -> tuple[int, int, int, int] | None:
        """Return inclusive pixel corners covering ``box`` inside the image."""
        x0 = max(0, math.floor(box.x))
        y0 = max(0, math.floor(box.y))
        x1 = min(width, math.ceil(box.x + box.width))
        y1 = min(height, math.ceil(box.y + box.height))
        if x1 <= x0 or y1 <= y0:
            return None
        return x0, y0, x1 - 1, y1 - 1

    @staticmethod
    def _encode(image: Image.Image, image_format: str) -> bytes:
        image.info.pop("exif", None)
        buffer = io.BytesIO()
        if image_format == "JPEG":
            image.save(buffer, format="JPEG", quality=95, optimize=False)
        elif image_format == "PNG":
            image.save(buffer, format="PNG", optimize=False)
        else:
            image.save(buffer, format=image_format)
        return buffer.getvalue()
