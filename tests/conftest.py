"""Pytest configuration and fixtures."""

import gc
import io
import shutil
import tempfile
import time
from collections.abc import Callable, Generator
from pathlib import Path

import fitz  # type: ignore[import]
import pytest
from PIL import Image

from tarja.config import Settings


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    try:
        yield Path(tmpdir)
    finally:
        # Force garbage collection to release any file handles
        gc.collect()
        # Small delay to allow OS to release file locks
        time.sleep(0.1)
        shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def override_settings(temp_dir: Path) -> Generator[Settings, None, None]:
    """Provide isolated Tarja settings scoped to tests."""

    import tarja.config as config_module

    original_settings = getattr(config_module, "_settings", None)

    data_dir = temp_dir / "appdata"
    config_dir = temp_dir / "appconfig"
    data_dir.mkdir(parents=True, exist_ok=True)
    config_dir.mkdir(parents=True, exist_ok=True)

    settings = config_module.Settings(
        data_dir=data_dir,
        config_dir=config_dir,
        audit_enabled=True,
    )

    config_module._settings = settings

    try:
        yield settings
    finally:
        config_module._settings = original_settings


def build_pdf(pages: list[list[str]]) -> bytes:
    """Build a PDF with one text line per entry, 20pt apart, starting at y=100."""
    doc = fitz.open()
    try:
        for lines in pages:
            page = doc.new_page()
            y = 100
            for line in lines:
                page.insert_text((72, y), line, fontsize=12)
                y += 20
        return doc.tobytes()
    finally:
        doc.close()


def build_image(
    size: tuple[int, int] = (200, 100),
    *,
    image_format: str = "PNG",
    color: tuple[int, int, int] = (255, 255, 255),
) -> bytes:
    image = Image.new("RGB", size, color)
    buffer = io.BytesIO()
    image.save(buffer, format=image_format)
    return buffer.getvalue()


@pytest.fixture
def make_pdf() -> Callable[[list[list[str]]], bytes]:
    return build_pdf


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    return build_image
