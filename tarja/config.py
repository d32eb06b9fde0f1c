"""Configuration management with Pydantic and XDG base directory support."""

import os
import sys
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

from tarja.utils.crypto import load_or_create_fernet_key, load_or_create_hmac_key


def get_xdg_data_home() -> Path:
    """Get XDG_DATA_HOME directory, defaulting to ~/.local/share."""
    xdg_data = os.getenv("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data)
    return Path.home() / ".local" / "share"


def get_xdg_config_home() -> Path:
    """Get XDG_CONFIG_HOME directory, defaulting to ~/.config."""
    xdg_config = os.getenv("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config)
    return Path.home() / ".config"


class StorageConfig(BaseModel):
    """Resolved storage client configuration.

    Built once from :class:`Settings` and handed to the storage adapter, so
    no component reads storage parameters from ambient state.
    """

    model_config = ConfigDict(frozen=True)

    local_path: Path


class Settings(BaseSettings):
    """Tarja configuration settings.

    Precedence: CLI flag > environment variable > config file > defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="TARJA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Data directories
    data_dir: Path | None = Field(
        default=None,
        description="Override data directory (defaults to XDG_DATA_HOME/tarja)",
    )

    config_dir: Path | None = Field(
        default=None,
        description="Override config directory (defaults to XDG_CONFIG_HOME/tarja)",
    )

    log_level: str = Field(
        default="WARNING",
        description="Root log level applied by the CLI",
    )

    # Audit settings
    audit_enabled: bool = Field(
        default=True,
        description="Enable append-only audit ledger",
    )

    audit_hmac_key_path: Path | None = Field(
        default=None,
        description="Location of the audit ledger HMAC key for tamper detection",
    )

    detection_key_path: Path | None = Field(
        default=None,
        description="Location of the symmetric key used to encrypt stored detections",
    )

    # Storage settings
    storage_local_path: Path | None = Field(
        default=None,
        description="Root directory for local storage (defaults to <data_dir>/uploads)",
    )

    output_prefix: str = Field(
        default="redacted",
        description="Storage prefix under which redacted artifacts are written",
    )

    # Extraction settings
    ocr_enabled: bool = Field(
        default=True,
        description="OCR images and PDF pages without a usable text layer",
    )

    ocr_language: str = Field(
        default="por",
        description="Tesseract language code used for OCR",
    )

    ocr_dpi_scale: int = Field(
        default=2,
        ge=1,
        le=8,
        description="Rasterization zoom factor for OCR of scanned PDF pages",
    )

    ocr_min_text_threshold: int = Field(
        default=10,
        ge=0,
        description="Pages with fewer text-layer characters are OCRed",
    )

    page_split: Literal["native", "proportional"] = Field(
        default="native",
        description=(
            "Per-page text source: native PDF page text, or proportional splitting "
            "of the whole-document text"
        ),
    )

    # Redaction settings
    image_missing_box_policy: Literal["skip", "estimate"] = Field(
        default="skip",
        description=(
            "What the image renderer does with detections lacking a bounding box: "
            "skip them, or paint an estimated band derived from the text offset"
        ),
    )

    # Retention settings
    retention_days: int = Field(
        default=30,
        ge=1,
        description="Days after registration before documents are purged",
    )

    _resolved_data_dir: Path | None = PrivateAttr(default=None)
    _data_dir_warning_emitted: bool = PrivateAttr(default=False)

    def get_data_dir(self) -> Path:
        """Get the data directory, creating if necessary."""
        if self._resolved_data_dir is not None:
            return self._resolved_data_dir

        if self.data_dir:
            data_dir = self.data_dir
            data_dir.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = data_dir
            return data_dir

        primary_dir = get_xdg_data_home() / "tarja"
        try:
            primary_dir.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = primary_dir
            return primary_dir
        except PermissionError as exc:
            fallback = Path.cwd() / ".tarja-data"
            fallback.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = fallback
            if not self._data_dir_warning_emitted:
                print(
                    f"Warning: cannot create data directory at {primary_dir} ({exc}). "
                    f"Using local '{fallback}' instead. Pass --data-dir to override.",
                    file=sys.stderr,
                )
                self._data_dir_warning_emitted = True
            return fallback

    def get_config_dir(self) -> Path:
        """Get the config directory, creating if necessary."""
        if self.config_dir:
            config_dir = self.config_dir
        else:
            config_dir = get_xdg_config_home() / "tarja"

        config_dir.mkdir(parents=True, exist_ok=True)
        return config_dir

    def get_audit_path(self) -> Path:
        """Get path to audit ledger file."""
        return self.get_data_dir() / "audit.jsonl"

    def get_detection_store_dir(self) -> Path:
        """Directory holding encrypted detection and document records."""
        store_dir = self.get_data_dir() / "detections"
        store_dir.mkdir(parents=True, exist_ok=True)
        return store_dir

    def get_detection_key(self) -> bytes:
        """Return the Fernet key used to encrypt stored detections."""
        key_path = (
            self.detection_key_path
            if self.detection_key_path is not None
            else self.get_config_dir() / "detections.key"
        )
        return load_or_create_fernet_key(key_path)

    def get_audit_hmac_key(self) -> bytes:
        """Return the HMAC key used to seal audit ledger metadata."""
        key_path = (
            self.audit_hmac_key_path
            if self.audit_hmac_key_path is not None
            else self.get_config_dir() / "audit-ledger.key"
        )
        return load_or_create_hmac_key(key_path, length=32)

    def storage_config(self) -> StorageConfig:
        """Resolve storage parameters into an immutable client configuration."""
        local_path = (
            self.storage_local_path
            if self.storage_local_path is not None
            else self.get_data_dir() / "uploads"
        )
        return StorageConfig(local_path=local_path)

    def model_post_init(self, __context: Any) -> None:
        """Normalize the log level name."""
        super().model_post_init(__context)
        object.__setattr__(self, "log_level", self.log_level.upper())


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set the global settings instance (useful for testing)."""
    global _settings
    _settings = settings
