"""Tarja - PII detection and irreversible redaction for Brazilian documents.

Detects CPF, RG, CNH, voter IDs, bank data, PIX keys, addresses and other
personal data in PDFs and images, routes detections through human review and
blacks out approved regions with an auditable chain of custody.
"""

__version__ = "0.1.0"
__author__ = "Tarja Contributors"

from tarja.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
