"""Application layer for Tarja.

This layer orchestrates domain logic without direct filesystem or network I/O.
All side effects are delegated to adapters via port interfaces. Services live
in their own modules (``tarja.app.redaction_service``,
``tarja.app.retention_service``, ``tarja.app.audit_service``) and are wired by
``tarja.bootstrap``.
"""
