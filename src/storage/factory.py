"""Build the configured storage backend.

This is the only place that branches on which backend is in use.
"""

from __future__ import annotations

import logging

from src.config import Settings
from src.models.enums import StorageBackendType
from src.storage.base import StorageBackend

logger = logging.getLogger(__name__)


def create_backend(settings: Settings) -> StorageBackend:
    """Instantiate (but do not init) the backend named by STORAGE_BACKEND."""
    kind = settings.storage.storage_backend
    logger.info("Using %s storage backend", kind.value)

    if kind == StorageBackendType.SQL:
        from src.storage.sql import SqlBackend

        return SqlBackend(
            settings.storage.database_url,
            create_tables=not settings.is_production,
        )

    if kind == StorageBackendType.CRM:
        from src.storage.crm import CrmBackend

        return CrmBackend(settings.crm)

    from src.storage.local import LocalBackend

    return LocalBackend(settings.storage.local_store_path or None)
