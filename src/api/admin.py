"""Admin routes — copy the running backend's data into another backend.

The target is built from the same settings with only STORAGE_BACKEND swapped,
so its connection details (DATABASE_URL, CRM_*) come from the environment.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from src.api.deps import get_backend, get_caller, get_settings
from src.config import Settings
from src.errors import InputValidationError, UnauthorizedError
from src.models.enums import StorageBackendType
from src.schemas.identity import CallerIdentity
from src.storage.base import StorageBackend
from src.storage.factory import create_backend
from src.storage.migration import migrate_backend, validate_migration

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


class MigrationResult(BaseModel):
    source: str
    target: str
    success: bool
    message: str
    migrated: dict[str, int]
    skipped: dict[str, int]
    failed: dict[str, list[str]]
    missing_quotes: list[str]


@router.post("/migrate", response_model=MigrationResult)
async def migrate(
    target: StorageBackendType = Query(...),  # noqa: B008
    source: StorageBackend = Depends(get_backend),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
    caller: CallerIdentity = Depends(get_caller),  # noqa: B008
) -> MigrationResult:
    """Copy units, rules, links and quotes into the `target` backend. Re-runnable."""
    if not caller.is_admin:
        raise UnauthorizedError("Only administrators can migrate data")
    if target.value == source.name:
        raise InputValidationError(f"Target backend {target.value} is the running backend")

    target_settings = settings.model_copy(
        update={"storage": settings.storage.model_copy(update={"storage_backend": target})}
    )
    destination = create_backend(target_settings)
    await destination.init()
    try:
        logger.info("Migration %s → %s started by %s", source.name, destination.name, caller.username)
        report = await migrate_backend(source, destination)
        missing = await validate_migration(source, destination)
    finally:
        await destination.close()

    return MigrationResult(
        source=source.name,
        target=destination.name,
        success=report.success and not missing,
        message=report.message,
        migrated=report.migrated,
        skipped=report.skipped,
        failed=report.failed,
        missing_quotes=missing,
    )
