"""FastAPI dependencies — caller authentication and per-request stores.

Stores are built per request around the authenticated caller; the backend and
the authenticator live on app.state (set up in main.create_app()).
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from src.auth.identity import Authenticator
from src.catalog.store import CatalogStore
from src.config import Settings
from src.errors import UnauthorizedError
from src.quotes.service import QuoteService
from src.quotes.store import QuoteStore
from src.schemas.identity import CallerIdentity, fixed_caller
from src.storage.base import StorageBackend

security = HTTPBasic()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_backend(request: Request) -> StorageBackend:
    return request.app.state.backend


async def get_caller(
    request: Request,
    credentials: HTTPBasicCredentials = Depends(security),  # noqa: B008
) -> CallerIdentity:
    """Verify HTTP Basic credentials. Returns the caller, raises 401 on failure."""
    authenticator: Authenticator = request.app.state.authenticator
    try:
        return authenticator.authenticate(credentials.username, credentials.password)
    except UnauthorizedError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        ) from exc


def get_catalog(
    backend: StorageBackend = Depends(get_backend),  # noqa: B008
    caller: CallerIdentity = Depends(get_caller),  # noqa: B008
) -> CatalogStore:
    return CatalogStore(backend, fixed_caller(caller))


def get_quote_store(
    backend: StorageBackend = Depends(get_backend),  # noqa: B008
    caller: CallerIdentity = Depends(get_caller),  # noqa: B008
) -> QuoteStore:
    return QuoteStore(backend.quotes, fixed_caller(caller))


def get_quote_service(
    catalog: CatalogStore = Depends(get_catalog),  # noqa: B008
    store: QuoteStore = Depends(get_quote_store),  # noqa: B008
    caller: CallerIdentity = Depends(get_caller),  # noqa: B008
) -> QuoteService:
    return QuoteService(catalog, store, fixed_caller(caller))
