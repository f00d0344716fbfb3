"""Quote routes — pricing preview, CRUD, workflow transitions and export."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import HTMLResponse
from starlette.concurrency import run_in_threadpool

from src.api.deps import get_catalog, get_quote_service, get_quote_store, get_settings
from src.catalog.store import CatalogStore
from src.config import Settings
from src.errors import NotFoundError
from src.export.document import QuoteDocument, prepare_quote_document, render_quote_html, render_quote_pdf
from src.quotes.service import QuoteService
from src.quotes.store import QuoteStore
from src.schemas.quote import (
    LineItemPrice,
    LineItemRequest,
    Quote,
    QuoteChanges,
    QuoteDraft,
    QuoteReview,
)

router = APIRouter(prefix="/quotes", tags=["quotes"])


def _now() -> datetime:
    return datetime.now(UTC)


async def _require_quote(store: QuoteStore, quote_id: str) -> Quote:
    quote = await store.get(quote_id)
    if quote is None:
        raise NotFoundError("Quote", quote_id)
    return quote


async def _document(quote_id: str, store: QuoteStore, catalog: CatalogStore, settings: Settings) -> QuoteDocument:
    quote = await _require_quote(store, quote_id)
    units = {unit.id: unit for unit in await catalog.list_units()}
    return prepare_quote_document(quote, units, settings.company)


@router.post("/preview-line", response_model=LineItemPrice)
async def preview_line(
    line: LineItemRequest,
    service: QuoteService = Depends(get_quote_service),  # noqa: B008
) -> LineItemPrice:
    """Live price of one line for the caller; nothing is stored."""
    return await service.preview_line_item(line.unit_id, line.quantity, _now())


@router.get("", response_model=list[Quote])
async def list_quotes(store: QuoteStore = Depends(get_quote_store)) -> list[Quote]:  # noqa: B008
    return await store.list()


@router.post("", response_model=Quote, status_code=status.HTTP_201_CREATED)
async def create_quote(
    draft: QuoteDraft,
    service: QuoteService = Depends(get_quote_service),  # noqa: B008
) -> Quote:
    return await service.create_quote(draft, _now())


@router.get("/{quote_id}", response_model=Quote)
async def get_quote(quote_id: str, store: QuoteStore = Depends(get_quote_store)) -> Quote:  # noqa: B008
    return await _require_quote(store, quote_id)


@router.patch("/{quote_id}", response_model=Quote)
async def update_quote(
    quote_id: str,
    changes: QuoteChanges,
    service: QuoteService = Depends(get_quote_service),  # noqa: B008
) -> Quote:
    return await service.update_quote(quote_id, changes, _now())


@router.delete("/{quote_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quote(quote_id: str, store: QuoteStore = Depends(get_quote_store)) -> Response:  # noqa: B008
    await store.delete(quote_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Workflow ─────────────────────────────────────────────────────────


@router.post("/{quote_id}/recompute", response_model=Quote)
async def recompute_quote(
    quote_id: str,
    service: QuoteService = Depends(get_quote_service),  # noqa: B008
) -> Quote:
    return await service.recompute_quote(quote_id, _now())


@router.post("/{quote_id}/submit", response_model=Quote)
async def submit_quote(
    quote_id: str,
    service: QuoteService = Depends(get_quote_service),  # noqa: B008
) -> Quote:
    return await service.submit_quote(quote_id)


@router.post("/{quote_id}/review", response_model=Quote)
async def review_quote(
    quote_id: str,
    review: QuoteReview,
    service: QuoteService = Depends(get_quote_service),  # noqa: B008
) -> Quote:
    return await service.review_quote(quote_id, review.approve)


# ── Export ───────────────────────────────────────────────────────────


@router.get("/{quote_id}/document", response_class=HTMLResponse)
async def quote_document(
    quote_id: str,
    store: QuoteStore = Depends(get_quote_store),  # noqa: B008
    catalog: CatalogStore = Depends(get_catalog),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> HTMLResponse:
    document = await _document(quote_id, store, catalog, settings)
    return HTMLResponse(render_quote_html(document))


@router.get("/{quote_id}/pdf")
async def quote_pdf(
    quote_id: str,
    store: QuoteStore = Depends(get_quote_store),  # noqa: B008
    catalog: CatalogStore = Depends(get_catalog),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> Response:
    document = await _document(quote_id, store, catalog, settings)
    pdf_bytes = await run_in_threadpool(render_quote_pdf, document)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="quote-{quote_id}.pdf"'},
    )
