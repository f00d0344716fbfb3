"""Catalog routes — units, discount rules and the discount preview for a unit.

Reads are open to any authenticated caller; the catalog store rejects
mutations from non-administrators.
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Query, Response, status

from src.api.deps import get_caller, get_catalog
from src.catalog.store import CatalogStore
from src.errors import NotFoundError
from src.models.enums import SortOrder, UnitSortField
from src.pricing.resolver import resolve_applicable_discounts
from src.schemas.catalog import (
    DiscountRule,
    DiscountRuleCreate,
    DiscountRuleUpdate,
    Unit,
    UnitCreate,
    UnitSearchParams,
    UnitSearchResult,
    UnitUpdate,
)
from src.schemas.identity import CallerIdentity

router = APIRouter(tags=["catalog"])


# ── Units ────────────────────────────────────────────────────────────


@router.get("/units", response_model=UnitSearchResult)
async def search_units(
    query: str | None = None,
    category: str | None = None,
    active: bool | None = None,
    sort_by: UnitSortField = UnitSortField.NAME,
    sort_order: SortOrder = SortOrder.ASC,
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    catalog: CatalogStore = Depends(get_catalog),  # noqa: B008
) -> UnitSearchResult:
    """Search the catalog; without a page_size every match is on page 1."""
    params = UnitSearchParams(
        query=query,
        category=category,
        active=active,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        page_size=page_size,
    )
    return await catalog.search_units(params)


@router.get("/units/{unit_id}", response_model=Unit)
async def get_unit(unit_id: str, catalog: CatalogStore = Depends(get_catalog)) -> Unit:  # noqa: B008
    unit = await catalog.get_unit(unit_id)
    if unit is None:
        raise NotFoundError("Unit", unit_id)
    return unit


@router.post("/units", response_model=Unit, status_code=status.HTTP_201_CREATED)
async def create_unit(data: UnitCreate, catalog: CatalogStore = Depends(get_catalog)) -> Unit:  # noqa: B008
    return await catalog.create_unit(data)


@router.patch("/units/{unit_id}", response_model=Unit)
async def update_unit(
    unit_id: str,
    data: UnitUpdate,
    catalog: CatalogStore = Depends(get_catalog),  # noqa: B008
) -> Unit:
    return await catalog.update_unit(unit_id, data)


@router.delete("/units/{unit_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_unit(unit_id: str, catalog: CatalogStore = Depends(get_catalog)) -> Response:  # noqa: B008
    await catalog.delete_unit(unit_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/units/{unit_id}/discounts", response_model=list[DiscountRule])
async def unit_discounts(
    unit_id: str,
    quantity: int = Query(default=1, ge=0),
    catalog: CatalogStore = Depends(get_catalog),  # noqa: B008
    caller: CallerIdentity = Depends(get_caller),  # noqa: B008
) -> list[DiscountRule]:
    """Rules that would apply to this unit for the caller, best first."""
    snapshot = await catalog.snapshot()
    if unit_id not in snapshot.units:
        raise NotFoundError("Unit", unit_id)
    return resolve_applicable_discounts(
        snapshot, quantity, unit_id, caller.account_type, datetime.now(UTC)
    )


# ── Discount rules ───────────────────────────────────────────────────


@router.get("/discount-rules", response_model=list[DiscountRule])
async def list_discount_rules(catalog: CatalogStore = Depends(get_catalog)) -> list[DiscountRule]:  # noqa: B008
    return await catalog.list_discount_rules()


@router.get("/discount-rules/{rule_id}", response_model=DiscountRule)
async def get_discount_rule(
    rule_id: str,
    catalog: CatalogStore = Depends(get_catalog),  # noqa: B008
) -> DiscountRule:
    rule = await catalog.get_discount_rule(rule_id)
    if rule is None:
        raise NotFoundError("DiscountRule", rule_id)
    return rule


@router.post("/discount-rules", response_model=DiscountRule, status_code=status.HTTP_201_CREATED)
async def create_discount_rule(
    data: DiscountRuleCreate,
    catalog: CatalogStore = Depends(get_catalog),  # noqa: B008
) -> DiscountRule:
    return await catalog.create_discount_rule(data)


@router.patch("/discount-rules/{rule_id}", response_model=DiscountRule)
async def update_discount_rule(
    rule_id: str,
    data: DiscountRuleUpdate,
    catalog: CatalogStore = Depends(get_catalog),  # noqa: B008
) -> DiscountRule:
    return await catalog.update_discount_rule(rule_id, data)


@router.delete("/discount-rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_discount_rule(
    rule_id: str,
    catalog: CatalogStore = Depends(get_catalog),  # noqa: B008
) -> Response:
    await catalog.delete_discount_rule(rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
