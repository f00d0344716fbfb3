"""CRM backend — async httpx client for a Salesforce-style REST API.

Records are addressed by an external-id field so the application keeps its own
ids: GET/PATCH/DELETE /sobjects/<Object>/ExternalId__c/<id>. PATCH is an
upsert. Listing goes through /query with nextRecordsUrl paging.

Endpoint root: {crm_base_url}/services/data/{crm_api_version}
Auth: Bearer token
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from decimal import Decimal
from typing import Any, Generic

import httpx

from src.config import CrmSettings
from src.errors import BackendError, BackendUnavailableError, InputValidationError, NotFoundError
from src.schemas.catalog import DiscountRule, Unit
from src.schemas.quote import Quote, QuoteLineItem
from src.storage.base import LinkRepository, ModelT, Repository, StorageBackend

logger = logging.getLogger(__name__)

EXTERNAL_ID = "ExternalId__c"

# CRM object names
UNIT_OBJECT = "Unit__c"
RULE_OBJECT = "DiscountRule__c"
QUOTE_OBJECT = "Quote__c"
LINK_OBJECT = "UnitDiscount__c"

# Queried fields per object, besides ExternalId__c
UNIT_FIELDS = [
    "Name", "Description__c", "BasePrice__c", "Category__c", "Features__c",
    "Active__c", "CreatedAt__c", "UpdatedAt__c",
]
RULE_FIELDS = [
    "Name", "Type__c", "DiscountPercentage__c", "Threshold__c", "AccountType__c",
    "EffectiveDate__c", "EndDate__c",
]
QUOTE_FIELDS = [
    "Name", "Items__c", "Subtotal__c", "Discount__c", "TotalAmount__c", "Status__c",
    "AccountType__c", "User__c", "CreatedBy__c", "CreatedAt__c", "UpdatedAt__c",
]


def _json_default(value: Any) -> Any:
    # Exact string form; number fields accept it
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Cannot encode {type(value).__name__}")


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


# ── Field mapping ────────────────────────────────────────────────────


def _unit_to_crm(unit: Unit) -> dict[str, Any]:
    return {
        "Name": unit.name,
        "Description__c": unit.description,
        "BasePrice__c": unit.base_price,
        "Category__c": unit.category,
        "Features__c": ";".join(unit.features),
        "Active__c": unit.active,
        "CreatedAt__c": _iso(unit.created_at),
        "UpdatedAt__c": _iso(unit.updated_at),
    }


def _unit_from_crm(record: dict[str, Any]) -> Unit:
    features = record.get("Features__c") or ""
    return Unit(
        id=record[EXTERNAL_ID],
        name=record["Name"],
        description=record.get("Description__c"),
        base_price=record["BasePrice__c"],
        category=record.get("Category__c"),
        features=[f for f in features.split(";") if f],
        active=bool(record.get("Active__c", True)),
        created_at=record["CreatedAt__c"],
        updated_at=record["UpdatedAt__c"],
    )


def _rule_to_crm(rule: DiscountRule) -> dict[str, Any]:
    return {
        "Name": rule.name,
        "Type__c": rule.type.value,
        "DiscountPercentage__c": rule.discount_percentage,
        "Threshold__c": rule.threshold,
        "AccountType__c": rule.account_type.value if rule.account_type else None,
        "EffectiveDate__c": _iso(rule.effective_date),
        "EndDate__c": _iso(rule.end_date),
    }


def _rule_from_crm(record: dict[str, Any]) -> DiscountRule:
    threshold = record.get("Threshold__c")
    return DiscountRule(
        id=record[EXTERNAL_ID],
        name=record["Name"],
        type=record["Type__c"],
        discount_percentage=record["DiscountPercentage__c"],
        threshold=int(threshold) if threshold is not None else None,
        account_type=record.get("AccountType__c") or None,
        effective_date=record["EffectiveDate__c"],
        end_date=record.get("EndDate__c"),
    )


def _quote_to_crm(quote: Quote) -> dict[str, Any]:
    return {
        "Name": quote.name,
        "Items__c": json.dumps([item.model_dump(mode="json") for item in quote.items]),
        "Subtotal__c": quote.subtotal,
        "Discount__c": quote.discount,
        "TotalAmount__c": quote.total,
        "Status__c": quote.status.value,
        "AccountType__c": quote.account_type.value,
        "User__c": quote.owner_user_id,
        "CreatedBy__c": quote.created_by,
        "CreatedAt__c": _iso(quote.created_at),
        "UpdatedAt__c": _iso(quote.updated_at),
    }


def _quote_from_crm(record: dict[str, Any]) -> Quote:
    items = json.loads(record.get("Items__c") or "[]")
    return Quote(
        id=record[EXTERNAL_ID],
        name=record["Name"],
        items=[QuoteLineItem.model_validate(item) for item in items],
        subtotal=record["Subtotal__c"],
        discount=record["Discount__c"],
        total=record["TotalAmount__c"],
        status=record["Status__c"],
        account_type=record["AccountType__c"],
        owner_user_id=record["User__c"],
        created_by=record["CreatedBy__c"],
        created_at=record["CreatedAt__c"],
        updated_at=record["UpdatedAt__c"],
    )


# ── Repositories ─────────────────────────────────────────────────────


class CrmRepository(Repository[ModelT], Generic[ModelT]):
    """Repository over one CRM object, keyed by ExternalId__c."""

    def __init__(
        self,
        backend: CrmBackend,
        sobject: str,
        entity: str,
        fields: list[str],
        to_crm: Callable[[ModelT], dict[str, Any]],
        from_crm: Callable[[dict[str, Any]], ModelT],
    ) -> None:
        self._backend = backend
        self._sobject = sobject
        self.entity = entity
        self._fields = fields
        self._to_crm = to_crm
        self._from_crm = from_crm

    def _path(self, record_id: str) -> str:
        return f"/sobjects/{self._sobject}/{EXTERNAL_ID}/{record_id}"

    async def get(self, record_id: str) -> ModelT | None:
        response = await self._backend.request_optional("GET", self._path(record_id))
        if response is None:
            return None
        return self._from_crm(response.json(parse_float=Decimal))

    async def list(self) -> list[ModelT]:
        soql = f"SELECT {', '.join([EXTERNAL_ID, *self._fields])} FROM {self._sobject}"
        return [self._from_crm(record) for record in await self._backend.query(soql)]

    async def create(self, record: ModelT) -> ModelT:
        record_id = record.id  # type: ignore[attr-defined]
        if await self.get(record_id) is not None:
            raise InputValidationError(f"{self.entity} {record_id} already exists")
        await self._backend.request("PATCH", self._path(record_id), body=self._to_crm(record))
        return record

    async def update(self, record: ModelT) -> ModelT:
        record_id = record.id  # type: ignore[attr-defined]
        if await self.get(record_id) is None:
            raise NotFoundError(self.entity, record_id)
        await self._backend.request("PATCH", self._path(record_id), body=self._to_crm(record))
        return record

    async def delete(self, record_id: str) -> None:
        response = await self._backend.request_optional("DELETE", self._path(record_id))
        if response is None:
            raise NotFoundError(self.entity, record_id)


class CrmLinkRepository(LinkRepository):
    """UnitDiscount__c junction records; external id is "<unit_id>:<rule_id>"."""

    def __init__(self, backend: CrmBackend) -> None:
        self._backend = backend

    @staticmethod
    def _path(unit_id: str, rule_id: str) -> str:
        return f"/sobjects/{LINK_OBJECT}/{EXTERNAL_ID}/{unit_id}:{rule_id}"

    async def pairs(self) -> list[tuple[str, str]]:
        records = await self._backend.query(f"SELECT Unit__c, DiscountRule__c FROM {LINK_OBJECT}")
        return sorted((r["Unit__c"], r["DiscountRule__c"]) for r in records)

    async def add(self, unit_id: str, rule_id: str) -> None:
        await self._backend.request(
            "PATCH",
            self._path(unit_id, rule_id),
            body={"Unit__c": unit_id, "DiscountRule__c": rule_id},
        )

    async def remove(self, unit_id: str, rule_id: str) -> None:
        await self._backend.request_optional("DELETE", self._path(unit_id, rule_id))


# ── Backend ──────────────────────────────────────────────────────────


class CrmBackend(StorageBackend):
    """Remote CRM storage. No internal retries; retryable failures raise BackendUnavailableError."""

    name = "crm"

    def __init__(self, crm: CrmSettings, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        if not crm.crm_base_url:
            raise BackendError("crm backend selected but CRM_BASE_URL is not configured")
        self._origin = crm.crm_base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=crm.api_root,
            headers={"Authorization": f"Bearer {crm.crm_api_token}"},
            timeout=httpx.Timeout(crm.crm_timeout, connect=5.0),
            transport=transport,
        )

        self.units = CrmRepository(
            self,
            UNIT_OBJECT,
            "Unit",
            UNIT_FIELDS,
            _unit_to_crm,
            _unit_from_crm,
        )
        self.discount_rules = CrmRepository(
            self,
            RULE_OBJECT,
            "DiscountRule",
            RULE_FIELDS,
            _rule_to_crm,
            _rule_from_crm,
        )
        self.unit_discounts = CrmLinkRepository(self)
        self.quotes = CrmRepository(
            self,
            QUOTE_OBJECT,
            "Quote",
            QUOTE_FIELDS,
            _quote_to_crm,
            _quote_from_crm,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None,
        params: dict[str, str] | None,
    ) -> httpx.Response:
        """Send one request; transport failures become BackendUnavailableError."""
        content = json.dumps(body, default=_json_default) if body is not None else None
        headers = {"Content-Type": "application/json"} if content is not None else None
        try:
            response = await self._client.request(
                method, path, content=content, headers=headers, params=params
            )
        except httpx.TimeoutException as exc:
            logger.warning("CRM timeout: %s %s", method, path)
            raise BackendUnavailableError(f"CRM timeout on {method} {path}") from exc
        except httpx.TransportError as exc:
            logger.warning("CRM unreachable: %s %s (%s)", method, path, exc)
            raise BackendUnavailableError(f"CRM unreachable: {exc}") from exc

        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, path: str) -> None:
        if response.status_code >= 500:
            logger.warning("CRM HTTP %s on %s %s", response.status_code, method, path)
            raise BackendUnavailableError(f"CRM returned HTTP {response.status_code}")
        if response.status_code >= 400:
            logger.warning("CRM HTTP %s on %s %s: %s", response.status_code, method, path, response.text)
            raise BackendError(f"CRM rejected {method} {path}: HTTP {response.status_code}")

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send one request and map every non-2xx status onto the backend error taxonomy."""
        response = await self._send(method, path, body, params)
        self._raise_for_status(response, method, path)
        return response

    async def request_optional(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
    ) -> httpx.Response | None:
        """Like request(), but a 404 returns None."""
        response = await self._send(method, path, body, None)
        if response.status_code == 404:
            return None
        self._raise_for_status(response, method, path)
        return response

    async def query(self, soql: str) -> list[dict[str, Any]]:
        """Run a query and follow nextRecordsUrl until the result set is complete."""
        response = await self.request("GET", "/query", params={"q": soql})
        payload = response.json(parse_float=Decimal)
        records: list[dict[str, Any]] = list(payload.get("records", []))
        while not payload.get("done", True) and payload.get("nextRecordsUrl"):
            response = await self.request("GET", f"{self._origin}{payload['nextRecordsUrl']}")
            payload = response.json(parse_float=Decimal)
            records.extend(payload.get("records", []))
        return records
