"""Caller identity — the minimal session contract the stores depend on."""

from __future__ import annotations

from collections.abc import Callable

from pydantic import BaseModel, ConfigDict

from src.models.enums import AccountType


class CallerIdentity(BaseModel):
    """Who is making the current call.

    `is_admin` grants unrestricted access to every quote and to catalog
    mutations; `account_type` feeds ACCOUNT_TYPE discount eligibility.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    username: str
    is_admin: bool = False
    account_type: AccountType = AccountType.INDIVIDUAL


# Injected into the stores; returns None when nobody is authenticated.
CallerAccessor = Callable[[], CallerIdentity | None]


def fixed_caller(caller: CallerIdentity | None) -> CallerAccessor:
    """Accessor that always returns the same identity (one request, one test)."""
    return lambda: caller
