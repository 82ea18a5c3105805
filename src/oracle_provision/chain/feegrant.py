# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Fee allowance decoding and granter selection.

Allowances come from the chain REST API as JSON with an ``@type`` tag:
basic, periodic, or an allowed-message wrapper around either.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

BASIC_ALLOWANCE = "/cosmos.feegrant.v1beta1.BasicAllowance"
PERIODIC_ALLOWANCE = "/cosmos.feegrant.v1beta1.PeriodicAllowance"
ALLOWED_MSG_ALLOWANCE = "/cosmos.feegrant.v1beta1.AllowedMsgAllowance"

FEE_DENOM = "uixo"
# At or below this remaining amount an allowance is treated as spent.
LIMIT_EPSILON = 0.0005


@dataclass(frozen=True)
class FeeAllowance:
    """A decoded fee grant. ``expiration`` and ``limit`` are raw chain values."""

    granter: str
    grantee: str
    type: str
    expiration: str | None = None
    limit: str | None = None
    msgs: list[str] = field(default_factory=list)


def _uixo_amount(coins: list[dict[str, Any]] | None) -> str | None:
    for coin in coins or []:
        if coin.get("denom") == FEE_DENOM:
            return coin.get("amount")
    return None


def _decode_allowance(allowance: dict[str, Any]) -> tuple[str | None, str | None]:
    kind = allowance.get("@type")
    if kind == PERIODIC_ALLOWANCE:
        basic = allowance.get("basic") or {}
        can_spend = allowance.get("period_can_spend")
        limit = _uixo_amount(can_spend) if can_spend else _uixo_amount(basic.get("spend_limit"))
        return basic.get("expiration"), limit
    return allowance.get("expiration"), _uixo_amount(allowance.get("spend_limit"))


def decode_grant(grant: dict[str, Any]) -> FeeAllowance:
    allowance = grant.get("allowance") or {}
    kind = allowance.get("@type", "")
    msgs: list[str] = []
    inner = allowance
    if kind == ALLOWED_MSG_ALLOWANCE:
        inner = allowance.get("allowance") or {}
        msgs = list(allowance.get("allowed_messages") or [])
    expiration, limit = _decode_allowance(inner)
    return FeeAllowance(
        granter=grant.get("granter", ""),
        grantee=grant.get("grantee", ""),
        type=kind,
        expiration=expiration,
        limit=limit,
        msgs=msgs,
    )


def decode_grants(grants: Iterable[dict[str, Any]]) -> list[FeeAllowance]:
    return [decode_grant(grant) for grant in grants]


def is_allowance_expired(expiration: str | datetime | None, now: datetime | None = None) -> bool:
    """No expiration means never expires. An unparseable one counts as expired."""
    if expiration is None:
        return False
    if isinstance(expiration, datetime):
        expires_at = expiration
    else:
        try:
            expires_at = datetime.fromisoformat(expiration.replace("Z", "+00:00"))
        except (AttributeError, ValueError):
            logger.debug(f"Unparseable allowance expiration: {expiration!r}")
            return True
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return expires_at < (now or datetime.now(UTC))


def is_allowance_limit_reached(limit: str | int | float | dict | None) -> bool:
    """No limit means unlimited."""
    if limit is None:
        return False
    if isinstance(limit, dict):
        limit = limit.get("amount", 0)
    try:
        amount = float(limit)
    except (TypeError, ValueError):
        return True
    return amount <= LIMIT_EPSILON


def is_allowance_usable(allowance: FeeAllowance, now: datetime | None = None) -> bool:
    return not is_allowance_expired(allowance.expiration, now) and not is_allowance_limit_reached(allowance.limit)


def select_fee_granter(allowances: Iterable[FeeAllowance], now: datetime | None = None) -> str | None:
    """First granter whose allowance is unexpired and not spent."""
    for allowance in allowances:
        if allowance.granter and is_allowance_usable(allowance, now):
            return allowance.granter
    return None
