# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Local-key transaction signing and the pluggable transaction backend.

Protobuf encoding, account sequence lookup and broadcasting belong to an
external backend. This module owns gas and fee policy and turns a non-zero
deliver code into BroadcastError.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from ..core.exceptions import BroadcastError, ConfigurationError
from .messages import ChainMessage

if TYPE_CHECKING:
    from ..core.networks import NetworkEndpoints
    from ..identity.account import Account

logger = logging.getLogger(__name__)

FEE_DENOM = "uixo"
MIN_SIMULATED_GAS = 50_000
GAS_PER_MESSAGE = 500_000
GAS_ADJUSTMENT = 1.7
GAS_PRICE_AVERAGE = 0.035
DEFAULT_MEMO = "Signing with Mnemonic"


@dataclass(frozen=True)
class BroadcastResult:
    """The chain's answer to a delivered transaction."""

    code: int = 0
    tx_hash: str = ""
    height: int | None = None
    raw_log: str = ""
    events: list[dict[str, Any]] = field(default_factory=list)
    gas_used: int | None = None
    gas_wanted: int | None = None

    @property
    def ok(self) -> bool:
        return self.code == 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BroadcastResult:
        """Accept both camelCase client responses and snake_case REST responses."""
        tx = data.get("tx_response", data)
        height = tx.get("height")

        def _int(value: Any) -> int | None:
            return int(value) if value not in (None, "") else None

        return cls(
            code=int(tx.get("code") or 0),
            tx_hash=tx.get("transactionHash") or tx.get("txhash") or tx.get("hash") or "",
            height=_int(height),
            raw_log=tx.get("rawLog") or tx.get("raw_log") or "",
            events=list(tx.get("events") or []),
            gas_used=_int(tx.get("gasUsed") or tx.get("gas_used")),
            gas_wanted=_int(tx.get("gasWanted") or tx.get("gas_wanted")),
        )

    def raise_for_code(self) -> BroadcastResult:
        if not self.ok:
            raise BroadcastError(self.code, self.raw_log, self.tx_hash, self.height)
        return self


@dataclass(frozen=True)
class Fee:
    amount: list[dict[str, str]]
    gas: str
    granter: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"amount": self.amount, "gas": self.gas}
        if self.granter:
            data["granter"] = self.granter
        return data


def calculate_fee(simulated_gas: int, message_count: int, granter: str | None = None) -> Fee:
    """Fee for a transaction given its simulated gas.

    Small simulations are distrusted and replaced by a flat per-message budget.
    """
    gas_used = simulated_gas if simulated_gas > MIN_SIMULATED_GAS else message_count * GAS_PER_MESSAGE
    gas = gas_used * GAS_ADJUSTMENT
    priced_gas = max(gas, 0.01)
    return Fee(
        amount=[{"denom": FEE_DENOM, "amount": str(round(priced_gas * GAS_PRICE_AVERAGE))}],
        gas=str(round(gas)),
        granter=granter,
    )


@runtime_checkable
class TxBodyEncoder(Protocol):
    """Encodes messages plus memo into protobuf TxBody bytes."""

    def encode_tx_body(self, messages: Sequence[ChainMessage], memo: str = "") -> bytes: ...


@runtime_checkable
class TxBackend(Protocol):
    """Signs with a local key and broadcasts."""

    async def simulate(self, account: Account, messages: Sequence[ChainMessage], memo: str) -> int: ...

    async def sign_and_broadcast(
        self,
        account: Account,
        messages: Sequence[ChainMessage],
        fee: Fee,
        memo: str,
    ) -> BroadcastResult: ...


def load_tx_backend(path: str | None, endpoints: NetworkEndpoints) -> Any:
    """Load a backend factory from ``module:attribute`` and build it for ``endpoints``.

    The factory is called with the network endpoints. The returned object must
    implement TxBackend, TxBodyEncoder, or both.
    """
    if not path:
        raise ConfigurationError(
            "No chain transaction backend configured (set ORACLE_TX_BACKEND)",
            missing=["tx_backend"],
        )
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ConfigurationError(f"Invalid tx backend path '{path}', expected 'module:attribute'")
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot load tx backend '{path}': {e}") from e
    backend = factory(endpoints) if callable(factory) else factory
    logger.debug(f"Loaded tx backend {path} for {endpoints.network}")
    return backend


class LocalKeySigner:
    """Signs transactions with the account's own key."""

    def __init__(self, backend: TxBackend, account: Account, memo: str = DEFAULT_MEMO):
        self.backend = backend
        self.account = account
        self.memo = memo

    async def sign_and_broadcast(
        self,
        messages: Sequence[ChainMessage],
        granter: str | None = None,
        memo: str | None = None,
    ) -> BroadcastResult:
        memo = self.memo if memo is None else memo
        simulated = await self.backend.simulate(self.account, messages, memo)
        fee = calculate_fee(simulated, len(messages), granter)
        logger.debug(
            f"Broadcasting {len(messages)} message(s) from {self.account.address} "
            f"with gas {fee.gas} (simulated {simulated}), granter {granter or 'none'}"
        )
        result = await self.backend.sign_and_broadcast(self.account, messages, fee, memo)
        return result.raise_for_code()

