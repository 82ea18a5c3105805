# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Remote signing session: QR code plus polling against a human-held wallet.

Login:    IDLE -> AWAITING_SCAN -> AUTHENTICATED | FAILED | CANCELLED
Transact: BUILT -> AWAITING_SCAN -> POLLING -> CONFIRMED | REJECTED

Only one flow may be in flight per session. The wallet's sequence counter is
shared with every request this session builds, so a second flow started while
one is unresolved is refused with SigningSessionBusyError.

There is no timeout. A wallet that never answers keeps the poll loop running
until the caller cancels through a CancellationToken.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Generic, TypeVar

from ..chain.messages import ChainMessage
from ..chain.signer import BroadcastResult, TxBodyEncoder
from ..core.exceptions import (
    ConfigurationError,
    RemoteSigningError,
    SigningFailureReason,
    SigningSessionBusyError,
    ValidationError,
)
from .display import render_qr
from .transport import RelayRequest, RelayResponse, RelayStatus, SignXTransport
from .wallet import WalletAccount

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_POLL_INTERVAL = 2.0


class LoginState(StrEnum):
    IDLE = "idle"
    AWAITING_SCAN = "awaiting_scan"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TransactState(StrEnum):
    BUILT = "built"
    AWAITING_SCAN = "awaiting_scan"
    POLLING = "polling"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class CancellationToken:
    """Cooperative cancellation for a poll loop."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to ``seconds``. Returns True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except TimeoutError:
            return False
        return True


@dataclass(frozen=True)
class SigningSuccess(Generic[T]):
    value: T

    ok = True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class SigningFailure:
    error: RemoteSigningError

    ok = False

    @property
    def reason(self) -> SigningFailureReason:
        return self.error.reason

    def unwrap(self) -> Any:
        raise self.error


SigningOutcome = SigningSuccess[T] | SigningFailure


class RemoteSigningSession:
    """Drives login and transaction signing through the SignX relay."""

    def __init__(
        self,
        transport: SignXTransport,
        encoder: TxBodyEncoder | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        display: Callable[[Any, str], None] = render_qr,
    ):
        self.transport = transport
        self.encoder = encoder
        self.poll_interval = poll_interval
        self.display = display
        self.login_state = LoginState.IDLE
        self.transact_state: TransactState | None = None
        self._next_sequence = 1
        self._in_flight = False

    @property
    def busy(self) -> bool:
        return self._in_flight

    @property
    def next_sequence(self) -> int:
        return self._next_sequence

    def _acquire(self) -> None:
        if self._in_flight:
            raise SigningSessionBusyError()
        self._in_flight = True

    def _release(self) -> None:
        self._in_flight = False

    async def _poll_until_resolved(
        self,
        poll: Callable[[RelayRequest], Any],
        request: RelayRequest,
        cancel: CancellationToken,
        on_polling: Callable[[], None] | None = None,
    ) -> SigningOutcome[dict[str, Any]]:
        while True:
            if cancel.cancelled:
                return SigningFailure(
                    RemoteSigningError("Signing cancelled", SigningFailureReason.CANCELLED, request_id=request.hash)
                )
            try:
                response: RelayResponse = await poll(request)
            except RemoteSigningError as e:
                return SigningFailure(e)

            if response.status == RelayStatus.SUCCESS:
                return SigningSuccess(response.data or {})
            if response.status == RelayStatus.FAILURE:
                return SigningFailure(
                    RemoteSigningError(
                        response.error or "Request declined on device",
                        SigningFailureReason.USER_DECLINED,
                        request_id=request.hash,
                    )
                )

            if on_polling is not None:
                on_polling()
            await cancel.sleep(self.poll_interval)

    async def login(self, cancel: CancellationToken | None = None) -> SigningOutcome[WalletAccount]:
        """Authenticate the operator's wallet. The login must carry messaging credentials."""
        self._acquire()
        cancel = cancel or CancellationToken()
        try:
            self.login_state = LoginState.IDLE
            try:
                request = await self.transport.create_login(matrix=True)
            except RemoteSigningError as e:
                self.login_state = LoginState.FAILED
                return SigningFailure(e)

            self.display(request.qr_payload, "Login with SignX")
            self.login_state = LoginState.AWAITING_SCAN

            outcome = await self._poll_until_resolved(self.transport.poll_login, request, cancel)
            if isinstance(outcome, SigningFailure):
                cancelled = outcome.reason == SigningFailureReason.CANCELLED
                self.login_state = LoginState.CANCELLED if cancelled else LoginState.FAILED
                return outcome

            data = outcome.value
            if not data.get("matrix"):
                self.login_state = LoginState.FAILED
                return SigningFailure(
                    RemoteSigningError(
                        "Matrix login failed: wallet returned no messaging credentials",
                        SigningFailureReason.CHANNEL_FAILURE,
                        request_id=request.hash,
                    )
                )
            try:
                account = WalletAccount.from_dict(data)
            except ValidationError as e:
                self.login_state = LoginState.FAILED
                return SigningFailure(
                    RemoteSigningError(str(e), SigningFailureReason.CHANNEL_FAILURE, request_id=request.hash)
                )

            self.login_state = LoginState.AUTHENTICATED
            logger.info(f"Logged in as {account.address}")
            return SigningSuccess(account)
        finally:
            self._release()

    def build_payload(self, messages: Sequence[ChainMessage], wallet: WalletAccount, memo: str = "") -> dict[str, Any]:
        """Encode ``messages`` into the transact payload and consume one sequence number."""
        if self.encoder is None:
            raise ConfigurationError("No transaction body encoder configured", missing=["tx_backend"])
        body = self.encoder.encode_tx_body(messages, memo)
        sequence = self._next_sequence
        self._next_sequence += 1
        return {
            "address": wallet.address,
            "did": wallet.did,
            "pubkey": wallet.pub_key,
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "transactions": [{"sequence": sequence, "txBodyHex": body.hex()}],
        }

    async def transact(
        self,
        messages: Sequence[ChainMessage],
        wallet: WalletAccount,
        memo: str = "",
        cancel: CancellationToken | None = None,
    ) -> SigningOutcome[BroadcastResult]:
        """Have the wallet sign and broadcast ``messages`` as one transaction."""
        self._acquire()
        cancel = cancel or CancellationToken()
        try:
            payload = self.build_payload(messages, wallet, memo)
            self.transact_state = TransactState.BUILT
            try:
                request = await self.transport.create_transaction(payload)
            except RemoteSigningError as e:
                self.transact_state = TransactState.REJECTED
                return SigningFailure(e)

            self.display(json.dumps(request.qr_payload), "SignX transaction")
            self.transact_state = TransactState.AWAITING_SCAN

            def _polling() -> None:
                self.transact_state = TransactState.POLLING

            outcome = await self._poll_until_resolved(self.transport.poll_transaction, request, cancel, _polling)
            if isinstance(outcome, SigningFailure):
                self.transact_state = TransactState.REJECTED
                return outcome

            self.transact_state = TransactState.CONFIRMED
            return SigningSuccess(BroadcastResult.from_dict(outcome.value))
        finally:
            self._release()

    async def sign(
        self,
        messages: Sequence[ChainMessage],
        wallet: WalletAccount,
        memo: str = "",
        cancel: CancellationToken | None = None,
    ) -> BroadcastResult:
        """``transact`` that raises on failure or on a non-zero deliver code."""
        outcome = await self.transact(messages, wallet, memo, cancel)
        return outcome.unwrap().raise_for_code()

    async def close(self) -> None:
        await self.transport.close()
