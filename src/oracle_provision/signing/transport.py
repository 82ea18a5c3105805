# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""HTTP transport for the SignX relay.

The relay stores a request under a random hash. The mobile wallet scans a QR
code carrying that hash, answers through the relay, and this process polls
for the answer. A pending request is polled again; any HTTP or transport
problem becomes a channel failure.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import httpx

from ..core.exceptions import RemoteSigningError, SigningFailureReason

logger = logging.getLogger(__name__)

SITE_NAME = "IXO Oracles CLI"
PROTOCOL_VERSION = 1
LOGIN_TYPE = "SIGN_X_LOGIN"
TRANSACT_TYPE = "SIGN_X_TRANSACT"

# Relay codes for "no answer yet".
_PENDING_CODES = {404, 418}


class RelayStatus(StrEnum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class RelayResponse:
    status: RelayStatus
    data: dict[str, Any] | None = None
    error: str | None = None


@dataclass(frozen=True)
class RelayRequest:
    """A request parked on the relay, and the payload the wallet must scan."""

    hash: str
    secure_nonce: str
    qr_payload: dict[str, Any] = field(default_factory=dict)

    @property
    def secure_hash(self) -> str:
        return hashlib.sha256(f"{self.hash}{self.secure_nonce}".encode()).hexdigest()


class SignXTransport:
    """Talks to the SignX relay for one network."""

    def __init__(
        self,
        endpoint: str,
        network: str,
        sitename: str = SITE_NAME,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.network = network
        self.sitename = sitename
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        try:
            return await self._client.post(f"{self.endpoint}{path}", json=payload)
        except httpx.HTTPError as e:
            raise RemoteSigningError(
                f"SignX relay unreachable: {e}",
                SigningFailureReason.CHANNEL_FAILURE,
            ) from e

    def _new_request(self, kind: str, **extra: Any) -> RelayRequest:
        request_hash = secrets.token_hex(32)
        nonce = secrets.token_hex(16)
        qr_payload = {
            "type": kind,
            "origin": self.sitename,
            "network": self.network,
            "version": PROTOCOL_VERSION,
            "hash": request_hash,
            "secureNonce": nonce,
            **extra,
        }
        return RelayRequest(hash=request_hash, secure_nonce=nonce, qr_payload=qr_payload)

    async def _create(self, path: str, request: RelayRequest, data: dict[str, Any]) -> None:
        resp = await self._post(
            path,
            {"hash": request.hash, "secureHash": request.secure_hash, "data": data},
        )
        if resp.status_code >= 400:
            raise RemoteSigningError(
                f"SignX relay rejected request: {resp.status_code} {resp.text}",
                SigningFailureReason.CHANNEL_FAILURE,
                request_id=request.hash,
            )

    async def _poll(self, path: str, request: RelayRequest) -> RelayResponse:
        resp = await self._post(path, {"hash": request.hash, "secureNonce": request.secure_nonce})
        if resp.status_code in _PENDING_CODES:
            return RelayResponse(RelayStatus.PENDING)
        if resp.status_code >= 400:
            raise RemoteSigningError(
                f"SignX relay poll failed: {resp.status_code} {resp.text}",
                SigningFailureReason.CHANNEL_FAILURE,
                request_id=request.hash,
            )
        try:
            body = resp.json()
        except ValueError as e:
            raise RemoteSigningError(
                "SignX relay returned invalid JSON",
                SigningFailureReason.CHANNEL_FAILURE,
                request_id=request.hash,
            ) from e
        return parse_relay_body(body)

    async def create_login(self, matrix: bool = True) -> RelayRequest:
        request = self._new_request(LOGIN_TYPE, matrix=matrix)
        await self._create("/login/create", request, {"matrix": matrix, "network": self.network})
        return request

    async def poll_login(self, request: RelayRequest) -> RelayResponse:
        return await self._poll("/login/fetch", request)

    async def create_transaction(self, payload: dict[str, Any]) -> RelayRequest:
        request = self._new_request(TRANSACT_TYPE)
        await self._create("/transaction/create", request, payload)
        return request

    async def poll_transaction(self, request: RelayRequest) -> RelayResponse:
        return await self._poll("/transaction/response", request)


def parse_relay_body(body: dict[str, Any]) -> RelayResponse:
    """Map a relay JSON body to pending, success or failure."""
    code = body.get("code")
    if code in _PENDING_CODES:
        return RelayResponse(RelayStatus.PENDING)
    if body.get("success") is False or body.get("error"):
        error = body.get("error") or body.get("message") or "Request rejected"
        if isinstance(error, dict):
            error = error.get("message", str(error))
        return RelayResponse(RelayStatus.FAILURE, error=str(error))
    data = body.get("data")
    if not data:
        return RelayResponse(RelayStatus.PENDING)
    return RelayResponse(RelayStatus.SUCCESS, data=data)
