# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Operator wallet identity from a remote-signing login, and its local cache."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..chain.messages import msg_send
from ..core.exceptions import ConfigurationError, ValidationError

if TYPE_CHECKING:
    from ..chain.signer import BroadcastResult
    from .session import CancellationToken, RemoteSigningSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatrixLogin:
    """Messaging credentials the wallet app hands over at login."""

    address: str
    access_token: str
    room_id: str
    user_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MatrixLogin:
        return cls(
            address=data.get("address", ""),
            access_token=data.get("accessToken", data.get("access_token", "")),
            room_id=data.get("roomId", data.get("room_id", "")),
            user_id=data.get("userId", data.get("user_id", "")),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "address": self.address,
            "accessToken": self.access_token,
            "roomId": self.room_id,
            "userId": self.user_id,
        }


@dataclass(frozen=True)
class WalletAccount:
    """The human-held wallet that authorizes operator transactions."""

    address: str
    did: str
    pub_key: str
    algo: str
    network: str
    name: str = ""
    ledgered: bool = False
    matrix: MatrixLogin | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WalletAccount:
        missing = [key for key in ("address", "did", "pubKey", "algo") if not data.get(key)]
        if missing:
            raise ValidationError(f"Wallet login is missing {', '.join(missing)}", field=missing[0])
        matrix = data.get("matrix")
        return cls(
            address=data["address"],
            did=data["did"],
            pub_key=data["pubKey"],
            algo=data["algo"],
            network=data.get("network", ""),
            name=data.get("name", ""),
            ledgered=bool(data.get("ledgered", False)),
            matrix=MatrixLogin.from_dict(matrix) if matrix else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["pubKey"] = data.pop("pub_key")
        data["matrix"] = self.matrix.to_dict() if self.matrix else None
        return data

    @property
    def key_type(self) -> str:
        return "ed" if self.algo == "ed25519" else "secp"

    @property
    def public_key_bytes(self) -> bytes:
        try:
            return bytes.fromhex(self.pub_key)
        except ValueError:
            return self.pub_key.encode()


@dataclass(frozen=True)
class Unauthenticated:
    """No operator wallet is logged in."""


@dataclass(frozen=True)
class Authenticated:
    account: WalletAccount
    messaging: MatrixLogin | None = None


Identity = Unauthenticated | Authenticated


def require_authenticated(identity: Identity) -> Authenticated:
    if not isinstance(identity, Authenticated):
        raise ConfigurationError("No wallet logged in, run 'oracle-provision login' first", missing=["wallet"])
    return identity


class WalletStore:
    """Caches the login result as JSON so later runs skip the QR login."""

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    def load(self) -> Identity:
        if not self.path.exists():
            logger.debug(f"No wallet file at {self.path}")
            return Unauthenticated()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            account = WalletAccount.from_dict(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable wallet file {self.path}: {e}")
            return Unauthenticated()
        return Authenticated(account=account, messaging=account.matrix)

    def save(self, account: WalletAccount) -> Authenticated:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(account.to_dict(), indent=2), encoding="utf-8")
        os.chmod(tmp, 0o600)
        tmp.replace(self.path)
        logger.info(f"Wallet saved to {self.path}")
        return Authenticated(account=account, messaging=account.matrix)

    def clear(self) -> bool:
        """Remove the cached login. Returns False when there was nothing to remove."""
        if not self.path.exists():
            return False
        self.path.unlink()
        logger.info(f"Wallet file {self.path} removed")
        return True


async def send_tokens(
    identity: Identity,
    session: RemoteSigningSession,
    to_address: str,
    amount: int,
    denom: str = "uixo",
    cancel: CancellationToken | None = None,
) -> BroadcastResult:
    """Transfer funds from the operator wallet, authorized on the mobile device."""
    auth = require_authenticated(identity)
    msg = msg_send(auth.account.address, to_address, amount, denom)
    logger.info(f"Sign to send {amount}{denom} to {to_address}")
    return await session.sign([msg], auth.account, cancel=cancel)
