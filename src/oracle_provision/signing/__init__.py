# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Remote signing with a human-held wallet over SignX."""

from .session import (
    CancellationToken,
    LoginState,
    RemoteSigningSession,
    SigningFailure,
    SigningOutcome,
    SigningSuccess,
    TransactState,
)
from .transport import SignXTransport
from .wallet import Authenticated, Identity, MatrixLogin, Unauthenticated, WalletAccount, WalletStore, send_tokens

__all__ = [
    "Authenticated",
    "CancellationToken",
    "Identity",
    "LoginState",
    "MatrixLogin",
    "RemoteSigningSession",
    "SignXTransport",
    "SigningFailure",
    "SigningOutcome",
    "SigningSuccess",
    "TransactState",
    "Unauthenticated",
    "WalletAccount",
    "WalletStore",
    "send_tokens",
]
