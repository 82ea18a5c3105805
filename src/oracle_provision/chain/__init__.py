# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Chain access: messages, fee grants, queries and local signing."""

from .client import ChainQueryClient, find_event_attribute
from .feegrant import FeeAllowance, select_fee_granter
from .messages import ChainMessage
from .signer import BroadcastResult, Fee, LocalKeySigner, TxBackend, TxBodyEncoder, calculate_fee, load_tx_backend

__all__ = [
    "BroadcastResult",
    "ChainMessage",
    "ChainQueryClient",
    "Fee",
    "FeeAllowance",
    "LocalKeySigner",
    "TxBackend",
    "TxBodyEncoder",
    "calculate_fee",
    "find_event_attribute",
    "load_tx_backend",
    "select_fee_granter",
]
