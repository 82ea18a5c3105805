# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Core infrastructure: configuration, networks, errors, logging, content proofs."""

from .config import ProvisioningContext, ProvisionSettings, clear_settings_cache, get_settings
from .exceptions import (
    BroadcastError,
    ChainQueryError,
    ConfigurationError,
    ConfirmationTimeoutError,
    ConflictError,
    CrossSigningError,
    DecryptionError,
    MessagingError,
    ProvisioningError,
    RemoteSigningError,
    RoomError,
    SigningFailureReason,
    SigningSessionBusyError,
    StepFailedError,
    UploadError,
    ValidationError,
)
from .networks import Network, NetworkEndpoints, derive_matrix_urls, endpoints_for

__all__ = [
    "BroadcastError",
    "ChainQueryError",
    "ConfigurationError",
    "ConfirmationTimeoutError",
    "ConflictError",
    "CrossSigningError",
    "DecryptionError",
    "MessagingError",
    "Network",
    "NetworkEndpoints",
    "ProvisionSettings",
    "ProvisioningContext",
    "ProvisioningError",
    "RemoteSigningError",
    "RoomError",
    "SigningFailureReason",
    "SigningSessionBusyError",
    "StepFailedError",
    "UploadError",
    "ValidationError",
    "clear_settings_cache",
    "derive_matrix_urls",
    "endpoints_for",
    "get_settings",
]
