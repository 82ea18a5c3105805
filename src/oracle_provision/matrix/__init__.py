# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Matrix messaging accounts: registration, cross-signing, private room, uploads."""

from .crosssigning import CrossSigningBootstrapper, RecoveryKey, SecretStorageKeyCache
from .provisioner import DEVICE_NAME, MessagingAccount, MessagingAccountProvisioner, MessagingSecrets
from .rooms import RoomBotClient, ensure_private_room
from .session import MatrixCredentials, MatrixSession, mxc_to_http
from .upload import UploadedResource, public_upload

__all__ = [
    "DEVICE_NAME",
    "CrossSigningBootstrapper",
    "MatrixCredentials",
    "MatrixSession",
    "MessagingAccount",
    "MessagingAccountProvisioner",
    "MessagingSecrets",
    "RecoveryKey",
    "RoomBotClient",
    "SecretStorageKeyCache",
    "UploadedResource",
    "ensure_private_room",
    "mxc_to_http",
    "public_upload",
]
