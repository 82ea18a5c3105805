# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""oracle-provision - decentralized identity provisioning for ixo oracles.

A run creates a blockchain account with a DID document, a Matrix account with
cross-signing and a private data room, and optionally an on-chain entity with
its linked resources. Transactions the operator must authorize are signed on
a mobile wallet through SignX.
"""

from .core.exceptions import ProvisioningError, StepFailedError
from .orchestrator import ProvisioningOrchestrator, ProvisioningResult, ProvisioningStep

__version__ = "0.1.0"

__all__ = [
    "ProvisioningError",
    "ProvisioningOrchestrator",
    "ProvisioningResult",
    "ProvisioningStep",
    "StepFailedError",
    "__version__",
]
