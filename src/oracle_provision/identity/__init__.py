# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Oracle accounts and their DID documents."""

from .account import Account, did_from_address, generate_mnemonic
from .provisioner import AccountProvisioner

__all__ = ["Account", "AccountProvisioner", "did_from_address", "generate_mnemonic"]
