# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Oracle entities and their linked resource documents."""

from .documents import OracleConfig, OracleProfile
from .indexer import submit_to_domain_indexer
from .provisioner import EntityProvisioner, EntityResult, RegisteredOracle

__all__ = [
    "EntityProvisioner",
    "EntityResult",
    "OracleConfig",
    "OracleProfile",
    "RegisteredOracle",
    "submit_to_domain_indexer",
]
