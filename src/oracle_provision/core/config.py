# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Core configuration - centralized settings plus the per-run context.

All environment-based configuration flows through :class:`ProvisionSettings`.
Components never read a global mutable map: the orchestrator builds one
:class:`ProvisioningContext` and hands it to every component.

Usage:
    from oracle_provision.core.config import get_settings, ProvisioningContext
    ctx = ProvisioningContext.from_settings(get_settings())
    network = ctx.require_network()
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .networks import Network, NetworkEndpoints, endpoints_for


class ProvisionSettings(BaseSettings):
    """Settings for a provisioning run.

    Every field can be set with an ``ORACLE_``-prefixed environment variable
    or from a ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="ORACLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # NETWORK SETTINGS
    # ==========================================================================

    network: Network | None = Field(
        default=Network.DEVNET,
        description="Chain network: mainnet, testnet or devnet",
    )
    matrix_home_server_url: str | None = Field(
        default=None,
        description="Matrix home server for the oracle (defaults to the network's)",
    )
    tx_backend: str | None = Field(
        default=None,
        description="Import path 'module:attribute' of the chain transaction backend factory",
    )

    # ==========================================================================
    # TIMING SETTINGS
    # ==========================================================================

    signing_poll_interval: float = Field(
        default=2.0,
        description="Seconds between remote signing polls",
    )
    did_settle_delay: float = Field(
        default=0.5,
        description="Seconds to wait after creating a DID before re-querying",
    )
    http_timeout: float = Field(
        default=30.0,
        description="HTTP request timeout in seconds",
    )

    # ==========================================================================
    # FUNDING SETTINGS
    # ==========================================================================

    transfer_amount: int = Field(
        default=250_000,
        description="uixo sent from the operator wallet to a new oracle account",
    )

    # ==========================================================================
    # WALLET SETTINGS
    # ==========================================================================

    wallet_path: Path = Field(
        default=Path.home() / ".oracle-provision" / "wallet.json",
        description="Where the remote-signing login is cached",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
    )


# ==========================================================================
# GLOBAL SETTINGS INSTANCE (lazy loaded)
# ==========================================================================

_settings: ProvisionSettings | None = None


def get_settings() -> ProvisionSettings:
    """Get the process settings instance."""
    global _settings
    if _settings is None:
        _settings = ProvisionSettings()
    return _settings


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    global _settings
    _settings = None


# ==========================================================================
# PROVISIONING CONTEXT
# ==========================================================================


@dataclass(frozen=True)
class ProvisioningContext:
    """Explicit configuration for one provisioning run.

    Immutable: ``with_values`` returns a new context carrying intermediate
    results, so no component mutates state another component reads.
    """

    settings: ProvisionSettings
    network: Network | None = None
    home_server_url: str | None = None
    values: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_settings(
        cls,
        settings: ProvisionSettings,
        network: Network | str | None = None,
        home_server_url: str | None = None,
    ) -> ProvisioningContext:
        chosen = network if network is not None else settings.network
        return cls(
            settings=settings,
            network=Network.parse(chosen) if chosen is not None else None,
            home_server_url=home_server_url or settings.matrix_home_server_url,
        )

    def require_network(self) -> Network:
        if self.network is None:
            raise ConfigurationError("Network is not selected", missing=["network"])
        return self.network

    def require_endpoints(self) -> NetworkEndpoints:
        return endpoints_for(self.require_network())

    def require_home_server_url(self) -> str:
        """The oracle's home server: explicit override, else the network default."""
        if self.home_server_url:
            return self.home_server_url.rstrip("/")
        return self.require_endpoints().matrix_home_server_url

    def require(self, name: str) -> Any:
        value = self.values.get(name)
        if value is None or value == "":
            raise ConfigurationError(f"Value {name} is not set", missing=[name])
        return value

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def with_values(self, **values: Any) -> ProvisioningContext:
        return replace(self, values={**self.values, **values})

    def with_network(self, network: Network | str) -> ProvisioningContext:
        return replace(self, network=Network.parse(network))
