"""Global test fixtures for the oracle-provision test suite."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Valid BIP-39 test vector; never holds funds.
TEST_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon abandon abandon abandon abandon abandon about"
)

# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all ORACLE_ environment variables and reset cached settings."""
    from oracle_provision.core.config import clear_settings_cache

    for key in list(os.environ.keys()):
        if key.startswith("ORACLE_"):
            monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def settings(clean_env, tmp_path: Path):
    """Settings with no waits and a throwaway wallet file."""
    from oracle_provision.core.config import ProvisionSettings

    return ProvisionSettings(
        _env_file=None,
        did_settle_delay=0,
        signing_poll_interval=0.01,
        wallet_path=tmp_path / "wallet.json",
    )


@pytest.fixture
def context(settings):
    """Provisioning context on devnet with the default home server."""
    from oracle_provision.core.config import ProvisioningContext

    return ProvisioningContext.from_settings(settings, network="devnet")


# ============================================================================
# Identity Fixtures
# ============================================================================


@pytest.fixture
def account():
    """Deterministic oracle account."""
    from oracle_provision.identity.account import Account

    return Account.from_mnemonic(TEST_MNEMONIC)


@pytest.fixture
def wallet_account():
    """The operator's remote wallet as returned by a SignX login."""
    from oracle_provision.signing.wallet import MatrixLogin, WalletAccount

    return WalletAccount(
        address="ixo1operator0000000000000000000000000000",
        did="did:ixo:ixo1operator0000000000000000000000000000",
        pub_key="02" + "ab" * 32,
        algo="secp256k1",
        network="devnet",
        name="operator",
        matrix=MatrixLogin(
            address="ixo1operator0000000000000000000000000000",
            access_token="syt_operator",
            room_id="!operator:devmx.ixo.earth",
            user_id="@did-ixo-ixo1operator:devmx.ixo.earth",
        ),
    )


@pytest.fixture
def identity(wallet_account):
    from oracle_provision.signing.wallet import Authenticated

    return Authenticated(account=wallet_account, messaging=wallet_account.matrix)


# ============================================================================
# Collaborator Mocks
# ============================================================================


@pytest.fixture
def mock_signing():
    """Remote signing session whose every transaction succeeds."""
    from oracle_provision.chain.signer import BroadcastResult

    session = MagicMock()
    session.sign = AsyncMock(return_value=BroadcastResult(code=0, tx_hash="ABC123", height=10))
    session.close = AsyncMock()
    return session


@pytest.fixture
def mock_matrix_session():
    """A MatrixSession double with every network call mocked."""
    from oracle_provision.matrix.session import MatrixCredentials

    session = MagicMock()
    session.home_server_url = "https://devmx.ixo.earth"
    session.user_id = "@did-ixo-oracle:devmx.ixo.earth"
    session.login = AsyncMock(
        return_value=MatrixCredentials(
            home_server_url="https://devmx.ixo.earth",
            user_id="@did-ixo-oracle:devmx.ixo.earth",
            access_token="syt_oracle",
            device_id="DEVICE1",
        )
    )
    session.set_display_name = AsyncMock()
    session.set_avatar_url = AsyncMock()
    session.upload = AsyncMock(return_value="mxc://devmx.ixo.earth/media1")
    session.resolve_alias = AsyncMock(return_value=None)
    session.join = AsyncMock(return_value="!room:devmx.ixo.earth")
    session.joined_members = AsyncMock(return_value={"@did-ixo-oracle:devmx.ixo.earth"})
    session.put_state = AsyncMock(return_value="$event")
    session.get_state = AsyncMock(return_value=None)
    session.stop = AsyncMock()
    session.logout = AsyncMock()
    return session
