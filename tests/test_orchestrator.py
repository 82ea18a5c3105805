"""Tests for ProvisioningOrchestrator: step order, partial results and resume."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from oracle_provision.chain.messages import MSG_SEND
from oracle_provision.chain.signer import BroadcastResult
from oracle_provision.core.exceptions import (
    ConflictError,
    MessagingError,
    RemoteSigningError,
    SigningFailureReason,
    StepFailedError,
    ValidationError,
)
from oracle_provision.entity.documents import OracleConfig, OracleProfile
from oracle_provision.matrix.provisioner import MessagingAccount, MessagingSecrets
from oracle_provision.orchestrator import ProvisioningOrchestrator, ProvisioningResult, ProvisioningStep

ENTITY_DID = "did:ixo:entity:" + "cd" * 16
PROTOCOL = "did:ixo:entity:" + "ef" * 16
MESSAGING_MNEMONIC = "legal winner thank year wave sausage worth useful legal winner thank yellow"

CREATED = BroadcastResult(
    tx_hash="CREATE",
    events=[{"type": "wasm", "attributes": [{"key": "token_id", "value": ENTITY_DID}]}],
)

ALL_REGISTER_STEPS = ["create_account", "fund_account", "ensure_did", "register_messaging"]


@pytest.fixture
def messaging_account():
    return MessagingAccount(
        home_server_url="https://devmx.ixo.earth",
        user_id="@did-ixo-oracle:devmx.ixo.earth",
        access_token="syt_oracle",
        device_id="DEVICE1",
        room_id="!room:devmx.ixo.earth",
        secrets=MessagingSecrets.from_mnemonic(MESSAGING_MNEMONIC),
    )


@pytest.fixture
def accounts(account):
    provisioner = MagicMock()
    provisioner.create_account = MagicMock(return_value=account)
    provisioner.ensure_did = AsyncMock(return_value=account.did)
    provisioner.close = AsyncMock()
    return provisioner


@pytest.fixture
def messaging(messaging_account, mock_matrix_session):
    provisioner = MagicMock()
    provisioner.register = AsyncMock(return_value=messaging_account)
    provisioner.open_session = MagicMock(return_value=mock_matrix_session)
    provisioner.http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    provisioner.close = AsyncMock()
    return provisioner


@pytest.fixture
def orchestrator(context, identity, mock_signing, accounts, messaging):
    return ProvisioningOrchestrator(context, identity, mock_signing, accounts=accounts, messaging=messaging)


@pytest.fixture
def profile():
    return OracleProfile("Acme", "Price oracle", "https://acme.org/l.png", "https://acme.org/c.png", "CPT", "Prices")


# ============================================================================
# register_oracle
# ============================================================================


class TestRegisterOracle:
    @pytest.mark.asyncio
    async def test_runs_all_steps_in_order(self, orchestrator, account, accounts, messaging, mock_signing):
        result = await orchestrator.register_oracle("123456", "Price oracle")

        assert result.completed == ALL_REGISTER_STEPS
        assert result.address == account.address
        assert result.mnemonic == account.mnemonic
        assert result.pin == "123456"
        assert result.messaging.user_id == "@did-ixo-oracle:devmx.ixo.earth"

        messages, _ = mock_signing.sign.await_args.args
        assert messages[0].type_url == MSG_SEND
        assert messages[0].value["toAddress"] == account.address
        assert messages[0].value["amount"][0]["amount"] == "250000"

        network, services = accounts.ensure_did.await_args.args[1:]
        assert network == "devnet"
        assert services == [
            {"id": f"{account.did}#matrix", "type": "MatrixHomeServer", "serviceEndpoint": "https://devmx.ixo.earth"}
        ]
        messaging.register.assert_awaited_once()
        assert messaging.register.await_args.args == (account, "123456", "Price oracle", None, "https://devmx.ixo.earth")
        assert messaging.register.await_args.kwargs["secrets"] is None

    @pytest.mark.asyncio
    async def test_result_dict(self, orchestrator, account):
        data = (await orchestrator.register_oracle("123456", "Price oracle")).to_dict()

        assert data["address"] == account.address
        assert data["mnemonic"] == account.mnemonic
        assert data["matrixRecoveryPhrase"]
        assert data["pin"] == "123456"
        assert data["completedSteps"] == ALL_REGISTER_STEPS
        assert "entityDid" not in data

    @pytest.mark.asyncio
    async def test_invalid_pin_does_nothing(self, orchestrator, accounts):
        with pytest.raises(ValidationError):
            await orchestrator.register_oracle("abc", "Price oracle")
        accounts.create_account.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_carries_partial_result(self, orchestrator, account, accounts, messaging):
        accounts.ensure_did.side_effect = MessagingError("chain down")

        with pytest.raises(StepFailedError) as exc_info:
            await orchestrator.register_oracle("123456", "Price oracle")

        error = exc_info.value
        assert error.step == "ensure_did"
        assert error.partial.mnemonic == account.mnemonic
        assert error.partial.completed == ["create_account", "fund_account"]
        messaging.register.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_declined_funding(self, orchestrator, mock_signing):
        mock_signing.sign.side_effect = RemoteSigningError("Declined", SigningFailureReason.USER_DECLINED)

        with pytest.raises(StepFailedError) as exc_info:
            await orchestrator.register_oracle("123456", "Price oracle")
        assert exc_info.value.step == "fund_account"
        assert exc_info.value.details["cause"] == "RemoteSigningError"

    @pytest.mark.asyncio
    async def test_resume_skips_completed_steps(self, orchestrator, account, accounts, messaging, mock_signing):
        accounts.ensure_did.side_effect = [MessagingError("chain down"), account.did]
        with pytest.raises(StepFailedError) as exc_info:
            await orchestrator.register_oracle("123456", "Price oracle")

        resumed = ProvisioningResult.from_dict(exc_info.value.partial.to_dict())
        result = await orchestrator.register_oracle("123456", "Price oracle", resume=resumed)

        assert result.completed == ALL_REGISTER_STEPS
        assert result.address == account.address
        accounts.create_account.assert_called_once()
        assert mock_signing.sign.await_count == 1
        assert accounts.ensure_did.await_count == 2

    @pytest.mark.asyncio
    async def test_messaging_failure_keeps_its_secrets(self, orchestrator, messaging, messaging_account):
        async def fail_after_creation(*args, secrets=None, on_secrets=None):
            on_secrets(messaging_account.secrets)
            raise MessagingError("Matrix login failed", operation="login")

        messaging.register.side_effect = fail_after_creation
        with pytest.raises(StepFailedError) as exc_info:
            await orchestrator.register_oracle("123456", "Price oracle")

        partial = exc_info.value.partial.to_dict()
        assert partial["matrixMnemonic"] == MESSAGING_MNEMONIC
        assert partial["matrixPassword"] == messaging_account.secrets.password
        assert "register_messaging" not in partial["completedSteps"]

        messaging.register.side_effect = None
        result = await orchestrator.register_oracle("123456", "Price oracle", resume=ProvisioningResult.from_dict(partial))

        assert messaging.register.await_args.kwargs["secrets"] == messaging_account.secrets
        assert result.completed == ALL_REGISTER_STEPS
        assert result.to_dict()["matrixAccessToken"] == "syt_oracle"


# ============================================================================
# create_oracle
# ============================================================================


class TestCreateOracle:
    @pytest.mark.asyncio
    async def test_full_run(self, orchestrator, mock_signing, profile, mock_matrix_session):
        mock_signing.sign.side_effect = [BroadcastResult(tx_hash="FUND"), CREATED, BroadcastResult(), BroadcastResult()]

        result = await orchestrator.create_oracle("123456", profile, [], OracleConfig("Price oracle", 1), PROTOCOL)

        assert result.entity_did == ENTITY_DID
        assert result.completed == [*ALL_REGISTER_STEPS, "create_entity"]
        assert result.to_dict()["entityDid"] == ENTITY_DID
        assert mock_signing.sign.await_count == 4
        mock_matrix_session.logout.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_registration_failure_keeps_its_step(self, orchestrator, messaging, profile):
        messaging.register.side_effect = MessagingError("room bot down")

        with pytest.raises(StepFailedError) as exc_info:
            await orchestrator.create_oracle("123456", profile, [], OracleConfig("Price oracle", 1), PROTOCOL)

        assert exc_info.value.step == "register_messaging"
        assert exc_info.value.partial.completed == ["create_account", "fund_account", "ensure_did"]

    @pytest.mark.asyncio
    async def test_failure_after_mint_records_entity(self, orchestrator, mock_signing, profile, mock_matrix_session):
        mock_signing.sign.side_effect = [BroadcastResult(tx_hash="FUND"), CREATED, BroadcastResult()]
        mock_matrix_session.upload.side_effect = [
            "mxc://devmx.ixo.earth/p",
            "mxc://devmx.ixo.earth/d",
            MessagingError("quota"),
            "mxc://devmx.ixo.earth/f",
        ]

        with pytest.raises(StepFailedError) as exc_info:
            await orchestrator.create_oracle("123456", profile, [], OracleConfig("Price oracle", 1), PROTOCOL)

        partial = exc_info.value.partial
        assert exc_info.value.step == "create_entity"
        assert partial.entity_did == ENTITY_DID
        assert not partial.done(ProvisioningStep.CREATE_ENTITY)

        with pytest.raises(ConflictError) as conflict:
            await orchestrator.create_oracle(
                "123456", profile, [], OracleConfig("Price oracle", 1), PROTOCOL, resume=partial
            )
        assert conflict.value.existing_id == ENTITY_DID

    @pytest.mark.asyncio
    async def test_resume_after_registration(
        self, orchestrator, account, messaging_account, accounts, messaging, mock_signing, profile
    ):
        resume = ProvisioningResult(
            network="devnet",
            address=account.address,
            did=account.did,
            mnemonic=account.mnemonic,
            messaging=messaging_account,
            completed=list(ALL_REGISTER_STEPS),
        )
        mock_signing.sign.side_effect = [CREATED, BroadcastResult(), BroadcastResult()]

        result = await orchestrator.create_oracle(
            "123456", profile, [], OracleConfig("Price oracle", 1), PROTOCOL, resume=resume
        )

        assert result.entity_did == ENTITY_DID
        accounts.create_account.assert_not_called()
        messaging.register.assert_not_awaited()
        assert mock_signing.sign.await_count == 3

    @pytest.mark.asyncio
    async def test_completed_run_is_returned(self, orchestrator, mock_signing, profile):
        done = ProvisioningResult(network="devnet", entity_did=ENTITY_DID, completed=["create_entity"])

        result = await orchestrator.create_oracle(
            "123456", profile, [], OracleConfig("Price oracle", 1), PROTOCOL, resume=done
        )

        assert result is done
        mock_signing.sign.assert_not_awaited()


class TestProvisioningResult:
    def test_round_trip(self, messaging_account):
        result = ProvisioningResult(
            network="devnet",
            pin="123456",
            address="ixo1abc",
            did="did:ixo:ixo1abc",
            mnemonic="words",
            messaging=messaging_account,
            entity_did=ENTITY_DID,
            completed=["create_account"],
        )
        assert ProvisioningResult.from_dict(result.to_dict()) == result

    def test_round_trip_before_messaging_completes(self, messaging_account):
        result = ProvisioningResult(network="devnet", messaging_secrets=messaging_account.secrets)

        restored = ProvisioningResult.from_dict(result.to_dict())

        assert restored == result
        assert restored.messaging is None

    def test_mark_is_idempotent(self):
        result = ProvisioningResult(network="devnet")
        result.mark(ProvisioningStep.FUND_ACCOUNT)
        result.mark(ProvisioningStep.FUND_ACCOUNT)
        assert result.completed == ["fund_account"]


class TestClose:
    @pytest.mark.asyncio
    async def test_closes_components(self, orchestrator, accounts, messaging):
        await orchestrator.close()
        accounts.close.assert_awaited_once()
        messaging.close.assert_awaited_once()
