"""Tests for the oracle-provision CLI.

Tests cover:
1. Argument parsing
2. Wallet commands against a temporary wallet file
3. Provisioning commands with the orchestrator patched out
4. Exit codes and partial-result output on failure
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from oracle_provision.cli.main import app, main
from oracle_provision.core.exceptions import MessagingError, StepFailedError
from oracle_provision.orchestrator import ProvisioningResult

ENTITY_DID = "did:ixo:entity:" + "cd" * 16


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("oracle_provision.cli.main.configure_logging") as configure:
        yield configure


@pytest.fixture
def wallet_path(clean_env, monkeypatch, tmp_path):
    path = tmp_path / "wallet.json"
    monkeypatch.setenv("ORACLE_WALLET_PATH", str(path))
    return path


@pytest.fixture
def logged_in(wallet_path, wallet_account):
    from oracle_provision.signing.wallet import WalletStore

    WalletStore(wallet_path).save(wallet_account)
    return wallet_account


@pytest.fixture
def signing():
    session = MagicMock()
    session.close = AsyncMock()
    return session


def _orchestrator(**methods) -> MagicMock:
    orchestrator = MagicMock()
    for name, mock in methods.items():
        setattr(orchestrator, name, mock)
    orchestrator.close = AsyncMock()
    return orchestrator


# ============================================================================
# Argument parsing
# ============================================================================


class TestArgumentParsing:
    """Test CLI argument parsing."""

    def test_create_entity_args(self):
        args = app().parse_args(
            [
                "--network",
                "testnet",
                "create-entity",
                "--pin",
                "123456",
                "--profile",
                "profile.json",
                "--parent-protocol",
                "did:ixo:entity:abc",
                "--oracle-name",
                "Oracle",
                "--price",
                "2.5",
            ]
        )
        assert args.network == "testnet"
        assert args.price == 2.5
        assert args.services is None
        assert args.func.__name__ == "cmd_create_entity"

    def test_add_controller_args(self):
        args = app().parse_args(
            ["update-entity", "add-controller", "--entity-did", ENTITY_DID, "--controller-did", "did:ixo:ixo1x"]
        )
        assert args.func.__name__ == "cmd_add_controller"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            app().parse_args([])

    def test_invalid_network(self):
        with pytest.raises(SystemExit):
            app().parse_args(["--network", "moonnet", "whoami"])

    def test_verbose_sets_debug(self, wallet_path, no_logging_setup):
        main(["-v", "logout"])
        no_logging_setup.assert_called_once_with(level="DEBUG", json_format=None)


# ============================================================================
# Wallet commands
# ============================================================================


class TestWalletCommands:
    def test_whoami_not_logged_in(self, wallet_path, capsys):
        assert main(["whoami"]) == 1

        error = json.loads(capsys.readouterr().err)
        assert error["error"] == "ConfigurationError"
        assert error["details"]["missing"] == ["wallet"]

    def test_whoami(self, logged_in, capsys):
        assert main(["whoami"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["address"] == logged_in.address
        assert output["matrixUserId"] == logged_in.matrix.user_id

    def test_logout(self, logged_in, wallet_path, capsys):
        assert main(["logout"]) == 0
        assert json.loads(capsys.readouterr().out) == {"loggedOut": True}
        assert not wallet_path.exists()

    def test_login_saves_wallet(self, wallet_path, wallet_account, signing, capsys):
        from oracle_provision.signing.session import SigningSuccess

        signing.login = AsyncMock(return_value=SigningSuccess(wallet_account))
        with patch("oracle_provision.cli.commands.wallet.signing_session", return_value=signing):
            assert main(["login"]) == 0

        assert json.loads(capsys.readouterr().out)["did"] == wallet_account.did
        assert wallet_path.exists()
        signing.close.assert_awaited_once()


# ============================================================================
# Provisioning commands
# ============================================================================


class TestCreateUser:
    def test_prints_result(self, logged_in, signing, capsys):
        result = ProvisioningResult(network="devnet", pin="123456", address="ixo1oracle", completed=["create_account"])
        orchestrator = _orchestrator(register_oracle=AsyncMock(return_value=result))

        with (
            patch("oracle_provision.cli.commands.user.signing_session", return_value=signing),
            patch("oracle_provision.cli.commands.user.ProvisioningOrchestrator", return_value=orchestrator),
        ):
            assert main(["create-user", "--pin", "123456", "--oracle-name", "Oracle"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["address"] == "ixo1oracle"
        assert output["pin"] == "123456"
        orchestrator.register_oracle.assert_awaited_once_with("123456", "Oracle", avatar_url=None, resume=None)
        orchestrator.close.assert_awaited_once()
        signing.close.assert_awaited_once()

    def test_failure_prints_partial(self, logged_in, signing, capsys):
        partial = ProvisioningResult(network="devnet", address="ixo1oracle", mnemonic="secret words")
        error = StepFailedError("register_messaging", MessagingError("room bot down"), partial=partial)
        orchestrator = _orchestrator(register_oracle=AsyncMock(side_effect=error))

        with (
            patch("oracle_provision.cli.commands.user.signing_session", return_value=signing),
            patch("oracle_provision.cli.commands.user.ProvisioningOrchestrator", return_value=orchestrator),
        ):
            assert main(["create-user", "--pin", "123456", "--oracle-name", "Oracle"]) == 1

        captured = capsys.readouterr()
        assert json.loads(captured.out)["partial"]["mnemonic"] == "secret words"
        assert json.loads(captured.err)["step"] == "register_messaging"
        signing.close.assert_awaited_once()

    def test_resume_file(self, logged_in, signing, tmp_path):
        resume_file = tmp_path / "partial.json"
        resume_file.write_text(json.dumps({"network": "devnet", "address": "ixo1oracle", "completedSteps": ["create_account"]}))
        result = ProvisioningResult(network="devnet")
        orchestrator = _orchestrator(register_oracle=AsyncMock(return_value=result))

        with (
            patch("oracle_provision.cli.commands.user.signing_session", return_value=signing),
            patch("oracle_provision.cli.commands.user.ProvisioningOrchestrator", return_value=orchestrator),
        ):
            main(["create-user", "--pin", "123456", "--oracle-name", "Oracle", "--resume", str(resume_file)])

        resume = orchestrator.register_oracle.await_args.kwargs["resume"]
        assert resume.address == "ixo1oracle"
        assert resume.completed == ["create_account"]


class TestCreateEntity:
    def test_profile_and_services(self, logged_in, signing, tmp_path, capsys):
        profile_file = tmp_path / "profile.json"
        profile_file.write_text(json.dumps({"orgName": "Acme", "name": "Oracle", "logo": "l", "coverImage": "c"}))
        services_file = tmp_path / "services.json"
        services_file.write_text(json.dumps([{"id": "{id}#api", "type": "API", "serviceEndpoint": "https://a"}]))
        result = ProvisioningResult(network="devnet", entity_did=ENTITY_DID)
        orchestrator = _orchestrator(create_oracle=AsyncMock(return_value=result))

        with (
            patch("oracle_provision.cli.commands.entity.signing_session", return_value=signing),
            patch("oracle_provision.cli.commands.entity.ProvisioningOrchestrator", return_value=orchestrator),
        ):
            code = main(
                [
                    "create-entity",
                    "--pin",
                    "123456",
                    "--profile",
                    str(profile_file),
                    "--services",
                    str(services_file),
                    "--parent-protocol",
                    "did:ixo:entity:" + "ef" * 16,
                    "--oracle-name",
                    "Oracle",
                    "--price",
                    "3",
                ]
            )

        assert code == 0
        assert json.loads(capsys.readouterr().out)["entityDid"] == ENTITY_DID
        pin, profile, services, config, protocol = orchestrator.create_oracle.await_args.args
        assert profile.org_name == "Acme"
        assert services[0]["id"] == "{id}#api"
        assert config.price == 3
        assert protocol.endswith("ef" * 16)

    def test_missing_profile_file(self, logged_in, capsys):
        code = main(
            [
                "create-entity",
                "--pin",
                "123456",
                "--profile",
                "/nonexistent/profile.json",
                "--parent-protocol",
                "did:ixo:entity:abc",
                "--oracle-name",
                "Oracle",
            ]
        )

        assert code == 1
        assert json.loads(capsys.readouterr().err)["details"]["field"] == "profile"

    def test_services_must_be_list(self, logged_in, tmp_path, capsys):
        profile_file = tmp_path / "profile.json"
        profile_file.write_text("{}")
        services_file = tmp_path / "services.json"
        services_file.write_text('{"id": "x"}')

        code = main(
            [
                "create-entity",
                "--pin",
                "123456",
                "--profile",
                str(profile_file),
                "--services",
                str(services_file),
                "--parent-protocol",
                "did:ixo:entity:abc",
                "--oracle-name",
                "Oracle",
            ]
        )

        assert code == 1
        assert "JSON list" in json.loads(capsys.readouterr().err)["message"]


class TestAddController:
    def test_prints_tx_hash(self, logged_in, signing, capsys):
        from oracle_provision.chain.signer import BroadcastResult

        entities = MagicMock()
        entities.add_controller = AsyncMock(return_value=BroadcastResult(tx_hash="CTRL"))
        messaging = MagicMock()
        messaging.close = AsyncMock()

        with (
            patch("oracle_provision.cli.commands.entity.signing_session", return_value=signing),
            patch("oracle_provision.cli.commands.entity.MessagingAccountProvisioner", return_value=messaging),
            patch("oracle_provision.cli.commands.entity.EntityProvisioner", return_value=entities),
        ):
            code = main(
                ["update-entity", "add-controller", "--entity-did", ENTITY_DID, "--controller-did", "did:ixo:ixo1x"]
            )

        assert code == 0
        assert json.loads(capsys.readouterr().out) == {
            "entityDid": ENTITY_DID,
            "controllerDid": "did:ixo:ixo1x",
            "txHash": "CTRL",
        }
        messaging.close.assert_awaited_once()
