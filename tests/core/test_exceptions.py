"""Tests for oracle_provision.core.exceptions module."""

from __future__ import annotations

from oracle_provision.core.exceptions import (
    BroadcastError,
    ConfigurationError,
    ConflictError,
    CrossSigningError,
    MessagingError,
    ProvisioningError,
    RemoteSigningError,
    RoomError,
    SigningFailureReason,
    SigningSessionBusyError,
    StepFailedError,
    UploadError,
)

# ============================================================================
# ProvisioningError
# ============================================================================


class TestProvisioningError:
    def test_to_dict(self):
        exc = ProvisioningError("Something went wrong", details={"a": 1}, step="ensure_did")
        assert exc.to_dict() == {
            "error": "ProvisioningError",
            "message": "Something went wrong",
            "details": {"a": 1},
            "step": "ensure_did",
        }

    def test_to_dict_without_step(self):
        assert "step" not in ProvisioningError("x").to_dict()

    def test_configuration_error_lists_missing(self):
        exc = ConfigurationError("Network is not selected", missing=["network"])
        assert exc.details == {"missing": ["network"]}
        assert isinstance(exc, ProvisioningError)

    def test_conflict_error_keeps_existing_id(self):
        exc = ConflictError("Matrix account already exists", existing_id="@did-ixo-ixo1:mx")
        assert exc.existing_id == "@did-ixo-ixo1:mx"


# ============================================================================
# Remote signing errors
# ============================================================================


class TestRemoteSigningError:
    """Declined and channel failures are distinguishable."""

    def test_user_declined_is_not_retryable(self):
        exc = RemoteSigningError("Declined", SigningFailureReason.USER_DECLINED)
        assert not exc.retryable
        assert exc.details["reason"] == "user_declined"

    def test_channel_failure_is_retryable(self):
        assert RemoteSigningError("Down", SigningFailureReason.CHANNEL_FAILURE).retryable

    def test_busy_error(self):
        exc = SigningSessionBusyError()
        assert exc.reason == SigningFailureReason.BUSY
        assert isinstance(exc, RemoteSigningError)


# ============================================================================
# Other errors
# ============================================================================


class TestOtherErrors:
    def test_broadcast_error_message(self):
        exc = BroadcastError(5, "insufficient funds", "HASH", 42)
        assert "Code: 5" in exc.message
        assert exc.details["raw_log"] == "insufficient funds"

    def test_upload_error_details(self):
        exc = UploadError("failed", file_name="profile.json", status_code=500)
        assert exc.details == {"file_name": "profile.json", "status_code": 500}

    def test_messaging_hierarchy(self):
        assert issubclass(RoomError, MessagingError)
        assert issubclass(CrossSigningError, MessagingError)

    def test_step_failed_error_wraps_cause(self):
        cause = UploadError("upload failed", file_name="fees.json")
        exc = StepFailedError("create_entity", cause, partial={"address": "ixo1"})

        assert exc.step == "create_entity"
        assert exc.cause is cause
        assert exc.partial == {"address": "ixo1"}
        assert exc.message == "Step 'create_entity' failed: upload failed"
        assert exc.details["cause"] == "UploadError"
        assert exc.details["cause_details"] == {"file_name": "fees.json"}

    def test_step_failed_error_plain_exception(self):
        exc = StepFailedError("fund_account", RuntimeError("boom"))
        assert exc.message == "Step 'fund_account' failed: boom"
        assert "cause_details" not in exc.details
