# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Exception hierarchy for oracle provisioning.

Every provisioning step either returns a fully-populated value or raises one
of these. Callers decide whether to retry based on the concrete type.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ProvisioningError(Exception):
    """Base exception for all provisioning errors.

    ``step`` names the pipeline step that failed, when known.
    """

    def __init__(self, message: str, details: dict | None = None, step: str | None = None):
        self.message = message
        self.details = details or {}
        self.step = step
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }
        if self.step:
            data["step"] = self.step
        return data


class ConfigurationError(ProvisioningError):
    """A required value from configuration or a prior step is missing.

    Always a caller bug. Never retried.
    """

    def __init__(self, message: str, missing: list[str] | None = None):
        details = {}
        if missing:
            details["missing"] = missing
        super().__init__(message, details)
        self.missing = missing or []


class ValidationError(ProvisioningError):
    """Raised when user-supplied input is malformed."""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class ConflictError(ProvisioningError):
    """A resource already exists and cannot be created again.

    Terminal: retrying will not help.
    """

    def __init__(self, message: str, existing_id: str | None = None):
        details = {}
        if existing_id:
            details["existing_id"] = existing_id
        super().__init__(message, details)
        self.existing_id = existing_id


class SigningFailureReason(StrEnum):
    """Why a remote signing flow did not produce a result."""

    USER_DECLINED = "user_declined"
    CHANNEL_FAILURE = "channel_failure"
    CANCELLED = "cancelled"
    BUSY = "busy"


class RemoteSigningError(ProvisioningError):
    """The remote wallet rejected a request or could not be reached.

    ``reason`` separates a human declining from a broken channel so callers
    can choose whether a retry makes sense.
    """

    def __init__(self, message: str, reason: SigningFailureReason, request_id: str | None = None):
        details: dict[str, Any] = {"reason": str(reason)}
        if request_id:
            details["request_id"] = request_id
        super().__init__(message, details)
        self.reason = reason
        self.request_id = request_id

    @property
    def retryable(self) -> bool:
        return self.reason == SigningFailureReason.CHANNEL_FAILURE


class SigningSessionBusyError(RemoteSigningError):
    """A second flow was started while another one is still in flight."""

    def __init__(self, message: str = "Remote signing session already has a request in flight"):
        super().__init__(message, SigningFailureReason.BUSY)


class ConfirmationTimeoutError(ProvisioningError):
    """A created resource could not be observed on re-query.

    Safe to retry the whole step: creation is guarded by an existence check.
    """

    def __init__(self, message: str, resource_id: str | None = None):
        details = {}
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message, details)
        self.resource_id = resource_id


class UploadError(ProvisioningError):
    """Content upload to messaging storage failed."""

    def __init__(self, message: str, file_name: str | None = None, status_code: int | None = None):
        details: dict[str, Any] = {}
        if file_name:
            details["file_name"] = file_name
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details)
        self.file_name = file_name
        self.status_code = status_code


class ChainQueryError(ProvisioningError):
    """A chain query failed for a reason other than "not found"."""

    def __init__(self, message: str, path: str | None = None):
        details = {}
        if path:
            details["path"] = path
        super().__init__(message, details)
        self.path = path


class BroadcastError(ProvisioningError):
    """A broadcast transaction was delivered but not accepted (non-zero code)."""

    def __init__(self, code: int, raw_log: str = "", tx_hash: str = "", height: int | None = None):
        message = f"Error when broadcasting tx {tx_hash} at height {height}. Code: {code}; Raw log: {raw_log}"
        super().__init__(
            message,
            {"code": code, "raw_log": raw_log, "tx_hash": tx_hash, "height": height},
        )
        self.code = code
        self.raw_log = raw_log
        self.tx_hash = tx_hash
        self.height = height


class MessagingError(ProvisioningError):
    """A messaging (Matrix) operation failed."""

    def __init__(self, message: str, operation: str | None = None, errcode: str | None = None):
        details = {}
        if operation:
            details["operation"] = operation
        if errcode:
            details["errcode"] = errcode
        super().__init__(message, details)
        self.operation = operation
        self.errcode = errcode


class RoomError(MessagingError):
    """The private data room could not be resolved, created or joined."""


class CrossSigningError(MessagingError):
    """End-to-end encryption cross-signing bootstrap failed."""


class DecryptionError(ProvisioningError):
    """An encrypted secret could not be decrypted with the supplied PIN."""


class StepFailedError(ProvisioningError):
    """A pipeline step failed; carries the partial result for a resumed run."""

    def __init__(self, step: str, cause: Exception, partial: Any = None):
        cause_message = cause.message if isinstance(cause, ProvisioningError) else str(cause)
        details: dict[str, Any] = {"cause": cause.__class__.__name__}
        if isinstance(cause, ProvisioningError) and cause.details:
            details["cause_details"] = cause.details
        super().__init__(f"Step '{step}' failed: {cause_message}", details, step=step)
        self.cause = cause
        self.partial = partial
