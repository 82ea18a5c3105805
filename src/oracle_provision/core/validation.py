# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Input validation for operator-supplied values.

Each validator returns the cleaned value or raises ValidationError.
"""

from __future__ import annotations

import re
from urllib.parse import urlparse

from .exceptions import ValidationError

PIN_PATTERN = re.compile(r"^\d{6}$")
ENTITY_DID_PATTERN = re.compile(r"^did:ixo:entity:[a-f0-9]{32}$")
DID_PATTERN = re.compile(r"^did:ixo:(entity:[a-f0-9]{32}|ixo1[0-9a-z]{38})$")


def validate_required(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field=field)
    return str(value).strip()


def validate_pin(pin: str) -> str:
    """A PIN is exactly six digits."""
    pin = validate_required(pin, "pin")
    if not PIN_PATTERN.match(pin):
        raise ValidationError("PIN must be exactly 6 digits", field="pin")
    return pin


def validate_url(url: str, field: str = "url") -> str:
    url = validate_required(url, field)
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"Invalid URL: {url}", field=field, value=url)
    return url


def validate_matrix_url(url: str) -> str:
    """An http(s) home server URL without a trailing slash."""
    url = validate_url(url, "matrix_home_server_url")
    if url.endswith("/"):
        raise ValidationError(
            "Matrix home server URL must not end with a slash",
            field="matrix_home_server_url",
            value=url,
        )
    return url


def validate_entity_did(did: str) -> str:
    did = validate_required(did, "entity_did")
    if not ENTITY_DID_PATTERN.match(did):
        raise ValidationError(f"Invalid entity DID: {did}", field="entity_did", value=did)
    return did


def validate_did(did: str, field: str = "did") -> str:
    """Either an entity DID or an account DID (``did:ixo:ixo1...``)."""
    did = validate_required(did, field)
    if not DID_PATTERN.match(did):
        raise ValidationError(f"Invalid DID: {did}", field=field, value=did)
    return did
