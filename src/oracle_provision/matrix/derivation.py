# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Deterministic Matrix identifiers and secrets.

Everything here is a pure function of an address or a mnemonic, so the
credentials of an oracle can be re-derived without any stored state.
"""

from __future__ import annotations

import base64
import hashlib
import re
from typing import Any

from ..core.exceptions import ValidationError

USERNAME_PREFIX = "did-ixo-"
PASSWORD_LENGTH = 24
PASSPHRASE_LENGTH = 32

_SCHEME = re.compile(r"^https?://")


def _compact(mnemonic: str) -> bytes:
    return mnemonic.replace(" ", "").encode("utf-8")


def username_from_address(address: str) -> str:
    if not address:
        raise ValidationError("Address is required to generate matrix username", field="address")
    return USERNAME_PREFIX + address


def password_from_mnemonic(mnemonic: str) -> str:
    """First 24 chars of base64 over the hex MD5 digest of the space-stripped mnemonic."""
    hex_digest = hashlib.md5(_compact(mnemonic)).hexdigest()
    return base64.b64encode(hex_digest.encode("ascii")).decode("ascii")[:PASSWORD_LENGTH]


def passphrase_from_mnemonic(mnemonic: str) -> str:
    """First 32 chars of base64 over SHA-256 of the space-stripped mnemonic.

    Used as the secret storage passphrase and handed to the operator as the
    recovery phrase.
    """
    digest = hashlib.sha256(_compact(mnemonic)).digest()
    return base64.b64encode(digest).decode("ascii")[:PASSPHRASE_LENGTH]


def clean_home_server_url(home_server_url: str) -> str:
    """Strip the scheme and a trailing slash: ``https://mx.ixo.earth/`` -> ``mx.ixo.earth``."""
    cleaned = _SCHEME.sub("", home_server_url)
    return cleaned[:-1] if cleaned.endswith("/") else cleaned


def room_name_from_address(address: str, suffix: str = "") -> str:
    return USERNAME_PREFIX + address + suffix


def room_alias_from_address(address: str, home_server_url: str) -> str:
    return f"#{room_name_from_address(address)}:{clean_home_server_url(home_server_url)}"


def normalize_username(raw_username: str) -> str:
    username = raw_username[1:] if raw_username.startswith("@") else raw_username
    return username.strip()


def user_id_from_username(username: str, home_server_url: str) -> str:
    return f"@{normalize_username(username)}:{clean_home_server_url(home_server_url)}"


def home_server_from_user_id(user_id: str) -> str:
    """``@alice:mx.ixo.earth`` -> ``mx.ixo.earth``."""
    parts = user_id.split(":")
    if len(parts) < 2:
        raise ValidationError(f"Invalid Matrix user id: {user_id}", field="user_id", value=user_id)
    return ":".join(parts[1:])


def password_auth(user_id: str, password: str, session: str | None = None) -> dict[str, Any]:
    """User-interactive auth object for the password stage."""
    auth: dict[str, Any] = {
        "type": "m.login.password",
        "password": password,
        "identifier": {"type": "m.id.user", "user": user_id},
    }
    if session:
        auth["session"] = session
    return auth
