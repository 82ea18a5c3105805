"""Tests for deterministic Matrix identifiers and secrets."""

from __future__ import annotations

import pytest

from oracle_provision.core.exceptions import ValidationError
from oracle_provision.matrix.derivation import (
    clean_home_server_url,
    home_server_from_user_id,
    normalize_username,
    passphrase_from_mnemonic,
    password_auth,
    password_from_mnemonic,
    room_alias_from_address,
    user_id_from_username,
    username_from_address,
)

MNEMONIC = "legal winner thank year wave sausage worth useful legal winner thank yellow"
ADDRESS = "ixo1" + "q" * 38


class TestSecrets:
    """Secrets are pure functions of the mnemonic."""

    def test_password_is_deterministic(self):
        assert password_from_mnemonic(MNEMONIC) == password_from_mnemonic(MNEMONIC)
        assert len(password_from_mnemonic(MNEMONIC)) == 24

    def test_passphrase_is_deterministic(self):
        assert passphrase_from_mnemonic(MNEMONIC) == passphrase_from_mnemonic(MNEMONIC)
        assert len(passphrase_from_mnemonic(MNEMONIC)) == 32

    def test_spaces_are_ignored(self):
        assert password_from_mnemonic("a b c") == password_from_mnemonic("abc")

    def test_password_differs_from_passphrase(self):
        assert password_from_mnemonic(MNEMONIC) != passphrase_from_mnemonic(MNEMONIC)

    def test_different_mnemonics(self):
        other = MNEMONIC.replace("yellow", "wrong")
        assert password_from_mnemonic(MNEMONIC) != password_from_mnemonic(other)

    def test_known_password(self):
        # base64 of the hex md5 of "" starts with the base64 of "d41d8cd9..."
        assert password_from_mnemonic("") == "ZDQxZDhjZDk4ZjAwYjIwNGU5"


class TestIdentifiers:
    def test_username(self):
        assert username_from_address(ADDRESS) == f"did-ixo-{ADDRESS}"

    def test_username_requires_address(self):
        with pytest.raises(ValidationError):
            username_from_address("")

    @pytest.mark.parametrize(
        "url",
        ["https://devmx.ixo.earth", "https://devmx.ixo.earth/", "http://devmx.ixo.earth"],
    )
    def test_clean_home_server(self, url):
        assert clean_home_server_url(url) == "devmx.ixo.earth"

    def test_room_alias_is_stable(self):
        alias = room_alias_from_address(ADDRESS, "https://devmx.ixo.earth/")
        assert alias == f"#did-ixo-{ADDRESS}:devmx.ixo.earth"
        assert alias == room_alias_from_address(ADDRESS, "https://devmx.ixo.earth")

    def test_room_alias_distinct_per_address(self):
        other = "ixo1" + "p" * 38
        hs = "https://devmx.ixo.earth"
        assert room_alias_from_address(ADDRESS, hs) != room_alias_from_address(other, hs)

    def test_user_id(self):
        assert user_id_from_username("@did-ixo-x ", "https://mx.ixo.earth") == "@did-ixo-x:mx.ixo.earth"
        assert normalize_username("@alice") == "alice"

    def test_home_server_from_user_id(self):
        assert home_server_from_user_id("@alice:localhost:8008") == "localhost:8008"
        with pytest.raises(ValidationError):
            home_server_from_user_id("alice")


class TestPasswordAuth:
    def test_with_session(self):
        auth = password_auth("@u:mx", "pw", session="s1")
        assert auth == {
            "type": "m.login.password",
            "password": "pw",
            "identifier": {"type": "m.id.user", "user": "@u:mx"},
            "session": "s1",
        }

    def test_without_session(self):
        assert "session" not in password_auth("@u:mx", "pw")
