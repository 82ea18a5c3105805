"""Tests for oracle_provision.core.validation module."""

from __future__ import annotations

import pytest

from oracle_provision.core.exceptions import ValidationError
from oracle_provision.core.validation import (
    validate_did,
    validate_entity_did,
    validate_matrix_url,
    validate_pin,
    validate_required,
    validate_url,
)

ENTITY_DID = "did:ixo:entity:" + "a1" * 16
ACCOUNT_DID = "did:ixo:ixo1" + "q" * 38


class TestValidatePin:
    def test_six_digits(self):
        assert validate_pin("123456") == "123456"

    def test_strips_whitespace(self):
        assert validate_pin(" 000000 ") == "000000"

    @pytest.mark.parametrize("pin", ["12345", "1234567", "abcdef", "12 456", ""])
    def test_invalid(self, pin):
        with pytest.raises(ValidationError) as exc_info:
            validate_pin(pin)
        assert exc_info.value.field == "pin"


class TestValidateRequired:
    def test_missing(self):
        with pytest.raises(ValidationError, match="oracle_name is required"):
            validate_required("   ", "oracle_name")

    def test_none(self):
        with pytest.raises(ValidationError):
            validate_required(None, "oracle_name")


class TestValidateUrls:
    def test_valid_url(self):
        assert validate_url("https://example.org/logo.png") == "https://example.org/logo.png"

    @pytest.mark.parametrize("url", ["ftp://example.org", "example.org", "https://"])
    def test_invalid_url(self, url):
        with pytest.raises(ValidationError):
            validate_url(url)

    def test_matrix_url_trailing_slash(self):
        with pytest.raises(ValidationError, match="must not end with a slash"):
            validate_matrix_url("https://devmx.ixo.earth/")

    def test_matrix_url(self):
        assert validate_matrix_url("https://devmx.ixo.earth") == "https://devmx.ixo.earth"


class TestValidateDids:
    def test_entity_did(self):
        assert validate_entity_did(ENTITY_DID) == ENTITY_DID

    def test_entity_did_rejects_account_did(self):
        with pytest.raises(ValidationError):
            validate_entity_did(ACCOUNT_DID)

    def test_did_accepts_both_forms(self):
        assert validate_did(ENTITY_DID) == ENTITY_DID
        assert validate_did(ACCOUNT_DID) == ACCOUNT_DID

    def test_did_field_name(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_did("did:web:example.org", field="controller_did")
        assert exc_info.value.field == "controller_did"
