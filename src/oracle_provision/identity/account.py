# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Blockchain accounts derived from a BIP-39 mnemonic.

The mnemonic is the single root of trust for an oracle: the address, DID,
public key and signing key are all pure functions of it.
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass, field

from bip_utils import (
    AtomAddrEncoder,
    Bip39MnemonicGenerator,
    Bip39MnemonicValidator,
    Bip39SeedGenerator,
    Bip39WordsNum,
    Bip44,
    Bip44Changes,
    Bip44Coins,
)
from coincurve import PrivateKey

from ..core.exceptions import ValidationError

ADDRESS_PREFIX = "ixo"
DERIVATION_PATH = "m/44'/118'/0'/0/0"

_WORD_COUNTS = {
    12: Bip39WordsNum.WORDS_NUM_12,
    15: Bip39WordsNum.WORDS_NUM_15,
    18: Bip39WordsNum.WORDS_NUM_18,
    21: Bip39WordsNum.WORDS_NUM_21,
    24: Bip39WordsNum.WORDS_NUM_24,
}


def did_from_address(address: str) -> str:
    return f"did:ixo:{address}"


def generate_mnemonic(words: int = 24) -> str:
    if words not in _WORD_COUNTS:
        raise ValidationError(f"Unsupported mnemonic length: {words}", field="words", value=words)
    return str(Bip39MnemonicGenerator().FromWordsNumber(_WORD_COUNTS[words]))


def is_valid_mnemonic(mnemonic: str) -> bool:
    return Bip39MnemonicValidator().IsValid(mnemonic)


@dataclass(frozen=True)
class Account:
    """A secp256k1 account on the ixo chain."""

    mnemonic: str = field(repr=False)
    address: str
    did: str
    public_key: bytes
    _private_key: bytes = field(repr=False, compare=False)

    @classmethod
    def from_mnemonic(cls, mnemonic: str) -> Account:
        mnemonic = " ".join(mnemonic.split())
        if not is_valid_mnemonic(mnemonic):
            raise ValidationError("Invalid BIP-39 mnemonic", field="mnemonic")

        seed = Bip39SeedGenerator(mnemonic).Generate()
        node = (
            Bip44.FromSeed(seed, Bip44Coins.COSMOS)
            .Purpose()
            .Coin()
            .Account(0)
            .Change(Bip44Changes.CHAIN_EXT)
            .AddressIndex(0)
        )
        public_key = node.PublicKey().RawCompressed().ToBytes()
        address = AtomAddrEncoder.EncodeKey(public_key, hrp=ADDRESS_PREFIX)
        return cls(
            mnemonic=mnemonic,
            address=address,
            did=did_from_address(address),
            public_key=public_key,
            _private_key=node.PrivateKey().Raw().ToBytes(),
        )

    @classmethod
    def generate(cls, words: int = 24) -> Account:
        return cls.from_mnemonic(generate_mnemonic(words))

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()

    def sign_digest(self, digest: bytes) -> bytes:
        """64-byte compact (r || s) secp256k1 signature over a 32-byte digest."""
        signature = PrivateKey(self._private_key).sign_recoverable(digest, hasher=None)
        return signature[:64]

    def sign_challenge(self, challenge_b64: str) -> bytes:
        """Sign a base64 challenge: SHA-256 of the decoded bytes, compact signature."""
        challenge = base64.b64decode(challenge_b64)
        return self.sign_digest(hashlib.sha256(challenge).digest())

    def sign_challenge_b64(self, challenge_b64: str) -> str:
        return base64.b64encode(self.sign_challenge(challenge_b64)).decode("ascii")
