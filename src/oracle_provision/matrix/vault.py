# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""PIN-encrypted secrets stored in the oracle's private room.

Format: ``hex(iv):hex(ciphertext)`` with AES-256-CBC (PKCS#7 padding), a
fresh random 16-byte IV per call and the PIN right-padded with spaces to a
32-byte key.
"""

from __future__ import annotations

import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..core.exceptions import DecryptionError, ValidationError
from ..identity.account import is_valid_mnemonic

KEY_LENGTH = 32
IV_LENGTH = 16


def _key_from_pin(pin: str) -> bytes:
    key = pin.ljust(KEY_LENGTH).encode("utf-8")
    if len(key) != KEY_LENGTH:
        raise ValidationError("PIN is too long to form an AES-256 key", field="pin")
    return key


def encrypt_secret(text: str, pin: str) -> str:
    iv = os.urandom(IV_LENGTH)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(text.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(_key_from_pin(pin)), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return f"{iv.hex()}:{ciphertext.hex()}"


def decrypt_secret(blob: str, pin: str) -> str:
    """Decrypt a vault blob. A wrong PIN normally fails the padding check."""
    iv_hex, sep, ct_hex = blob.partition(":")
    try:
        if not sep:
            raise ValueError("missing separator")
        iv = bytes.fromhex(iv_hex)
        ciphertext = bytes.fromhex(ct_hex)
        if len(iv) != IV_LENGTH:
            raise ValueError("bad IV length")
        decryptor = Cipher(algorithms.AES(_key_from_pin(pin)), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plain = unpadder.update(padded) + unpadder.finalize()
        return plain.decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        raise DecryptionError("Could not decrypt secret with the supplied PIN") from e


def decrypt_mnemonic(blob: str, pin: str) -> str:
    """Decrypt and check the BIP-39 checksum.

    Padding alone accepts roughly 1 in 256 wrong keys, so the checksum is
    what makes a wrong PIN fail reliably.
    """
    mnemonic = decrypt_secret(blob, pin)
    if not is_valid_mnemonic(mnemonic):
        raise DecryptionError("Decrypted value is not a valid mnemonic, the PIN is probably wrong")
    return mnemonic
