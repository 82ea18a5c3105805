# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Cross-signing and secret storage bootstrap for a fresh Matrix account.

Bootstrap order:
1. Recovery key derived from a passphrase (PBKDF2-SHA512).
2. Secret storage key published as account data, made the default.
3. Master, self-signing and user-signing ed25519 keys uploaded with password
   user-interactive auth; their seeds stored encrypted in secret storage.
4. A new server-side key backup version, its private key also stored.

Secrets use ``m.secret_storage.v1.aes-hmac-sha2``: HKDF-SHA256 splits the
storage key into an AES-CTR key and an HMAC-SHA256 key per secret name.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import os
import secrets
import string
from dataclasses import dataclass
from typing import Any

from bip_utils import Base58Decoder, Base58Encoder
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ..core.content import canonicalize
from ..core.exceptions import CrossSigningError, MessagingError
from .derivation import password_auth
from .session import MatrixSession, _json_body

logger = logging.getLogger(__name__)

SECRET_STORAGE_ALGORITHM = "m.secret_storage.v1.aes-hmac-sha2"
PASSPHRASE_ALGORITHM = "m.pbkdf2"
PBKDF2_ITERATIONS = 500_000
KEY_BITS = 256
RECOVERY_KEY_PREFIX = bytes([0x8B, 0x01])
KEY_BACKUP_ALGORITHM = "m.megolm_backup.v1.curve25519-aes-sha2"

DEFAULT_KEY_EVENT = "m.secret_storage.default_key"
KEY_EVENT_PREFIX = "m.secret_storage.key."
MASTER = "master"
SELF_SIGNING = "self_signing"
USER_SIGNING = "user_signing"
CROSS_SIGNING_MASTER_EVENT = "m.cross_signing.master"
KEY_BACKUP_SECRET = "m.megolm_backup.v1"


def _b64(data: bytes) -> str:
    """Unpadded base64, as Matrix uses it throughout."""
    return base64.b64encode(data).decode("ascii").rstrip("=")


def _unb64(text: str) -> bytes:
    return base64.b64decode(text + "=" * (-len(text) % 4))


# ==========================================================================
# RECOVERY KEY
# ==========================================================================


@dataclass(frozen=True)
class RecoveryKey:
    """A 32-byte secret storage key and how it was derived."""

    private_key: bytes
    salt: str = ""
    iterations: int = PBKDF2_ITERATIONS

    @classmethod
    def from_passphrase(cls, passphrase: str, salt: str | None = None, iterations: int = PBKDF2_ITERATIONS) -> RecoveryKey:
        salt = salt or "".join(secrets.choice(string.ascii_letters + string.digits) for _ in range(32))
        key = hashlib.pbkdf2_hmac("sha512", passphrase.encode("utf-8"), salt.encode("utf-8"), iterations, KEY_BITS // 8)
        return cls(private_key=key, salt=salt, iterations=iterations)

    def encode(self) -> str:
        """Human-readable form: base58 with a prefix and parity byte, grouped by 4."""
        payload = RECOVERY_KEY_PREFIX + self.private_key
        parity = 0
        for byte in payload:
            parity ^= byte
        encoded = Base58Encoder.Encode(payload + bytes([parity]))
        return " ".join(encoded[i : i + 4] for i in range(0, len(encoded), 4))

    @classmethod
    def decode(cls, encoded: str) -> RecoveryKey:
        raw = Base58Decoder.Decode(encoded.replace(" ", ""))
        parity = 0
        for byte in raw:
            parity ^= byte
        if parity != 0 or not raw.startswith(RECOVERY_KEY_PREFIX) or len(raw) != len(RECOVERY_KEY_PREFIX) + 33:
            raise CrossSigningError("Invalid recovery key", operation="decode_recovery_key")
        return cls(private_key=raw[len(RECOVERY_KEY_PREFIX) : -1], salt="")

    def key_info(self, iv: str, mac: str, name: str = "") -> dict[str, Any]:
        info: dict[str, Any] = {"algorithm": SECRET_STORAGE_ALGORITHM, "iv": iv, "mac": mac}
        if name:
            info["name"] = name
        if self.salt:
            info["passphrase"] = {
                "algorithm": PASSPHRASE_ALGORITHM,
                "salt": self.salt,
                "iterations": self.iterations,
                "bits": KEY_BITS,
            }
        return info


class SecretStorageKeyCache:
    """Secret storage keys unlocked during this run, by key id."""

    def __init__(self) -> None:
        self._keys: dict[str, bytes] = {}

    def store(self, key_id: str, private_key: bytes) -> None:
        if not isinstance(private_key, bytes):
            raise TypeError("Secret storage key must be bytes")
        self._keys[key_id] = private_key

    def get(self, key_id: str) -> bytes | None:
        return self._keys.get(key_id)

    def has(self, key_id: str) -> bool:
        return key_id in self._keys

    def find(self, key_ids: list[str]) -> tuple[str, bytes] | None:
        for key_id in key_ids:
            if key_id in self._keys:
                return key_id, self._keys[key_id]
        return None

    def clear(self) -> None:
        self._keys.clear()


# ==========================================================================
# AES-HMAC-SHA2 SECRETS
# ==========================================================================


def _derive_keys(key: bytes, name: str) -> tuple[bytes, bytes]:
    derived = HKDF(algorithm=hashes.SHA256(), length=64, salt=bytes(32), info=name.encode("utf-8")).derive(key)
    return derived[:32], derived[32:]


def encrypt_secret(key: bytes, name: str, plaintext: str, iv: bytes | None = None) -> dict[str, str]:
    aes_key, mac_key = _derive_keys(key, name)
    if iv is None:
        iv = bytearray(os.urandom(16))
        iv[8] &= 0x7F
        iv = bytes(iv)
    encryptor = Cipher(algorithms.AES(aes_key), modes.CTR(iv)).encryptor()
    ciphertext = encryptor.update(plaintext.encode("utf-8")) + encryptor.finalize()
    mac = hmac.new(mac_key, ciphertext, hashlib.sha256).digest()
    return {"iv": _b64(iv), "ciphertext": _b64(ciphertext), "mac": _b64(mac)}


def decrypt_secret(key: bytes, name: str, encrypted: dict[str, str]) -> str:
    aes_key, mac_key = _derive_keys(key, name)
    ciphertext = _unb64(encrypted["ciphertext"])
    expected = hmac.new(mac_key, ciphertext, hashlib.sha256).digest()
    if not hmac.compare_digest(expected, _unb64(encrypted["mac"])):
        raise CrossSigningError(f"Bad MAC for secret {name}", operation="decrypt_secret")
    decryptor = Cipher(algorithms.AES(aes_key), modes.CTR(_unb64(encrypted["iv"]))).decryptor()
    return (decryptor.update(ciphertext) + decryptor.finalize()).decode("utf-8")


def key_check(key: bytes, iv: bytes | None = None) -> tuple[str, str]:
    """iv and mac proving knowledge of ``key``: the encryption of 32 zero bytes under name ''."""
    check = encrypt_secret(key, "", "\0" * 32, iv=iv)
    return check["iv"], check["mac"]


def key_matches(key: bytes, key_info: dict[str, Any]) -> bool:
    if "iv" not in key_info or "mac" not in key_info:
        return False
    _, mac = key_check(key, _unb64(key_info["iv"]))
    return hmac.compare_digest(mac, key_info["mac"])


# ==========================================================================
# SIGNING KEYS
# ==========================================================================


@dataclass(frozen=True)
class SigningKey:
    usage: str
    seed: bytes

    @classmethod
    def generate(cls, usage: str) -> SigningKey:
        private = Ed25519PrivateKey.generate()
        seed = private.private_bytes(
            serialization.Encoding.Raw,
            serialization.PrivateFormat.Raw,
            serialization.NoEncryption(),
        )
        return cls(usage=usage, seed=seed)

    @property
    def _private(self) -> Ed25519PrivateKey:
        return Ed25519PrivateKey.from_private_bytes(self.seed)

    @property
    def public_key(self) -> str:
        raw = self._private.public_key().public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)
        return _b64(raw)

    @property
    def key_id(self) -> str:
        return f"ed25519:{self.public_key}"

    def sign_json(self, obj: dict[str, Any], user_id: str) -> dict[str, Any]:
        """Add this key's signature under ``signatures`` to a copy of ``obj``."""
        unsigned = {k: v for k, v in obj.items() if k not in ("signatures", "unsigned")}
        signature = _b64(self._private.sign(canonicalize(unsigned)))
        signed = dict(obj)
        signatures = {uid: dict(sigs) for uid, sigs in obj.get("signatures", {}).items()}
        signatures.setdefault(user_id, {})[self.key_id] = signature
        signed["signatures"] = signatures
        return signed

    def key_object(self, user_id: str) -> dict[str, Any]:
        return {"user_id": user_id, "usage": [self.usage], "keys": {self.key_id: self.public_key}}


# ==========================================================================
# BOOTSTRAP
# ==========================================================================


class CrossSigningBootstrapper:
    """Sets up cross-signing for the user behind ``session``."""

    def __init__(
        self,
        session: MatrixSession,
        cache: SecretStorageKeyCache | None = None,
        iterations: int = PBKDF2_ITERATIONS,
    ):
        self.session = session
        self.cache = cache or SecretStorageKeyCache()
        self.iterations = iterations

    async def has_cross_signing(self) -> bool:
        return await self.session.get_account_data(CROSS_SIGNING_MASTER_EVENT) is not None

    async def _store_secret(self, key_id: str, key: bytes, name: str, plaintext: str) -> None:
        await self.session.put_account_data(name, {"encrypted": {key_id: encrypt_secret(key, name, plaintext)}})

    async def bootstrap_secret_storage(self, passphrase: str, force_reset: bool = False) -> tuple[str, bytes]:
        """Publish (or reuse) the default secret storage key. Returns its id and bytes.

        Existing storage is reused only when ``passphrase`` unlocks it.
        """
        default = await self.session.get_account_data(DEFAULT_KEY_EVENT)
        if default and default.get("key") and not force_reset:
            key_id = default["key"]
            info = await self.session.get_account_data(KEY_EVENT_PREFIX + key_id) or {}
            derivation = info.get("passphrase") or {}
            recovery = RecoveryKey.from_passphrase(
                passphrase,
                salt=derivation.get("salt") or None,
                iterations=derivation.get("iterations", self.iterations),
            )
            if derivation.get("salt") and key_matches(recovery.private_key, info):
                self.cache.store(key_id, recovery.private_key)
                logger.info(f"Reusing secret storage key {key_id}")
                return key_id, recovery.private_key
            raise CrossSigningError(
                "Secret storage already exists with a different key; pass force_reset to replace it",
                operation="bootstrap_secret_storage",
            )

        recovery = RecoveryKey.from_passphrase(passphrase, iterations=self.iterations)
        key_id = "".join(secrets.choice(string.ascii_letters + string.digits) for _ in range(32))
        iv, mac = key_check(recovery.private_key)
        await self.session.put_account_data(KEY_EVENT_PREFIX + key_id, recovery.key_info(iv, mac))
        await self.session.put_account_data(DEFAULT_KEY_EVENT, {"key": key_id})
        self.cache.store(key_id, recovery.private_key)
        logger.info(f"Created secret storage key {key_id}")
        return key_id, recovery.private_key

    async def _upload_device_signing_keys(self, body: dict[str, Any], password: str) -> None:
        path = "/keys/device_signing/upload"
        resp = await self.session.request("POST", path, json=body)
        if resp.status_code == 401:
            flows = _json_body(resp)
            auth = password_auth(self.session.user_id, password, session=flows.get("session"))
            resp = await self.session.request("POST", path, json={**body, "auth": auth})
        if resp.status_code >= 400:
            err = _json_body(resp)
            raise CrossSigningError(
                f"Uploading cross-signing keys failed: {err.get('error', resp.text)}",
                operation="device_signing_upload",
                errcode=err.get("errcode"),
            )

    async def bootstrap_cross_signing(self, key_id: str, storage_key: bytes, password: str) -> SigningKey:
        user_id = self.session.user_id
        master = SigningKey.generate(MASTER)
        self_signing = SigningKey.generate(SELF_SIGNING)
        user_signing = SigningKey.generate(USER_SIGNING)

        body = {
            "master_key": master.key_object(user_id),
            "self_signing_key": master.sign_json(self_signing.key_object(user_id), user_id),
            "user_signing_key": master.sign_json(user_signing.key_object(user_id), user_id),
        }
        await self._upload_device_signing_keys(body, password)

        for key in (master, self_signing, user_signing):
            await self._store_secret(key_id, storage_key, f"m.cross_signing.{key.usage}", _b64(key.seed))
        logger.info(f"Published cross-signing keys for {user_id}")
        return master

    async def reset_key_backup(self, key_id: str, storage_key: bytes, master: SigningKey) -> str:
        """Replace any server-side key backup with a fresh curve25519 one."""
        resp = await self.session.request("GET", "/room_keys/version")
        if resp.status_code == 200:
            version = _json_body(resp).get("version")
            if version:
                await self.session.request_json("DELETE", f"/room_keys/version/{version}", "delete_key_backup")

        backup_key = X25519PrivateKey.generate()
        public = backup_key.public_key().public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)
        auth_data = master.sign_json({"public_key": _b64(public)}, self.session.user_id)
        created = await self.session.request_json(
            "POST",
            "/room_keys/version",
            "create_key_backup",
            json={"algorithm": KEY_BACKUP_ALGORITHM, "auth_data": auth_data},
        )
        private = backup_key.private_bytes(
            serialization.Encoding.Raw,
            serialization.PrivateFormat.Raw,
            serialization.NoEncryption(),
        )
        await self._store_secret(key_id, storage_key, KEY_BACKUP_SECRET, _b64(private))
        version = str(created.get("version", ""))
        logger.info(f"Created key backup version {version}")
        return version

    async def setup(self, passphrase: str, password: str, force_reset: bool = False) -> bool:
        """Bootstrap everything. Returns whether cross-signing is now present.

        ``force_reset`` replaces existing secret storage and invalidates any
        recovery key issued before.
        """
        if force_reset:
            self.cache.clear()
        try:
            key_id, storage_key = await self.bootstrap_secret_storage(passphrase, force_reset)
            master = await self.bootstrap_cross_signing(key_id, storage_key, password)
            await self.reset_key_backup(key_id, storage_key, master)
        except CrossSigningError:
            raise
        except MessagingError as e:
            raise CrossSigningError(
                f"Cross-signing setup failed: {e.message}",
                operation=e.operation,
                errcode=e.errcode,
            ) from e
        return await self.has_cross_signing()
