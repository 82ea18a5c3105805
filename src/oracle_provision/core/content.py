# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Content addressing for linked resources.

A resource's proof is the CIDv1 (raw codec, sha2-256) of its canonical JSON
bytes, so anyone holding the document can recompute it without trusting the
URL it was served from.
"""

from __future__ import annotations

import base64
import hashlib
from typing import Any

import jcs

CID_VERSION = 0x01
RAW_CODEC = 0x55
SHA2_256 = 0x12


def canonicalize(data: Any) -> bytes:
    """Deterministic UTF-8 bytes per RFC 8785 (JSON Canonicalization Scheme)."""
    return jcs.canonicalize(data)


def content_id(raw: bytes) -> str:
    """CIDv1 of ``raw`` in multibase base32 (lowercase, unpadded, ``b`` prefix)."""
    digest = hashlib.sha256(raw).digest()
    multihash = bytes([SHA2_256, len(digest)]) + digest
    cid = bytes([CID_VERSION, RAW_CODEC]) + multihash
    return "b" + base64.b32encode(cid).decode("ascii").lower().rstrip("=")


def content_proof(data: Any) -> str:
    return content_id(canonicalize(data))


def verify_content_proof(data: Any, proof: str) -> bool:
    """Check ``proof`` against a document or the exact bytes that were uploaded."""
    if isinstance(data, bytes | bytearray):
        return content_id(bytes(data)) == proof
    return content_proof(data) == proof
