# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Public uploads of linked-resource documents to Matrix media storage."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..core.content import canonicalize, content_id
from ..core.exceptions import MessagingError, UploadError
from .session import MatrixSession, mxc_to_http

logger = logging.getLogger(__name__)

LD_JSON = "application/ld+json"


@dataclass(frozen=True)
class UploadedResource:
    """Where an uploaded document lives and the proof of its content."""

    proof: str
    cid: str
    service_endpoint: str
    mxc: str
    encrypted: str = "false"


async def public_upload(session: MatrixSession, data: dict[str, Any], file_name: str) -> UploadedResource:
    """Upload ``data`` as ``{file_name}.json``.

    The bytes sent are the canonical JSON of ``data``, so the returned proof
    can be recomputed from the document alone.
    """
    raw = canonicalize(data)
    full_name = f"{file_name}.json"
    try:
        mxc = await session.upload(raw, LD_JSON, full_name)
    except MessagingError as e:
        status = int(e.errcode) if e.errcode and str(e.errcode).isdigit() else None
        raise UploadError(f"Failed to upload {full_name}: {e.message}", file_name=full_name, status_code=status) from e
    if not mxc:
        raise UploadError(f"Upload of {full_name} returned no content URI", file_name=full_name)

    cid = content_id(raw)
    endpoint = mxc_to_http(session.home_server_url, mxc)
    logger.info(f"Uploaded {full_name} to {endpoint}")
    return UploadedResource(proof=cid, cid=cid, service_endpoint=endpoint, mxc=mxc)
