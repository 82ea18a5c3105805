# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Read-only chain queries over the REST (LCD) API."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from ..core.exceptions import ChainQueryError
from .feegrant import FeeAllowance, decode_grants

logger = logging.getLogger(__name__)

# gRPC "not found" surfaced by the iid module.
_DID_NOT_FOUND_CODES = {5, 22}
_DID_NOT_FOUND_TEXT = "did document not found"


def find_event_attribute(result: Any, event_type: str, key: str) -> str | None:
    """Value of the first ``key`` attribute on an event of ``event_type``.

    ``result`` is a broadcast result or a raw response dict carrying ``events``.
    """
    events = result.get("events") if isinstance(result, dict) else getattr(result, "events", None)
    for event in events or []:
        if event.get("type") != event_type:
            continue
        for attribute in event.get("attributes") or []:
            if attribute.get("key") == key:
                return attribute.get("value")
    return None


class ChainQueryClient:
    """Chain REST client.

    Usage:
        async with ChainQueryClient(endpoints.chain_rest_url) as chain:
            doc = await chain.get_did_document(did)
    """

    def __init__(self, rest_url: str, timeout: float = 30.0, client: httpx.AsyncClient | None = None):
        self.base_url = rest_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def __aenter__(self) -> ChainQueryClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, path: str) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            return await self._client.get(url)
        except httpx.HTTPError as e:
            raise ChainQueryError(f"Chain query failed: {e}", path=path) from e

    async def get_did_document(self, did: str) -> dict[str, Any] | None:
        """The DID document, or None when the chain has no document for ``did``."""
        path = f"/ixo/iid/v1beta1/did/{quote(did, safe=':')}"
        resp = await self._get(path)
        if resp.status_code == 404:
            return None
        try:
            body = resp.json()
        except ValueError:
            body = {}

        if resp.status_code >= 400:
            message = str(body.get("message", resp.text))
            if body.get("code") in _DID_NOT_FOUND_CODES or _DID_NOT_FOUND_TEXT in message:
                return None
            raise ChainQueryError(f"DID query returned {resp.status_code}: {message}", path=path)

        document = body.get("iidDocument") or body.get("iid_document")
        if not document or not document.get("id"):
            return None
        return document

    async def did_exists(self, did: str) -> bool:
        return await self.get_did_document(did) is not None

    async def get_fee_allowances(self, address: str) -> list[FeeAllowance]:
        path = f"/cosmos/feegrant/v1beta1/allowances/{address}"
        resp = await self._get(path)
        if resp.status_code >= 400:
            raise ChainQueryError(f"Allowance query returned {resp.status_code}: {resp.text}", path=path)
        return decode_grants(resp.json().get("allowances") or [])
