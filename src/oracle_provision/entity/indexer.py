# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Discovery index submission. Best-effort: failures are logged, never raised."""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)


async def submit_to_domain_indexer(http: httpx.AsyncClient, indexer_url: str, entity_did: str) -> bool:
    """POST ``{"did": entity_did}`` to the indexer. Returns whether it was accepted."""
    try:
        resp = await http.post(
            indexer_url,
            json={"did": entity_did},
            headers={"accept": "application/json"},
        )
    except httpx.HTTPError as e:
        logger.warning(f"Error submitting to domain indexer: {e}")
        return False

    if resp.status_code >= 400:
        logger.warning(f"Failed to submit to domain indexer: {resp.status_code} {resp.text}")
        return False

    logger.info(f"Domain card for {entity_did} submitted to domain indexer")
    return True
