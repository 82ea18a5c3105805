# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""The oracle's private data room.

One room per account, found by an alias derived from the account address.
The room bot creates it on first use; afterwards the alias resolves to it.
"""

from __future__ import annotations

import logging

import httpx

from ..core.exceptions import MessagingError, RoomError
from .derivation import room_alias_from_address
from .session import MatrixSession

logger = logging.getLogger(__name__)

SECURE_STATE_EVENT = "ixo.room.state.secure"
ENCRYPTED_MNEMONIC_KEY = "encrypted_mnemonic"


class RoomBotClient:
    """Administrative room creation through the room bot."""

    def __init__(self, room_bot_url: str, http: httpx.AsyncClient):
        self.room_bot_url = room_bot_url.rstrip("/")
        self.http = http

    async def create_source_room(self, did: str, user_id: str) -> str:
        """Create the private room for ``did`` with ``user_id`` invited. Returns the room id."""
        try:
            resp = await self.http.post(
                f"{self.room_bot_url}/room/source",
                json={"did": did, "userMatrixId": user_id},
            )
        except httpx.HTTPError as e:
            raise RoomError(f"Failed to create matrix room: {e}", operation="create_source_room") from e
        if resp.status_code >= 400:
            raise RoomError(
                f"Failed to create matrix room: room bot returned {resp.status_code}",
                operation="create_source_room",
            )
        try:
            room_id = resp.json().get("roomId")
        except ValueError:
            room_id = None
        if not room_id:
            raise RoomError("Failed to create user matrix room", operation="create_source_room")
        return room_id


async def _is_member(session: MatrixSession, room_id: str) -> bool:
    try:
        members = await session.joined_members(room_id)
    except MessagingError as e:
        # Not yet a member: the server refuses to list members.
        logger.debug(f"Could not list members of {room_id}: {e.message}")
        return False
    return session.user_id in members


async def ensure_private_room(session: MatrixSession, bot: RoomBotClient, address: str, did: str) -> str:
    """Resolve or create the account's room and make sure the session user has joined it.

    Raises:
        RoomError: The room could not be created, or membership is still
            missing after joining.
    """
    alias = room_alias_from_address(address, session.home_server_url)
    room_id = await session.resolve_alias(alias)
    if room_id:
        logger.info(f"Room alias {alias} resolves to {room_id}")
    else:
        room_id = await bot.create_source_room(did, session.user_id)
        logger.info(f"Created private room {room_id} for {address}")

    if await _is_member(session, room_id):
        return room_id

    try:
        await session.join(room_id)
    except MessagingError as e:
        raise RoomError(f"Failed to join matrix room {room_id}: {e.message}", operation="join", errcode=e.errcode) from e
    if not await _is_member(session, room_id):
        raise RoomError(f"Failed to join matrix room {room_id}", operation="join")
    logger.info(f"Joined private room {room_id}")
    return room_id


async def store_encrypted_mnemonic(session: MatrixSession, room_id: str, encrypted_mnemonic: str) -> str:
    return await session.put_state(
        room_id,
        SECURE_STATE_EVENT,
        {ENCRYPTED_MNEMONIC_KEY: encrypted_mnemonic},
        state_key=ENCRYPTED_MNEMONIC_KEY,
    )


async def load_encrypted_mnemonic(session: MatrixSession, room_id: str) -> str | None:
    content = await session.get_state(room_id, SECURE_STATE_EVENT, ENCRYPTED_MNEMONIC_KEY)
    if not content:
        return None
    return content.get(ENCRYPTED_MNEMONIC_KEY) or None
