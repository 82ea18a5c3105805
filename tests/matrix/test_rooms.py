"""Tests for the oracle's private room: resolve-or-create, join, and room state."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from oracle_provision.core.exceptions import MessagingError, RoomError
from oracle_provision.matrix.rooms import (
    ENCRYPTED_MNEMONIC_KEY,
    SECURE_STATE_EVENT,
    RoomBotClient,
    ensure_private_room,
    load_encrypted_mnemonic,
    store_encrypted_mnemonic,
)

ADDRESS = "ixo1" + "q" * 38
DID = f"did:ixo:{ADDRESS}"
ROOM = "!room:devmx.ixo.earth"


@pytest.fixture
def bot():
    client = RoomBotClient("https://rooms.bot.devmx.ixo.earth", MagicMock())
    client.create_source_room = AsyncMock(return_value=ROOM)
    return client


class TestRoomBotClient:
    @pytest.mark.asyncio
    async def test_create_source_room(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"roomId": ROOM})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        room_id = await RoomBotClient("https://rooms.bot.devmx.ixo.earth/", http).create_source_room(DID, "@u:mx")

        assert room_id == ROOM
        assert seen == [("/room/source", {"did": DID, "userMatrixId": "@u:mx"})]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [httpx.Response(500, text="error"), httpx.Response(200, json={}), httpx.Response(200, text="nope")],
    )
    async def test_failures(self, response):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: response))
        with pytest.raises(RoomError):
            await RoomBotClient("https://rooms.bot.devmx.ixo.earth", http).create_source_room(DID, "@u:mx")


class TestEnsurePrivateRoom:
    @pytest.mark.asyncio
    async def test_existing_room_already_joined(self, mock_matrix_session, bot):
        mock_matrix_session.resolve_alias.return_value = ROOM

        assert await ensure_private_room(mock_matrix_session, bot, ADDRESS, DID) == ROOM

        mock_matrix_session.resolve_alias.assert_awaited_once_with(f"#did-ixo-{ADDRESS}:devmx.ixo.earth")
        bot.create_source_room.assert_not_awaited()
        mock_matrix_session.join.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_creates_and_joins(self, mock_matrix_session, bot):
        user = mock_matrix_session.user_id
        mock_matrix_session.joined_members.side_effect = [MessagingError("forbidden", errcode="M_FORBIDDEN"), {user}]

        assert await ensure_private_room(mock_matrix_session, bot, ADDRESS, DID) == ROOM

        bot.create_source_room.assert_awaited_once_with(DID, user)
        mock_matrix_session.join.assert_awaited_once_with(ROOM)

    @pytest.mark.asyncio
    async def test_join_failure(self, mock_matrix_session, bot):
        mock_matrix_session.joined_members.return_value = set()
        mock_matrix_session.join.side_effect = MessagingError("nope", errcode="M_FORBIDDEN")

        with pytest.raises(RoomError) as exc_info:
            await ensure_private_room(mock_matrix_session, bot, ADDRESS, DID)
        assert exc_info.value.errcode == "M_FORBIDDEN"

    @pytest.mark.asyncio
    async def test_membership_missing_after_join(self, mock_matrix_session, bot):
        mock_matrix_session.joined_members.return_value = {"@someone-else:devmx.ixo.earth"}

        with pytest.raises(RoomError, match="Failed to join"):
            await ensure_private_room(mock_matrix_session, bot, ADDRESS, DID)

    @pytest.mark.asyncio
    async def test_room_creation_failure(self, mock_matrix_session, bot):
        bot.create_source_room.side_effect = RoomError("Failed to create user matrix room")

        with pytest.raises(RoomError):
            await ensure_private_room(mock_matrix_session, bot, ADDRESS, DID)
        mock_matrix_session.join.assert_not_awaited()


class TestRoomState:
    @pytest.mark.asyncio
    async def test_store(self, mock_matrix_session):
        await store_encrypted_mnemonic(mock_matrix_session, ROOM, "aa:bb")
        mock_matrix_session.put_state.assert_awaited_once_with(
            ROOM, SECURE_STATE_EVENT, {ENCRYPTED_MNEMONIC_KEY: "aa:bb"}, state_key=ENCRYPTED_MNEMONIC_KEY
        )

    @pytest.mark.asyncio
    async def test_load(self, mock_matrix_session):
        mock_matrix_session.get_state.return_value = {ENCRYPTED_MNEMONIC_KEY: "aa:bb"}
        assert await load_encrypted_mnemonic(mock_matrix_session, ROOM) == "aa:bb"

    @pytest.mark.asyncio
    async def test_load_missing(self, mock_matrix_session):
        assert await load_encrypted_mnemonic(mock_matrix_session, ROOM) is None
