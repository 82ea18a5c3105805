# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Matrix session for one oracle account.

Room, profile, media and state operations go through matrix-nio. Endpoints nio
does not wrap (global account data, device signing keys, key backup) go
through authenticated raw requests against the client-server API.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx
from nio import AsyncClient, AsyncClientConfig, ErrorResponse

from ..core.exceptions import MessagingError
from .derivation import normalize_username

logger = logging.getLogger(__name__)

CLIENT_API = "/_matrix/client/v3"
MEDIA_DOWNLOAD = "/_matrix/media/v3/download"
_NOT_FOUND = {"M_NOT_FOUND"}


def mxc_to_http(home_server_url: str, mxc: str) -> str:
    """``mxc://server/media`` -> ``{home server}/_matrix/media/v3/download/server/media``."""
    if not mxc.startswith("mxc://"):
        raise MessagingError(f"Not an mxc URI: {mxc}", operation="mxc_to_http")
    server_and_media = mxc[len("mxc://") :]
    return f"{home_server_url.rstrip('/')}{MEDIA_DOWNLOAD}/{server_and_media}"


@dataclass(frozen=True)
class MatrixCredentials:
    home_server_url: str
    user_id: str
    access_token: str
    device_id: str


def _check(resp: Any, operation: str) -> Any:
    if isinstance(resp, ErrorResponse):
        raise MessagingError(
            f"Matrix {operation} failed: {resp.message}",
            operation=operation,
            errcode=resp.status_code,
        )
    return resp


class MatrixSession:
    """A logged-in (or restorable) Matrix client.

    ``stop`` releases connections but leaves the access token valid;
    ``logout`` invalidates it.
    """

    def __init__(
        self,
        home_server_url: str,
        timeout: float = 30.0,
        client: AsyncClient | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        self.home_server_url = home_server_url.rstrip("/")
        self.timeout = timeout
        self.client = client or AsyncClient(
            self.home_server_url,
            config=AsyncClientConfig(encryption_enabled=False, request_timeout=timeout),
        )
        self._http = http
        self._owns_http = http is None
        self.credentials: MatrixCredentials | None = None

    @property
    def user_id(self) -> str:
        return self._require().user_id

    @property
    def access_token(self) -> str:
        return self._require().access_token

    @property
    def device_id(self) -> str:
        return self._require().device_id

    def _require(self) -> MatrixCredentials:
        if self.credentials is None:
            raise MessagingError("Matrix session is not logged in", operation="session")
        return self.credentials

    # ==========================================================================
    # LIFECYCLE
    # ==========================================================================

    async def login(self, username: str, password: str, device_name: str) -> MatrixCredentials:
        self.client.user = normalize_username(username)
        resp = _check(await self.client.login(password=password, device_name=device_name), "login")
        self.credentials = MatrixCredentials(
            home_server_url=self.home_server_url,
            user_id=resp.user_id,
            access_token=resp.access_token,
            device_id=resp.device_id,
        )
        logger.info(f"Logged in to Matrix as {resp.user_id} (device {resp.device_id})")
        return self.credentials

    def start(self, credentials: MatrixCredentials | None = None) -> None:
        """Attach existing credentials to the client without a new login."""
        creds = credentials or self._require()
        if not creds.access_token or not creds.user_id:
            raise MessagingError("Login to Matrix before starting the client", operation="start")
        self.client.restore_login(creds.user_id, creds.device_id, creds.access_token)
        self.credentials = creds

    async def stop(self) -> None:
        await self.client.close()
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def logout(self) -> None:
        """Invalidate the access token, then release connections."""
        try:
            if self.credentials is not None:
                if not self.client.access_token:
                    self.client.restore_login(
                        self.credentials.user_id,
                        self.credentials.device_id,
                        self.credentials.access_token,
                    )
                _check(await self.client.logout(), "logout")
                logger.info(f"Logged out Matrix session for {self.credentials.user_id}")
        finally:
            await self.stop()

    # ==========================================================================
    # PROFILE AND MEDIA
    # ==========================================================================

    async def set_display_name(self, name: str) -> None:
        _check(await self.client.set_displayname(name), "set_display_name")

    async def set_avatar_url(self, avatar_url: str) -> None:
        _check(await self.client.set_avatar(avatar_url), "set_avatar_url")

    async def upload(self, data: bytes, content_type: str, file_name: str) -> str:
        """Upload ``data`` and return its mxc URI."""
        resp, _keys = await self.client.upload(
            io.BytesIO(data),
            content_type=content_type,
            filename=file_name,
            filesize=len(data),
        )
        resp = _check(resp, "upload")
        return resp.content_uri

    # ==========================================================================
    # ROOMS
    # ==========================================================================

    async def resolve_alias(self, alias: str) -> str | None:
        resp = await self.client.room_resolve_alias(alias)
        if isinstance(resp, ErrorResponse) and resp.status_code in _NOT_FOUND:
            return None
        resp = _check(resp, "resolve_alias")
        return resp.room_id or None

    async def join(self, room_id: str) -> str:
        resp = _check(await self.client.join(room_id), "join")
        return resp.room_id

    async def joined_members(self, room_id: str) -> set[str]:
        resp = _check(await self.client.joined_members(room_id), "joined_members")
        return {member.user_id for member in resp.members}

    async def put_state(self, room_id: str, event_type: str, content: dict[str, Any], state_key: str = "") -> str:
        resp = _check(
            await self.client.room_put_state(room_id, event_type, content, state_key=state_key),
            "put_state",
        )
        return resp.event_id

    async def get_state(self, room_id: str, event_type: str, state_key: str = "") -> dict[str, Any] | None:
        resp = await self.client.room_get_state_event(room_id, event_type, state_key)
        if isinstance(resp, ErrorResponse) and resp.status_code in _NOT_FOUND:
            return None
        resp = _check(resp, "get_state")
        return resp.content

    # ==========================================================================
    # RAW CLIENT-SERVER API
    # ==========================================================================

    def _http_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout)
            self._owns_http = True
        return self._http

    async def request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Authenticated request to ``{home server}/_matrix/client/v3{path}``."""
        headers = {"Authorization": f"Bearer {self.access_token}"}
        url = f"{self.home_server_url}{CLIENT_API}{path}"
        try:
            return await self._http_client().request(method, url, json=json, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise MessagingError(f"Matrix request {method} {path} failed: {e}", operation=path) from e

    async def request_json(
        self,
        method: str,
        path: str,
        operation: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        resp = await self.request(method, path, json=json)
        body = _json_body(resp)
        if resp.status_code >= 400:
            raise MessagingError(
                f"Matrix {operation} failed: {body.get('error', resp.text)}",
                operation=operation,
                errcode=body.get("errcode"),
            )
        return body

    def _account_data_path(self, event_type: str) -> str:
        return f"/user/{quote(self.user_id, safe='')}/account_data/{quote(event_type, safe='')}"

    async def get_account_data(self, event_type: str) -> dict[str, Any] | None:
        resp = await self.request("GET", self._account_data_path(event_type))
        if resp.status_code == 404:
            return None
        body = _json_body(resp)
        if resp.status_code >= 400:
            raise MessagingError(
                f"Matrix get_account_data failed: {body.get('error', resp.text)}",
                operation="get_account_data",
                errcode=body.get("errcode"),
            )
        return body or None

    async def put_account_data(self, event_type: str, content: dict[str, Any]) -> None:
        await self.request_json("PUT", self._account_data_path(event_type), "put_account_data", json=content)


def _json_body(resp: httpx.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
