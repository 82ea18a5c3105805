# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Shared plumbing for CLI commands: context, wallet, signing session, async runner."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from ..chain.signer import TxBodyEncoder, load_tx_backend
from ..core.config import ProvisioningContext, get_settings
from ..core.exceptions import ProvisioningError, StepFailedError, ValidationError
from ..signing.session import RemoteSigningSession
from ..signing.transport import SignXTransport
from ..signing.wallet import WalletStore
from .output import output_error, output_result

logger = logging.getLogger(__name__)


def build_context(args: argparse.Namespace) -> ProvisioningContext:
    return ProvisioningContext.from_settings(
        get_settings(),
        network=getattr(args, "network", None),
        home_server_url=getattr(args, "home_server", None),
    )


def wallet_store() -> WalletStore:
    return WalletStore(get_settings().wallet_path)


def signing_session(context: ProvisioningContext) -> RemoteSigningSession:
    """A remote signing session for the context's network.

    The transaction body encoder comes from the configured tx backend when it
    provides one; login works without it.
    """
    settings = context.settings
    endpoints = context.require_endpoints()
    transport = SignXTransport(endpoints.signx_url, endpoints.network.value, timeout=settings.http_timeout)
    encoder = None
    if settings.tx_backend:
        backend = load_tx_backend(settings.tx_backend, endpoints)
        if isinstance(backend, TxBodyEncoder):
            encoder = backend
    return RemoteSigningSession(transport, encoder, poll_interval=settings.signing_poll_interval)


def load_json_file(path: str | Path, field: str) -> Any:
    try:
        return json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(f"Cannot read {field} file {path}: {e}", field=field, value=str(path)) from e


def run_command(factory: Callable[[], Awaitable[dict[str, Any]]]) -> int:
    """Run an async command, print its result, and map errors to exit code 1.

    A failed step prints the partial result first so its secrets are not lost
    and it can be passed back with ``--resume``.
    """
    try:
        result = asyncio.run(factory())
    except StepFailedError as e:
        if e.partial is not None:
            partial = e.partial.to_dict() if hasattr(e.partial, "to_dict") else e.partial
            output_result({"partial": partial})
        output_error(e)
        return 1
    except ProvisioningError as e:
        output_error(e)
        return 1
    except KeyboardInterrupt:
        output_error("Cancelled")
        return 1
    output_result(result)
    return 0
