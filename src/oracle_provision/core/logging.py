# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Structured logging configuration for provisioning runs.

Provides:
- JSON formatter for machine-parseable output
- Standard formatter for terminals
- Run IDs so every line of one provisioning run can be correlated
- Secret redaction for structured extras
"""

from __future__ import annotations

import json
import logging
import re
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

_run_id: ContextVar[str | None] = ContextVar("run_id", default=None)
_WORD = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|\d+")


def get_run_id() -> str | None:
    """Get the current run ID, or None outside a run."""
    return _run_id.get()


@contextmanager
def run_context(run_id: str | None = None) -> Generator[str, None, None]:
    """Scope a run ID over the enclosed block.

    Example:
        with run_context() as rid:
            logger.info("Provisioning")  # Will include rid
    """
    rid = run_id or str(uuid.uuid4())
    token = _run_id.set(rid)
    try:
        yield rid
    finally:
        _run_id.reset(token)


class SecretRedactor:
    """Redacts secret values from structured log data.

    A key is sensitive when its trailing words, split on underscores,
    dashes and camelCase, name a secret: ``matrixAccessToken`` and
    ``private_key`` are redacted, ``token_id`` and ``mapping`` are not.
    """

    SENSITIVE_NAMES = (
        ("mnemonic",),
        ("password",),
        ("passphrase",),
        ("secret",),
        ("secrets",),
        ("token",),
        ("pin",),
        ("seed",),
        ("private", "key"),
        ("recovery", "key"),
        ("recovery", "phrase"),
    )

    def is_sensitive(self, key: Any) -> bool:
        words = tuple(w.lower() for w in _WORD.findall(str(key)))
        return any(words[-len(name) :] == name for name in self.SENSITIVE_NAMES)

    def redact(self, data: Any) -> Any:
        if isinstance(data, dict):
            result = {}
            for key, value in data.items():
                if self.is_sensitive(key):
                    result[key] = "[REDACTED]"
                else:
                    result[key] = self.redact(value)
            return result
        elif isinstance(data, list | tuple):
            return [self.redact(item) for item in data]
        elif isinstance(data, str) and len(data) > 500:
            return data[:500] + "..."
        else:
            return data


redactor = SecretRedactor()


class JSONFormatter(logging.Formatter):
    """JSON log formatter.

    Includes the run ID when present in context. ``extra_data`` attached to
    a record is redacted before it is written.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        run_id = get_run_id()
        if run_id:
            log_data["run_id"] = run_id

        if record.levelno >= logging.WARNING:
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_data["extra"] = redactor.redact(record.extra_data)

        return json.dumps(log_data, default=str)


class StandardFormatter(logging.Formatter):
    """Human-readable formatter with colors for terminal output."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    RUN_ID_COLOR = "\033[90m"  # Gray

    def __init__(self, use_colors: bool = True):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        record = logging.makeLogRecord(record.__dict__)

        run_id = get_run_id()
        if run_id:
            short = run_id[:8]
            if self.use_colors:
                prefix = f"{self.RUN_ID_COLOR}[{short}]{self.RESET} "
            else:
                prefix = f"[{short}] "
            record.msg = prefix + str(record.msg)

        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            record.levelname = f"{color}{record.levelname}{self.RESET}"

        return super().format(record)


def configure_logging(
    level: str | int | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Configure the root logger.

    Args:
        level: Log level; defaults to the ``ORACLE_LOG_LEVEL`` setting.
        json_format: Use JSON format (auto-detect if None).
        log_file: Optional file to also write JSON logs to.
    """
    from .config import get_settings

    settings = get_settings()

    if level is None:
        level = settings.log_level
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_format is None:
        format_env = settings.log_format.lower()
        if format_env == "json":
            json_format = True
        elif format_env == "text":
            json_format = False
        else:
            json_format = not sys.stderr.isatty()

    log_file = settings.log_file if log_file is None else log_file

    formatter: logging.Formatter
    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = StandardFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    # Noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("nio").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def log_step(logger: logging.Logger, step: str, message: str, **data: Any) -> None:
    """Log a pipeline step with redacted structured data attached."""
    logger.info(
        f"[{step}] {message}",
        extra={"extra_data": {"step": step, **data}},
    )
