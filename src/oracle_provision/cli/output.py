# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Output formatting for CLI commands.

Results go to stdout as JSON; errors go to stderr.
"""

from __future__ import annotations

import json
import sys
from typing import Any

from ..core.exceptions import ProvisioningError


def output_result(data: dict[str, Any]) -> None:
    """Pretty-print a command result as JSON."""
    print(json.dumps(data, indent=2, default=str))


def output_error(error: ProvisioningError | Exception | str) -> None:
    """Print an error to stderr, structured when it is a ProvisioningError."""
    if isinstance(error, ProvisioningError):
        print(json.dumps(error.to_dict(), indent=2, default=str), file=sys.stderr)
    else:
        print(f"Error: {error}", file=sys.stderr)
