# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Terminal QR codes for the mobile wallet."""

from __future__ import annotations

import json
import sys
from typing import Any, TextIO

import qrcode


def render_qr(data: str | dict[str, Any], title: str, stream: TextIO | None = None) -> None:
    """Print ``data`` as a compact QR code under a short banner."""
    out = stream or sys.stderr
    text = data if isinstance(data, str) else json.dumps(data, separators=(",", ":"))

    indent = " " * 5
    out.write(f"\n{indent}{title}\n")
    out.write(f"{indent}Scan with the IXO app\n")
    out.write(f"{indent}{'-' * 30}\n")

    qr = qrcode.QRCode(border=1, error_correction=qrcode.constants.ERROR_CORRECT_L)
    qr.add_data(text)
    qr.make(fit=True)
    qr.print_ascii(out=out, invert=True)

    out.write(f"{indent}Waiting...\n\n")
    out.flush()
