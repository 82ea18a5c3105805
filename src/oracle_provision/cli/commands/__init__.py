# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""CLI command modules.

Each module exposes a ``register(subparsers)`` function that wires up
its argparse sub-commands and sets ``parser.set_defaults(func=handler)``.
"""

from . import entity, user, wallet
from .entity import cmd_add_controller, cmd_create_entity
from .user import cmd_create_user
from .wallet import cmd_login, cmd_logout, cmd_whoami

# Registration order is the order shown in --help.
COMMAND_MODULES = [wallet, user, entity]

__all__ = [
    "COMMAND_MODULES",
    "cmd_add_controller",
    "cmd_create_entity",
    "cmd_create_user",
    "cmd_login",
    "cmd_logout",
    "cmd_whoami",
]
