# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Command-line front end for oracle provisioning."""
