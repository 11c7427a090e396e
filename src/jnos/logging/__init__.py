# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Logging layer for jnos."""

from __future__ import annotations

from jnos.logging.config import configure_logging, escape_traffic, get_logger

__all__ = ["configure_logging", "escape_traffic", "get_logger"]
