# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""JNOS BBS simulator for testing without a real BBS."""

from __future__ import annotations

from jnos.simulator.corpus import import_messages, summarize
from jnos.simulator.server import Simulator

__all__ = ["Simulator", "import_messages", "summarize"]
