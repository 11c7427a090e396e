# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Transport layer for BBS connections."""

from __future__ import annotations

from jnos.transport.base import Transport
from jnos.transport.chaos import ChaosTransport
from jnos.transport.kpc3plus import KPC3PlusTransport
from jnos.transport.telnet import TelnetTransport

__all__ = ["ChaosTransport", "KPC3PlusTransport", "TelnetTransport", "Transport"]
