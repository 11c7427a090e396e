# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Client library for JNOS packet-radio BBSes.

Open a transport (telnet, KPC-3 Plus TNC, or the simulator), pass it to
connect() to get a Conn, then call the Conn methods that correspond to the
BBS commands. Close the Conn when finished.
"""

from __future__ import annotations

from jnos.conn import Conn, connect
from jnos.errors import (
    BadEchoError,
    DisconnectedError,
    JNOSError,
    LinkError,
    LoginError,
    ProtocolError,
    ReadTimeoutError,
    TeardownError,
    TNCSetupError,
    TransportError,
)
from jnos.models import MessageInfo, MessageList, SentMessage

__version__ = "0.1.0"

__all__ = [
    "BadEchoError",
    "Conn",
    "DisconnectedError",
    "JNOSError",
    "LinkError",
    "LoginError",
    "MessageInfo",
    "MessageList",
    "ProtocolError",
    "ReadTimeoutError",
    "SentMessage",
    "TNCSetupError",
    "TeardownError",
    "TransportError",
    "connect",
]
