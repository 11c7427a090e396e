# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Read-only records produced by the protocol engine and the simulator."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class MessageInfo(BaseModel):
    """Details of a single message in a MessageList."""

    model_config = ConfigDict(frozen=True)

    # Message numbers are stable only for the duration of the BBS connection.
    number: int
    # Killed; will be deleted when the connection is closed.
    deleted: bool = False
    held: bool = False
    read: bool = False
    to_prefix: str = ""
    from_prefix: str = ""
    # Partial date, e.g. "Jan 02".
    date: str = ""
    size: int = 0
    subject_prefix: str = ""


class MessageList(BaseModel):
    """Snapshot of a mailbox listing, as returned by Conn.list."""

    model_config = ConfigDict(frozen=True)

    area: str
    count: int
    count_new: int
    messages: tuple[MessageInfo, ...] = ()


class SentMessage(BaseModel):
    """A message accepted by the simulator through SP or SC."""

    model_config = ConfigDict(frozen=True)

    to: tuple[str, ...]
    subject: str
    body: str
