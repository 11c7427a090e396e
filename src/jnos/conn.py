# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Command/response engine for a JNOS BBS session.

A Conn drives the mailbox commands (list, read, send, kill, area selection
and logout) over any Transport. Every exchange is strictly half-duplex: send
one command, then read lines until the ``(#N) >`` prompt comes back.

Protocol mismatches fail the operation, not the Conn: the engine reads on to
the next prompt where it can, so the session stays usable, and then raises.
"""

from __future__ import annotations

import functools
import re
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar

from jnos.constants import (
    CC_PROMPT,
    CMD_AREA,
    CMD_BYE,
    CMD_KILL,
    CMD_LIST_ALL,
    CMD_LIST_FROM,
    CMD_LIST_UNREAD,
    CMD_PAGING_OFF,
    CMD_READ,
    CMD_READ_VERBOSE,
    CMD_SEND_CC,
    CMD_SEND_PRIVATE,
    END_OF_MESSAGE,
    ENTER_MESSAGE_BANNER,
    KILL_CONFIRM_RE,
    LIST_AREA_PREFIX,
    LIST_COUNT_RE,
    LIST_HEADER,
    LIST_NONE,
    LIST_ROW_RE,
    MSG_QUEUED,
    NEW_MAIL_NOTICE,
    NO_SUCH_AREA,
    PROMPT_RE,
    READ_CONFIRM_RE,
    READ_NOT_FOUND,
    SUBJECT_PROMPT,
)
from jnos.errors import DisconnectedError, JNOSError, ProtocolError
from jnos.logging import get_logger
from jnos.models import MessageInfo, MessageList

if TYPE_CHECKING:
    from jnos.transport.base import Transport

logger = get_logger(__name__)

T = TypeVar("T")


def _identifies(method: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Run the periodic self-identification check after the operation."""

    @functools.wraps(method)
    async def wrapper(self: Conn, *args: Any, **kwargs: Any) -> T:
        try:
            return await method(self, *args, **kwargs)
        finally:
            await self._maybe_ident()

    return wrapper


class Conn:
    """A live, logged-in connection to a JNOS BBS.

    Create one with connect(). A Conn owns its transport exclusively and is
    not safe for concurrent use.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._ident = ""
        self._ident_every = 0.0
        self._next_ident: float | None = None

    def ident_every(self, interval: float, ident: str) -> None:
        """Send ``# <ident>`` as a comment whenever interval seconds have passed.

        This is how an operator connected over the air with a tactical call
        sign keeps identifying with their FCC call sign on long sessions.
        """
        self._ident = ident
        self._ident_every = interval
        self._next_ident = time.monotonic() + interval

    @_identifies
    async def send(self, subject: str, body: str, *to: str) -> None:
        """Send a private message to one or more recipients.

        Raises:
            ValueError: If no recipient is given
        """
        if not to:
            raise ValueError("send requires at least one recipient")
        cmd = CMD_SEND_PRIVATE if len(to) == 1 else CMD_SEND_CC
        await self._transport.send(f"{cmd} {to[0]}")
        if len(to) > 1:
            await self._transport.read_until(CC_PROMPT)
            await self._transport.send(" ".join(to[1:]))
        await self._transport.read_until(SUBJECT_PROMPT)
        await self._transport.send(subject)
        await self._transport.read_until(ENTER_MESSAGE_BANNER)
        if not body.endswith("\n"):
            body += "\n"
        await self._transport.send(f"{body}{END_OF_MESSAGE}\n")
        await self._transport.read_until(MSG_QUEUED)
        await self._skip_lines_until_prompt()
        logger.info("jnos_message_sent", to=list(to), subject=subject)

    @_identifies
    async def list(self, start: int = 0) -> MessageList:
        """List the messages in the current area.

        Args:
            start: 0 lists all messages, a positive number lists messages
                with that number or higher, a negative number lists only
                unread messages

        Raises:
            ProtocolError: If the listing is not in the expected format
        """
        if start < 0:
            cmd = CMD_LIST_UNREAD
        elif start > 0:
            cmd = f"{CMD_LIST_FROM} {start}"
        else:
            cmd = CMD_LIST_ALL
        await self._transport.send(cmd)

        line = await self._read_line()
        if not line.startswith(LIST_AREA_PREFIX):
            raise await self._mismatch(f"{LIST_AREA_PREFIX}<area>", line)
        area = line[len(LIST_AREA_PREFIX) :]

        line = await self._read_line()
        match = LIST_COUNT_RE.match(line)
        if not match:
            raise await self._mismatch("<n> message(s)  -  <n> new", line)
        count, count_new = int(match.group(1)), int(match.group(2))

        line = await self._read_line()
        if line:
            raise await self._mismatch("", line)

        line = await self._read_line()
        if line == LIST_NONE:
            await self._skip_lines_until_prompt()
            return MessageList(area=area, count=count, count_new=count_new)
        if line != LIST_HEADER:
            raise await self._mismatch(LIST_HEADER, line)

        messages: list[MessageInfo] = []
        line = await self._read_line()
        while match := LIST_ROW_RE.match(line):
            messages.append(_parse_list_row(match))
            line = await self._read_line()
        if line.startswith(NEW_MAIL_NOTICE):
            line = await self._read_line()
        if not PROMPT_RE.match(line):
            raise await self._mismatch("JNOS prompt", line)
        return MessageList(area=area, count=count, count_new=count_new, messages=tuple(messages))

    @_identifies
    async def read(self, msgnum: int, verbose: bool = False) -> str | None:
        """Read a message, headers included.

        Args:
            msgnum: Message number, as shown by list()
            verbose: Use the V command, which shows the full routing headers

        Returns:
            The message text, or None if there is no such message
        """
        cmd = CMD_READ_VERBOSE if verbose else CMD_READ
        await self._transport.send(f"{cmd} {msgnum}")

        line = await self._read_line()
        if line.startswith(READ_NOT_FOUND):
            await self._skip_lines_until_prompt()
            return None
        if not READ_CONFIRM_RE.match(line):
            raise await self._mismatch(f"Message #{msgnum}", line)

        lines: list[str] = []
        saw_header = False
        while True:
            line = await self._read_line()
            if PROMPT_RE.match(line):
                break
            lines.append(line + "\n")
            if not line:
                saw_header = True
        if not saw_header:
            raise ProtocolError("expected message body, received JNOS prompt")
        return "".join(lines)

    @_identifies
    async def kill(self, *msgnums: int) -> None:
        """Kill (delete) messages. They disappear when the connection closes."""
        await self._transport.send(" ".join([CMD_KILL, *(str(n) for n in msgnums)]))
        while True:
            line = await self._read_line()
            if PROMPT_RE.match(line):
                return
            if not KILL_CONFIRM_RE.match(line):
                raise await self._mismatch("Msg <n> Killed.", line)

    @_identifies
    async def set_area(self, area: str) -> None:
        """Select the message area that later commands operate on.

        Raises:
            ProtocolError: If the BBS has no such area
        """
        await self._transport.send(f"{CMD_AREA} {area}")
        rejected = ""
        while True:
            line = await self._read_line()
            if PROMPT_RE.match(line):
                break
            if line.startswith(NO_SUCH_AREA):
                rejected = line
        if rejected:
            raise ProtocolError(rejected)

    async def close(self) -> None:
        """Log out and close the transport.

        Logging out succeeds when the BBS drops the connection; anything it
        says instead is an error. The transport is closed either way.
        """
        try:
            await self._transport.send(CMD_BYE)
        except JNOSError:
            await self._close_transport_after_error()
            raise
        try:
            line = await self._read_line()
        except DisconnectedError:
            await self._transport.close()
            logger.info("jnos_logged_out")
            return
        except JNOSError as e:
            await self._close_transport_after_error()
            raise ProtocolError(f"expected disconnect, got error: {e}") from e
        await self._close_transport_after_error()
        raise ProtocolError(f"expected disconnect, received {line!r}")

    async def _close_transport_after_error(self) -> None:
        try:
            await self._transport.close()
        except JNOSError as e:
            logger.warning("jnos_transport_close_failed", error=str(e))

    async def _maybe_ident(self) -> None:
        if self._next_ident is None or time.monotonic() < self._next_ident:
            return
        self._next_ident = time.monotonic() + self._ident_every
        try:
            await self._transport.send(f"# {self._ident}")
            await self._skip_lines_until_prompt()
        except JNOSError as e:
            logger.debug("jnos_ident_failed", error=str(e))

    async def _mismatch(self, expected: str, received: str) -> ProtocolError:
        """Build the error for an unexpected line, first reading on to the prompt."""
        if not PROMPT_RE.match(received):
            try:
                await self._skip_lines_until_prompt()
            except JNOSError as e:
                logger.debug("jnos_resync_failed", error=str(e))
        return ProtocolError(f"expected {expected!r} received {received!r}")

    async def _skip_lines_until_prompt(self) -> None:
        while not PROMPT_RE.match(await self._read_line()):
            pass

    async def _read_line(self) -> str:
        line = await self._transport.read_until("\n")
        return line[:-1] if line.endswith("\n") else line


def _parse_list_row(match: re.Match[str]) -> MessageInfo:
    return MessageInfo(
        number=int(match.group(3)),
        deleted=match.group(1) == "D",
        held=match.group(2) == "H",
        read=match.group(2) == "Y",
        to_prefix=match.group(4).strip(),
        from_prefix=match.group(5).strip(),
        date=match.group(6),
        size=int(match.group(7)),
        subject_prefix=match.group(8).strip(),
    )


async def connect(transport: Transport) -> Conn:
    """Start a BBS session over an open, logged-in transport.

    Discards the connection banner, turns paging off and waits for the
    prompt. Errors propagate; the caller still owns the transport on failure.
    """
    conn = Conn(transport)
    await conn._skip_lines_until_prompt()
    await transport.send(CMD_PAGING_OFF)
    await conn._skip_lines_until_prompt()
    logger.info("jnos_session_ready")
    return conn
