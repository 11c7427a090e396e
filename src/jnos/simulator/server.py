# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Loopback JNOS BBS simulator.

Speaks just enough of JNOS over telnet for the jnos engine: any login and
password is accepted, and the message areas are seeded from message files.
Every message sent through it is recorded in ``sent`` for later inspection.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from jnos.constants import (
    CC_PROMPT,
    END_OF_MESSAGE,
    ENCODING,
    ENCODING_ERRORS,
    ENTER_MESSAGE_BANNER,
    LIST_AREA_PREFIX,
    LIST_HEADER,
    LIST_NONE,
    MSG_QUEUED,
    NO_SUCH_AREA,
    SIMULATOR_HOST,
    SIMULATOR_PORT,
    SUBJECT_PROMPT,
)
from jnos.logging import get_logger
from jnos.models import SentMessage
from jnos.simulator.corpus import import_messages, summarize
from jnos.transport import telnet

if TYPE_CHECKING:
    from jnos.conn import Conn
    from jnos.settings import Settings

logger = get_logger(__name__)

BANNER = "[JNOS-2.0-B1FHIM$]\n"
LOGIN = "login: "
PASSWORD_CHALLENGE = "Password [0] : "


@dataclass
class _Session:
    """Per-connection state: current area and what has been read or killed."""

    area: str
    current: int = 0
    read: set[tuple[str, int]] = field(default_factory=set)
    deleted: set[tuple[str, int]] = field(default_factory=set)


class _Hangup(Exception):
    """The client logged out or went away."""


class Simulator:
    """A rudimentary JNOS BBS on a local TCP port."""

    def __init__(
        self,
        messages: Mapping[str, str] | None = None,
        home: str = "",
        *,
        host: str = SIMULATOR_HOST,
        port: int = SIMULATOR_PORT,
        latency: float = 0.0,
    ) -> None:
        """Initialize the simulator.

        Args:
            messages: Message file contents (mbox or session transcript),
                keyed by message area name
            home: Area selected at login
            host: Host to bind to
            port: Port to bind to (0 = random available port)
            latency: Seconds to wait before answering each command
        """
        self.host = host
        self.port = port
        self.latency = latency
        self.home = home.lower()
        self.messages: dict[str, list[str]] = {
            area.lower(): import_messages(text) for area, text in (messages or {}).items()
        }
        self.sent: list[SentMessage] = []
        self.server: asyncio.Server | None = None
        self.clients: set[asyncio.StreamWriter] = set()

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    async def start(self) -> None:
        """Start listening."""
        self.server = await asyncio.start_server(self._handle_client, self.host, self.port)
        # Update port to actual assigned port
        self.port = self.server.sockets[0].getsockname()[1]
        logger.info("simulator_started", address=self.address, areas=sorted(self.messages))

    async def stop(self) -> None:
        """Stop listening and drop every connected client."""
        if self.server:
            self.server.close()
        for writer in list(self.clients):
            writer.close()
        self.clients.clear()
        if self.server:
            await self.server.wait_closed()
            self.server = None
        logger.info("simulator_stopped", sent=len(self.sent))

    async def __aenter__(self) -> Simulator:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()

    async def open_transport(
        self, mailbox: str = "x", password: str = "x", *, settings: Settings | None = None
    ) -> telnet.TelnetTransport:
        """Open a logged-in telnet transport to this simulator."""
        return await telnet.open_transport(self.address, mailbox, password, settings=settings)

    async def connect(self, mailbox: str = "x", password: str = "x", *, settings: Settings | None = None) -> Conn:
        """Connect a Conn to this simulator."""
        return await telnet.connect(self.address, mailbox, password, settings=settings)

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Lead the client through login, then run the command loop."""
        self.clients.add(writer)
        session = _Session(area=self.home)
        try:
            await _write(writer, LOGIN)
            await _read_line(reader)
            await _write(writer, PASSWORD_CHALLENGE)
            await _read_line(reader)
            await _write(writer, BANNER)
            while True:
                await _write(writer, f"(#{session.current}) >\n")
                command = (await _read_line(reader)).strip()
                await self._dispatch(session, command, reader, writer)
        except _Hangup:
            pass
        except (ConnectionResetError, BrokenPipeError) as e:
            logger.debug("simulator_client_dropped", error=str(e))
        finally:
            self.clients.discard(writer)
            writer.close()
            with contextlib.suppress(ConnectionResetError, BrokenPipeError):
                await writer.wait_closed()

    async def _dispatch(
        self,
        session: _Session,
        command: str,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """Hand a command line to its handler. Unknown commands are ignored."""
        lowered = command.lower()
        if lowered.startswith("b"):
            raise _Hangup()
        if self.latency:
            await asyncio.sleep(self.latency)
        if lowered.startswith("l"):
            await self._handle_list(session, lowered, writer)
        elif lowered.startswith("a"):
            await self._handle_area(session, lowered, writer)
        elif lowered.startswith(("r", "v")):
            await self._handle_read(session, lowered, writer)
        elif lowered.startswith("s"):
            await self._handle_send(command, reader, writer)
        elif lowered.startswith("k"):
            await self._handle_kill(session, lowered, writer)

    async def _handle_area(self, session: _Session, command: str, writer: asyncio.StreamWriter) -> None:
        area = command[1:].strip()
        if area not in self.messages:
            await _write(writer, f"{NO_SUCH_AREA}: {area}\n")
            return
        session.area = area
        session.current = 0

    async def _handle_list(self, session: _Session, command: str, writer: asyncio.StreamWriter) -> None:
        """Handle LA (all), LM (unread), L n (from n) and L> name (addressed to)."""
        messages = self.messages.get(session.area, [])
        numbers = range(1, len(messages) + 1)
        unread = [n for n in numbers if (session.area, n) not in session.read]

        wanted: list[int]
        wantto = ""
        arg = command[1:].strip()
        if arg.startswith("m"):
            wanted = unread
        elif arg.startswith(">"):
            wanted = list(numbers)
            wantto = arg[1:].strip()
        elif arg.isdigit():
            wanted = [n for n in numbers if n >= int(arg)]
        else:
            wanted = list(numbers)

        count = len(messages)
        noun = "message" if count == 1 else "messages"
        lines = [
            f"{LIST_AREA_PREFIX}{session.area}",
            f"{count} {noun}  -  {len(unread)} new",
            "",
        ]
        rows = []
        for n in wanted:
            summary = summarize(messages[n - 1])
            if wantto and wantto not in summary.to.lower():
                continue
            deleted = "D" if (session.area, n) in session.deleted else " "
            status = "Y" if (session.area, n) in session.read else "N"
            rows.append(
                f" {deleted}{status} {n:3d} {summary.to:<13.13} {summary.from_:<8.8} "
                f"{summary.date} {summary.size:4d} {summary.subject}"
            )
        lines.extend([LIST_HEADER, *rows] if rows else [LIST_NONE])
        await _write(writer, "".join(line + "\n" for line in lines))

    async def _handle_read(self, session: _Session, command: str, writer: asyncio.StreamWriter) -> None:
        """Handle R and V alike: the message is shown as it was imported."""
        messages = self.messages.get(session.area, [])
        if not messages:
            await _write(writer, "No messages\n")
            return
        arg = command[1:].strip()
        if not arg.isdigit() or not 1 <= int(arg) <= len(messages):
            await _write(writer, "Invalid Message\n")
            return
        n = int(arg)
        tag = "[Deleted]" if (session.area, n) in session.deleted else ""
        text = messages[n - 1]
        if not text.endswith("\n"):
            text += "\n"
        await _write(writer, f"Message #{n} {tag}\n{text}")
        session.read.add((session.area, n))
        session.current = n

    async def _handle_send(self, command: str, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Handle SP and SC by recording the message."""
        verb, _, to = command.partition(" ")
        verb = verb.lower()
        if verb not in ("sp", "sc") or not to.strip():
            await _write(writer, "Huh?\n")
            return
        recipients = [to.strip()]
        if verb == "sc":
            await _write(writer, CC_PROMPT)
            recipients.extend((await _read_line(reader)).split())
        await _write(writer, SUBJECT_PROMPT)
        subject = await _read_line(reader)
        await _write(writer, ENTER_MESSAGE_BANNER)
        body: list[str] = []
        while (line := await _read_line(reader)) != END_OF_MESSAGE:
            body.append(line + "\n")
        self.sent.append(SentMessage(to=tuple(recipients), subject=subject, body="".join(body)))
        logger.info("simulator_message_received", to=recipients, subject=subject)
        await _write(writer, MSG_QUEUED)

    async def _handle_kill(self, session: _Session, command: str, writer: asyncio.StreamWriter) -> None:
        messages = self.messages.get(session.area, [])
        replies = []
        for arg in command[1:].split():
            if arg.isdigit() and 1 <= int(arg) <= len(messages):
                session.deleted.add((session.area, int(arg)))
                replies.append(f"Msg {int(arg)} Killed.\n")
            else:
                replies.append(f"Invalid message number {arg}\n")
        await _write(writer, "".join(replies))


async def _write(writer: asyncio.StreamWriter, text: str) -> None:
    writer.write(text.replace("\n", "\r\n").encode(ENCODING, ENCODING_ERRORS))
    await writer.drain()


async def _read_line(reader: asyncio.StreamReader) -> str:
    line = await reader.readline()
    if not line:
        raise _Hangup()
    return line.decode(ENCODING, ENCODING_ERRORS).rstrip("\r\n")
