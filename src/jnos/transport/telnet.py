# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Telnet transport to a JNOS BBS, with MD5 challenge-response login."""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import struct
from typing import TYPE_CHECKING

import structlog

from jnos.constants import (
    DEFAULT_BBS_TIMEOUT_S,
    ENCODING,
    ENCODING_ERRORS,
    LOGIN_PROMPT,
    MD5_CHALLENGE_RE,
    PASSWORD_PROMPT_END,
    READ_CHUNK_SIZE,
    READ_QUEUE_CHUNKS,
)
from jnos.errors import (
    DisconnectedError,
    JNOSError,
    LoginError,
    ProtocolError,
    ReadTimeoutError,
    TransportError,
)
from jnos.transport.base import Transport

if TYPE_CHECKING:
    from asyncio import StreamReader, StreamWriter

    from jnos.conn import Conn
    from jnos.settings import Settings

log = structlog.get_logger()

CRLF = b"\r\n"
LF = b"\n"

# Connection timeout
DEFAULT_CONNECT_TIMEOUT_S = 30.0

# Read failures that mean the remote went away rather than something broke.
_DISCONNECT_ERRORS = (ConnectionResetError, ConnectionAbortedError, BrokenPipeError)


def challenge_response(challenge: str | int, password: str) -> str:
    """Compute the JNOS response to an MD5 password challenge.

    The challenge is a 32-bit number (hex digits on the wire). The response is
    the hex MD5 digest of the challenge as little-endian bytes followed by the
    password.

    Args:
        challenge: Challenge as hex text or an integer
        password: Mailbox password

    Returns:
        Lowercase hex digest to send in place of the password
    """
    if isinstance(challenge, str):
        challenge = int(challenge, 16)
    buf = struct.pack("<I", challenge & 0xFFFFFFFF) + password.encode(ENCODING, ENCODING_ERRORS)
    return hashlib.md5(buf).hexdigest()


def parse_address(address: str) -> tuple[str, int]:
    """Split a host:port network address."""
    host, sep, port = address.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"invalid BBS network address {address!r} (want host:port)")
    return host.strip("[]"), int(port)


class TelnetTransport(Transport):
    """Telnet transport implementation.

    A background task moves bytes from the socket into a bounded queue; all
    pattern matching and timing happens in the caller's read_until.
    """

    def __init__(
        self,
        reader: StreamReader,
        writer: StreamWriter,
        *,
        timeout: float = DEFAULT_BBS_TIMEOUT_S,
    ) -> None:
        """Wrap an open stream pair and start the reader task.

        Must be called from within a running event loop.
        """
        self._reader = reader
        self._writer = writer
        self._timeout = timeout
        self._pending = bytearray()
        self._queue: asyncio.Queue[bytes] = asyncio.Queue(maxsize=READ_QUEUE_CHUNKS)
        # Resolved exactly once, with the exception that ended the reader (None for EOF).
        self._terminal: asyncio.Future[BaseException | None] = asyncio.get_running_loop().create_future()
        self._disconnected = False
        self._closed = False
        self._reader_task = asyncio.create_task(self._read_loop())

    @classmethod
    async def open(
        cls,
        host: str,
        port: int,
        mailbox: str,
        password: str,
        *,
        timeout: float = DEFAULT_BBS_TIMEOUT_S,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_S,
    ) -> TelnetTransport:
        """Connect to the BBS and log into a mailbox.

        Args:
            host: BBS hostname or IP address
            port: BBS telnet port
            mailbox: Mailbox (login) name
            password: Mailbox password
            timeout: Default read timeout in seconds
            connect_timeout: TCP connection timeout in seconds

        Raises:
            TransportError: If the TCP connection fails
            LoginError: If the login exchange fails
        """
        try:
            reader, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=connect_timeout)
        except (OSError, TimeoutError) as e:
            raise TransportError(f"Failed to connect to {host}:{port}") from e

        transport = cls(reader, writer, timeout=timeout)
        log.info("telnet_connected", host=host, port=port)
        try:
            await transport._login(mailbox, password)
        except JNOSError as e:
            await transport.close()
            raise LoginError(f"BBS connect: {e}") from e
        log.info("telnet_logged_in", mailbox=mailbox)
        return transport

    async def _login(self, mailbox: str, password: str) -> None:
        await self.read_until(LOGIN_PROMPT)
        await self.send(mailbox)
        prompt = await self.read_until(PASSWORD_PROMPT_END)
        match = MD5_CHALLENGE_RE.search(prompt)
        if not match:
            raise ProtocolError("JNOS password prompt did not include MD5 challenge")
        await self.send(challenge_response(match.group(1), password))

    async def read_until(self, pattern: str, timeout: float | None = None) -> str:
        if timeout is None:
            timeout = self._timeout
        until = pattern.encode(ENCODING, ENCODING_ERRORS).replace(LF, CRLF)
        while True:
            idx = self._pending.find(until)
            if idx >= 0:
                end = idx + len(until)
                data = _decode(self._pending[:end])
                del self._pending[:end]
                log.debug("jnos_rx", data=data)
                return data
            try:
                await self._fill(timeout)
            except TransportError as e:
                e.data = _decode(self._pending)
                self._pending.clear()
                if e.data:
                    log.debug("jnos_rx", data=e.data)
                raise

    async def _fill(self, timeout: float) -> None:
        """Append the next chunk from the reader task to the pending buffer.

        Queued data always wins over the terminal error, so nothing the remote
        sent before disconnecting is lost.
        """
        while True:
            if not self._queue.empty():
                self._pending += self._queue.get_nowait()
                return
            if self._terminal.done():
                raise self._terminal_error()
            if self._disconnected:
                raise DisconnectedError()

            getter = asyncio.create_task(self._queue.get())
            try:
                done, _ = await asyncio.wait(
                    {getter, self._terminal},
                    timeout=timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                if not getter.done():
                    getter.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await getter
            if getter in done:
                self._pending += getter.result()
                return
            if not done:
                raise ReadTimeoutError()

    def _terminal_error(self) -> TransportError:
        cause = self._terminal.result()
        if cause is None or isinstance(cause, _DISCONNECT_ERRORS):
            self._disconnected = True
            err: TransportError = DisconnectedError()
        else:
            err = TransportError(f"read failed: {cause}")
        err.__cause__ = cause
        return err

    async def _read_loop(self) -> None:
        """Move socket data into the queue until EOF or failure.

        The terminal future is resolved exactly once, after the last chunk has
        been queued.
        """
        cause: BaseException | None = None
        try:
            while True:
                chunk = await self._reader.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                await self._queue.put(chunk)
        except OSError as e:
            cause = e
        finally:
            if not self._terminal.done():
                self._terminal.set_result(cause)

    async def send(self, line: str) -> None:
        if self._disconnected or self._closed:
            raise DisconnectedError()
        data = line.encode(ENCODING, ENCODING_ERRORS)
        if not data.endswith(LF):
            data += LF
        log.debug("jnos_tx", data=line)
        try:
            self._writer.write(data)
            await self._writer.drain()
        except _DISCONNECT_ERRORS as e:
            self._disconnected = True
            raise DisconnectedError() from e
        except OSError as e:
            raise TransportError(f"send failed: {e}") from e

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        try:
            self._writer.close()
            await self._writer.wait_closed()
        except (*_DISCONNECT_ERRORS, RuntimeError):
            pass
        finally:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task

        log.info("telnet_disconnected")


def _decode(data: bytes | bytearray) -> str:
    return bytes(data).replace(CRLF, LF).decode(ENCODING, ENCODING_ERRORS)


async def open_transport(address: str, mailbox: str, password: str, *, settings: Settings | None = None) -> TelnetTransport:
    """Open a telnet transport to the BBS at address (host:port) and log in."""
    if settings is None:
        from jnos.settings import Settings

        settings = Settings()
    host, port = parse_address(address)
    return await TelnetTransport.open(host, port, mailbox, password, timeout=settings.bbs_timeout)


async def connect(address: str, mailbox: str, password: str, *, settings: Settings | None = None) -> Conn:
    """Connect to the BBS at address (host:port), log in, and return a Conn."""
    from jnos.conn import connect as connect_conn

    transport = await open_transport(address, mailbox, password, settings=settings)
    try:
        return await connect_conn(transport)
    except JNOSError:
        await transport.close()
        raise
