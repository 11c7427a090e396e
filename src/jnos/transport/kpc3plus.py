# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Transport to a JNOS BBS over RF, through a Kantronics KPC-3 Plus TNC.

The TNC sits on a serial port. In command mode it prints a ``cmd:`` prompt
and echoes everything typed at it; once connected it relays traffic to and
from the BBS. Reads are blocking pyserial reads with the timeout set on the
port for each call, run in a worker thread so the event loop stays free.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Protocol

import serial

from jnos.constants import (
    DEFAULT_ECHO_TIMEOUT_S,
    DEFAULT_RF_TIMEOUT_S,
    DEFAULT_SERIAL_BAUD,
    DEFAULT_TNC_TIMEOUT_S,
    ENCODING,
    ENCODING_ERRORS,
    READ_CHUNK_SIZE,
    TNC_COMMAND_MODE,
    TNC_DISCONNECTED,
    TNC_POST_DISCONNECT_COMMANDS,
    TNC_PRE_CONNECT_COMMANDS,
    TNC_PROMPT,
    TNC_RESYNC_ATTEMPTS,
)
from jnos.errors import (
    BadEchoError,
    DisconnectedError,
    JNOSError,
    LinkError,
    ReadTimeoutError,
    TeardownError,
    TNCSetupError,
    TransportError,
)
from jnos.logging import get_logger
from jnos.transport.base import Transport

if TYPE_CHECKING:
    from jnos.conn import Conn
    from jnos.settings import Settings

logger = get_logger(__name__)

CR = b"\r"
CRLF = b"\r\n"
LF = b"\n"

_DISCONNECTED_TEXT = TNC_DISCONNECTED.replace(CRLF, LF).decode(ENCODING)


class SerialPort(Protocol):
    """The part of the pyserial ``Serial`` API this transport relies on."""

    timeout: float | None

    @property
    def in_waiting(self) -> int: ...

    def read(self, size: int = 1) -> bytes: ...

    def write(self, data: bytes) -> int | None: ...

    def close(self) -> None: ...


def open_serial(port_name: str, baudrate: int = DEFAULT_SERIAL_BAUD) -> serial.Serial:
    """Open the serial port the TNC is attached to (8N1, RTS/CTS)."""
    return serial.Serial(
        port=port_name,
        baudrate=baudrate,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_NONE,
        stopbits=serial.STOPBITS_ONE,
        rtscts=True,
        timeout=DEFAULT_TNC_TIMEOUT_S,
    )


class _Teardown:
    """Runs cleanup actions unconditionally, remembering the first failure."""

    def __init__(self) -> None:
        self.error: TeardownError | None = None

    async def run(
        self,
        step: str,
        action: Awaitable[object],
        *,
        tolerate: tuple[type[Exception], ...] = (),
    ) -> bool:
        try:
            await action
        except tolerate:
            return True
        except JNOSError as e:
            logger.warning("tnc_cleanup_step_failed", step=step, error=str(e))
            if self.error is None:
                self.error = TeardownError(f"cleanup: {step}: {e}")
                self.error.__cause__ = e
            return False
        return True

    def raise_first(self) -> None:
        if self.error is not None:
            raise self.error


class KPC3PlusTransport(Transport):
    """KPC-3 Plus TNC transport implementation."""

    def __init__(
        self,
        port: SerialPort,
        *,
        callsign: str = "",
        tnc_timeout: float = DEFAULT_TNC_TIMEOUT_S,
        echo_timeout: float = DEFAULT_ECHO_TIMEOUT_S,
        rf_timeout: float = DEFAULT_RF_TIMEOUT_S,
    ) -> None:
        """Wrap an open serial port. Use open() to bring up the link.

        Args:
            port: Serial port connected to the TNC
            callsign: Licensed operator call sign, if different from the
                mailbox; enables the post-disconnect identification
            tnc_timeout: Timeout for TNC command responses (no RF involved)
            echo_timeout: Timeout for the TNC to echo sent data
            rf_timeout: Timeout for responses that need an RF round trip
        """
        self._port = port
        self._callsign = callsign
        self._tnc_timeout = tnc_timeout
        self._echo_timeout = echo_timeout
        self._rf_timeout = rf_timeout
        self._pending = bytearray()
        self._connected = False
        self._was_connected = False
        self._closed = False

    @classmethod
    async def open(
        cls,
        port: SerialPort,
        bbs_address: str,
        mailbox: str,
        callsign: str = "",
        **kwargs: float,
    ) -> KPC3PlusTransport:
        """Configure the TNC and connect to the BBS.

        Args:
            port: Serial port connected to the TNC
            bbs_address: AX.25 address of the BBS (call sign and SSID)
            mailbox: Mailbox to log into; becomes the TNC's station call sign
            callsign: Licensed operator call sign, if different from mailbox
            **kwargs: Timeout overrides passed to the constructor

        Raises:
            TNCSetupError: If the TNC could not be configured
            LinkError: If the connect command failed
        """
        transport = cls(port, callsign=callsign, **kwargs)
        try:
            await transport._configure(mailbox)
        except JNOSError as e:
            await transport._close_after_failure()
            raise TNCSetupError(f"BBS connect: {e}") from e
        try:
            await transport._connect_link(bbs_address)
        except JNOSError as e:
            await transport._close_after_failure()
            raise LinkError(f"BBS connect: {e}") from e
        logger.info("tnc_connected", bbs=bbs_address, mailbox=mailbox)
        return transport

    async def _configure(self, mailbox: str) -> None:
        await self._resync()
        for command in TNC_PRE_CONNECT_COMMANDS:
            await self._command(command)
        # The mailbox we log into is our station call sign for this link.
        await self._command(f"MY {mailbox}")

    async def _resync(self) -> None:
        """Get a command prompt; the TNC often ignores the first return."""
        for attempt in range(1, TNC_RESYNC_ATTEMPTS + 1):
            await self._write(CR)
            try:
                await self._read_until(TNC_PROMPT, self._tnc_timeout)
                return
            except ReadTimeoutError:
                logger.debug("tnc_resync_retry", attempt=attempt)
        raise ReadTimeoutError("no TNC command prompt")

    async def _connect_link(self, bbs_address: str) -> None:
        # A returning prompt is the only success signal available, even though a
        # connect attempt that gave up inside the TNC looks the same.
        self._was_connected = True
        await self._command(f"CONNECT {bbs_address}")
        self._connected = True

    async def _command(self, command: str, timeout: float | None = None) -> None:
        logger.debug("tnc_command", command=command)
        await self._send(command)
        await self._read_until(TNC_PROMPT, self._tnc_timeout if timeout is None else timeout)

    async def read_until(self, pattern: str, timeout: float | None = None) -> str:
        if not self._connected:
            raise DisconnectedError()
        return await self._read_until(pattern, self._rf_timeout if timeout is None else timeout)

    async def _read_until(self, pattern: str, timeout: float) -> str:
        until = pattern.encode(ENCODING, ENCODING_ERRORS).replace(LF, CRLF)
        while True:
            self._check_disconnected()
            idx = self._pending.find(until)
            if idx >= 0:
                end = idx + len(until)
                data = _decode(self._pending[:end])
                del self._pending[:end]
                logger.debug("jnos_rx", data=data)
                return data
            try:
                chunk = await self._read_chunk(timeout)
            except TransportError as e:
                e.data = self._take_pending()
                raise
            if not chunk:
                raise ReadTimeoutError(data=self._take_pending())
            self._pending += chunk

    def _check_disconnected(self) -> None:
        """Raise DisconnectedError if the TNC reported losing the BBS link.

        Text ahead of the report is handed back as the error's data. The
        report and anything after it (the TNC's own ``cmd:``) are dropped, so
        each later TNC command is confirmed by its own prompt.
        """
        if not self._connected:
            return
        idx = self._pending.find(TNC_DISCONNECTED)
        if idx < 0:
            return
        data = _decode(self._pending[:idx])
        self._pending.clear()
        self._connected = False
        logger.info("tnc_link_lost")
        raise DisconnectedError(data=data)

    def _take_pending(self) -> str:
        data = _decode(self._pending)
        self._pending.clear()
        if data:
            logger.debug("jnos_rx", data=data)
        return data

    async def send(self, line: str) -> None:
        if not self._connected:
            raise DisconnectedError()
        await self._send(line)

    async def _send(self, line: str) -> None:
        """Send a line and wait for the TNC to echo it back."""
        data = line.encode(ENCODING, ENCODING_ERRORS).replace(LF, CR)
        if not data.endswith(CR):
            data += CR
        await self._write(data)

        echo = data.replace(CR, CRLF)
        while True:
            self._check_disconnected()
            idx = self._pending.find(echo)
            if idx >= 0:
                del self._pending[idx : idx + len(echo)]
                return
            chunk = await self._read_chunk(self._echo_timeout)
            if not chunk:
                raise BadEchoError()
            self._pending += chunk

    async def _write(self, data: bytes) -> None:
        logger.debug("jnos_tx", data=data.decode(ENCODING, ENCODING_ERRORS))
        try:
            await asyncio.to_thread(self._port.write, data)
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"serial write failed: {e}") from e

    async def _read_chunk(self, timeout: float) -> bytes:
        """Read whatever is waiting, or block up to timeout for one byte."""

        def _read() -> bytes:
            self._port.timeout = timeout
            return self._port.read(max(1, min(self._port.in_waiting, READ_CHUNK_SIZE)))

        try:
            return await asyncio.to_thread(_read)
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"serial read failed: {e}") from e

    async def close(self) -> None:
        """Disconnect from the BBS and restore the TNC's settings.

        Every teardown step runs even when an earlier one fails; the first
        failure is raised as a TeardownError once the port is closed.
        """
        if self._closed:
            return
        self._closed = True

        teardown = _Teardown()
        for step in (
            self._leave_converse,
            self._disconnect_link,
            self._post_identify,
            self._restore_settings,
        ):
            await step(teardown)
        await teardown.run("close serial port", self._close_port())
        logger.info("tnc_closed", error=str(teardown.error) if teardown.error else None)
        teardown.raise_first()

    async def _close_after_failure(self) -> None:
        try:
            await self.close()
        except TeardownError as e:
            logger.warning("tnc_cleanup_failed", error=str(e))

    async def _leave_converse(self, teardown: _Teardown) -> None:
        if not self._connected:
            return
        step = "return to command mode"
        await teardown.run(step, self._write(TNC_COMMAND_MODE))
        await teardown.run(
            step,
            self._read_until(TNC_PROMPT, self._tnc_timeout),
            tolerate=(DisconnectedError,),
        )

    async def _disconnect_link(self, teardown: _Teardown) -> None:
        if not self._connected:
            return
        await teardown.run("disconnect", self._disconnect())

    async def _disconnect(self) -> None:
        try:
            await self._send("D")
            await self._read_until(_DISCONNECTED_TEXT, self._rf_timeout)
        except DisconnectedError:
            pass
        finally:
            self._connected = False

    async def _post_identify(self, teardown: _Teardown) -> None:
        """Send the operator's call sign in converse mode after disconnecting."""
        if not (self._was_connected and self._callsign):
            return
        step = "send FCC ID"
        if await teardown.run(step, self._send("CONV")):
            await teardown.run(step, self._send_ident(f"DE {self._callsign}\n"))
        step = "send FCC ID: exit CONVERS mode"
        await teardown.run(step, self._write(TNC_COMMAND_MODE))
        await teardown.run(step, self._read_until(TNC_PROMPT, self._tnc_timeout))

    async def _send_ident(self, ident: str) -> None:
        await self._send(ident)
        # The monitor shows the ident once it is on the air. Leaving before then
        # strands it in the transmit queue, to be sent to the next BBS.
        await self._read_until(ident, self._rf_timeout)

    async def _restore_settings(self, teardown: _Teardown) -> None:
        commands: list[str] = []
        if self._callsign:
            commands.append(f"MY {self._callsign}")
        commands.extend(TNC_POST_DISCONNECT_COMMANDS)
        for command in commands:
            await teardown.run("restore settings", self._command(command))

    async def _close_port(self) -> None:
        try:
            await asyncio.to_thread(self._port.close)
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"serial close failed: {e}") from e


def _decode(data: bytes | bytearray) -> str:
    return bytes(data).replace(CRLF, LF).decode(ENCODING, ENCODING_ERRORS)


async def open_transport(
    serial_port: str,
    bbs_address: str,
    mailbox: str,
    callsign: str = "",
    *,
    settings: Settings | None = None,
) -> KPC3PlusTransport:
    """Open the TNC on serial_port and connect through it to bbs_address."""
    if settings is None:
        from jnos.settings import Settings

        settings = Settings()
    try:
        port = await asyncio.to_thread(open_serial, serial_port, settings.serial_baud)
    except (serial.SerialException, OSError) as e:
        raise TransportError(f"cannot open serial port {serial_port}: {e}") from e
    return await KPC3PlusTransport.open(
        port,
        bbs_address,
        mailbox,
        callsign,
        tnc_timeout=settings.tnc_timeout,
        echo_timeout=settings.echo_timeout,
        rf_timeout=settings.rf_timeout,
    )


async def connect(
    serial_port: str,
    bbs_address: str,
    mailbox: str,
    callsign: str = "",
    *,
    settings: Settings | None = None,
) -> Conn:
    """Connect to the BBS through the TNC and return a Conn.

    When callsign is set (the operator's licensed call sign, used when the
    mailbox is a tactical call), the Conn identifies with it periodically.
    """
    from jnos.conn import connect as connect_conn
    from jnos.settings import Settings

    settings = settings or Settings()
    transport = await open_transport(serial_port, bbs_address, mailbox, callsign, settings=settings)
    try:
        conn = await connect_conn(transport)
    except JNOSError:
        await transport._close_after_failure()
        raise
    if callsign:
        conn.ident_every(settings.ident_interval, f"DE {callsign}")
    return conn
