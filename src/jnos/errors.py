# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Exception hierarchy for JNOS BBS operations."""

from __future__ import annotations


class JNOSError(Exception):
    """Base exception for JNOS operations."""

    pass


class TransportError(JNOSError):
    """A transport read or write failed.

    Attributes:
        data: Everything read from the remote before the failure, with line
            endings already translated. Empty for write failures.
    """

    def __init__(self, message: str = "", *, data: str = "") -> None:
        super().__init__(message)
        self.data = data


class DisconnectedError(TransportError, ConnectionError):
    """The connection to the BBS was lost."""

    def __init__(self, message: str = "disconnected", *, data: str = "") -> None:
        super().__init__(message, data=data)


class ReadTimeoutError(TransportError, TimeoutError):
    """The expected text did not arrive before the read timed out."""

    def __init__(self, message: str = "read timeout expired", *, data: str = "") -> None:
        super().__init__(message, data=data)


class BadEchoError(TransportError):
    """The TNC did not echo sent data within the echo timeout."""

    def __init__(self, message: str = "sent data not echoed correctly", *, data: str = "") -> None:
        super().__init__(message, data=data)


class ProtocolError(JNOSError):
    """The BBS sent something other than what the command protocol expects."""

    pass


class LoginError(JNOSError):
    """Logging into the BBS over telnet failed."""

    pass


class TNCSetupError(JNOSError):
    """Configuring the TNC before connecting failed."""

    pass


class LinkError(JNOSError):
    """The TNC could not establish the link to the BBS."""

    pass


class TeardownError(JNOSError):
    """A step of the TNC disconnect and cleanup sequence failed."""

    pass
