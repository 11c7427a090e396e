# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Abstract base class for JNOS BBS transports."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Transport(ABC):
    """Abstract base for the physical links to a JNOS BBS (telnet, TNC, etc)."""

    @abstractmethod
    async def read_until(self, pattern: str, timeout: float | None = None) -> str:
        """Read from the BBS until pattern is seen.

        Line breaks in pattern and in the returned text are single newlines,
        whatever the wire convention is.

        Args:
            pattern: Text to wait for
            timeout: Inactivity timeout in seconds (transport default if None)

        Returns:
            Everything read up through and including pattern

        Raises:
            DisconnectedError: If the connection to the BBS was lost
            ReadTimeoutError: If pattern was not seen in time
            TransportError: If anything else goes wrong

            Each of these carries the data read so far in its ``data``
            attribute.
        """

    @abstractmethod
    async def send(self, line: str) -> None:
        """Send a line to the BBS, terminating it with a newline if needed.

        Raises:
            DisconnectedError: If the connection to the BBS was lost
            TransportError: If the write fails
        """

    @abstractmethod
    async def close(self) -> None:
        """Close the connection and release the underlying resource."""
