# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Transport wrapper that injects link failures at chosen reads.

Wrapping a Conn's transport in a ChaosTransport drops the link, or times a
read out, on every Nth read_until call. Jitter delays are drawn from a
seeded RNG, so a given configuration always fails the same way.
"""

from __future__ import annotations

import asyncio
import random

from jnos.errors import DisconnectedError, JNOSError, ReadTimeoutError
from jnos.logging import get_logger
from jnos.transport.base import Transport

logger = get_logger(__name__)


class ChaosTransport(Transport):
    def __init__(
        self,
        inner: Transport,
        *,
        seed: int = 1,
        disconnect_every_n_reads: int = 0,
        timeout_every_n_reads: int = 0,
        max_jitter_ms: int = 0,
        label: str = "chaos",
    ) -> None:
        self._inner = inner
        self._rng = random.Random(int(seed))
        self._disconnect_n = int(disconnect_every_n_reads or 0)
        self._timeout_n = int(timeout_every_n_reads or 0)
        self._max_jitter_ms = int(max_jitter_ms or 0)
        self._label = str(label or "chaos")
        self._read_count = 0
        self._disconnected = False

    @property
    def read_count(self) -> int:
        return self._read_count

    async def read_until(self, pattern: str, timeout: float | None = None) -> str:
        if self._disconnected:
            raise DisconnectedError(f"{self._label}: disconnected")
        self._read_count += 1

        if self._max_jitter_ms > 0:
            delay_ms = self._rng.uniform(0, self._max_jitter_ms)
            await asyncio.sleep(delay_ms / 1000)

        if self._disconnect_n > 0 and (self._read_count % self._disconnect_n) == 0:
            # Once dropped, the link stays down, like a real one.
            self._disconnected = True
            logger.info("chaos_disconnect", label=self._label, read=self._read_count)
            try:
                await self._inner.close()
            except JNOSError as e:
                logger.debug("chaos_inner_close_failed", error=str(e))
            raise DisconnectedError(f"{self._label}: injected disconnect on read #{self._read_count}")

        if self._timeout_n > 0 and (self._read_count % self._timeout_n) == 0:
            logger.info("chaos_timeout", label=self._label, read=self._read_count)
            raise ReadTimeoutError(f"{self._label}: injected timeout on read #{self._read_count}")

        return await self._inner.read_until(pattern, timeout)

    async def send(self, line: str) -> None:
        if self._disconnected:
            raise DisconnectedError(f"{self._label}: disconnected")
        await self._inner.send(line)

    async def close(self) -> None:
        if self._disconnected:
            return
        await self._inner.close()
