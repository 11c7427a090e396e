from __future__ import annotations

import pytest

from jnos.errors import DisconnectedError, ReadTimeoutError
from jnos.transport.base import Transport
from jnos.transport.chaos import ChaosTransport
from tests.fakes import PROMPT, ScriptedTransport


class DummyTransport(Transport):
    def __init__(self) -> None:
        self.closed = False
        self.reads = 0

    async def read_until(self, pattern: str, timeout: float | None = None) -> str:
        if self.closed:
            raise DisconnectedError()
        self.reads += 1
        return "hello" + pattern

    async def send(self, line: str) -> None:
        if self.closed:
            raise DisconnectedError()

    async def close(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_chaos_disconnect_every_n_reads() -> None:
    inner = DummyTransport()
    transport = ChaosTransport(inner, seed=1, disconnect_every_n_reads=2, label="t")

    assert await transport.read_until("\n") == "hello\n"
    assert not inner.closed

    with pytest.raises(DisconnectedError, match="injected disconnect on read #2"):
        await transport.read_until("\n")
    assert inner.closed


@pytest.mark.asyncio
async def test_chaos_disconnect_is_permanent() -> None:
    inner = DummyTransport()
    transport = ChaosTransport(inner, disconnect_every_n_reads=1)

    with pytest.raises(DisconnectedError):
        await transport.read_until("\n")
    with pytest.raises(DisconnectedError):
        await transport.read_until("\n")
    with pytest.raises(DisconnectedError):
        await transport.send("LA")
    assert transport.read_count == 1


@pytest.mark.asyncio
async def test_chaos_timeout_every_n_reads() -> None:
    inner = DummyTransport()
    transport = ChaosTransport(inner, seed=1, timeout_every_n_reads=1, label="t")

    with pytest.raises(ReadTimeoutError):
        await transport.read_until("\n")
    assert inner.reads == 0
    assert not inner.closed


@pytest.mark.asyncio
async def test_chaos_jitter_is_deterministic_passthrough() -> None:
    inner = DummyTransport()
    transport = ChaosTransport(inner, seed=7, max_jitter_ms=2)

    for _ in range(3):
        assert await transport.read_until(">") == "hello>"
    assert inner.reads == 3


@pytest.mark.asyncio
async def test_conn_operation_fails_cleanly_on_injected_timeout() -> None:
    from jnos.conn import connect

    inner = ScriptedTransport("(#1) >\n", [PROMPT, "Msg 1 Killed.\n" + PROMPT])
    # Reads: banner prompt, XM prompt, then the kill confirmation times out.
    transport = ChaosTransport(inner, timeout_every_n_reads=3)
    conn = await connect(transport)

    with pytest.raises(ReadTimeoutError):
        await conn.kill(1)

    # The late confirmation is still buffered; the next command reads past it.
    inner.replies.append(PROMPT)
    await conn.kill(2)
    assert inner.sent[-1] == "K 2"
    assert inner.incoming == PROMPT
