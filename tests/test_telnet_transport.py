"""Tests for the telnet transport."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from jnos.errors import DisconnectedError, LoginError, ReadTimeoutError, TransportError
from jnos.transport.telnet import TelnetTransport, challenge_response, parse_address

# MD5 of the challenge 0x1a2b3c4d as little-endian bytes, then "secret".
SECRET_RESPONSE = "268058bd10a3c2712eb730d46b217d1f"


def test_challenge_response_matches_md5_of_le_challenge_and_password() -> None:
    assert challenge_response("1a2b3c4d", "secret") == SECRET_RESPONSE
    assert challenge_response(0x1A2B3C4D, "secret") == SECRET_RESPONSE


def test_challenge_response_short_challenge() -> None:
    assert challenge_response("0", "pw") == "5df4a5e1cf2f47a4249305d65f0a07ce"


def test_challenge_response_rejects_non_hex() -> None:
    with pytest.raises(ValueError):
        challenge_response("xyz", "pw")


@pytest.mark.parametrize(
    ("address", "expected"),
    [("bbs.example.org:8023", ("bbs.example.org", 8023)), ("[::1]:23", ("::1", 23))],
)
def test_parse_address(address: str, expected: tuple[str, int]) -> None:
    assert parse_address(address) == expected


@pytest.mark.parametrize("address", ["bbs.example.org", ":23", "host:port"])
def test_parse_address_invalid(address: str) -> None:
    with pytest.raises(ValueError):
        parse_address(address)


@pytest.mark.asyncio
async def test_read_until_translates_line_endings(mock_writer: Mock) -> None:
    reader = asyncio.StreamReader()
    reader.feed_data(b"line one\r\nline two\r\n(#1) >\r\nrest")
    transport = TelnetTransport(reader, mock_writer, timeout=0.5)

    assert await transport.read_until("two\n") == "line one\nline two\n"
    assert await transport.read_until(">\n") == "(#1) >\n"
    await transport.close()


@pytest.mark.asyncio
async def test_read_timeout_returns_data(mock_writer: Mock) -> None:
    reader = asyncio.StreamReader()
    reader.feed_data(b"partial\r\nline")
    transport = TelnetTransport(reader, mock_writer)

    with pytest.raises(ReadTimeoutError) as exc_info:
        await transport.read_until("never", timeout=0.05)

    assert exc_info.value.data == "partial\nline"
    await transport.close()


@pytest.mark.asyncio
async def test_timeout_is_inactivity_based(mock_writer: Mock) -> None:
    reader = asyncio.StreamReader()
    transport = TelnetTransport(reader, mock_writer)

    async def trickle() -> None:
        for chunk in (b"a", b"b", b"c", b"END"):
            await asyncio.sleep(0.05)
            reader.feed_data(chunk)

    feeder = asyncio.create_task(trickle())
    # Total delivery time exceeds the timeout; each gap does not.
    assert await transport.read_until("END", timeout=0.15) == "abcEND"
    await feeder
    await transport.close()


@pytest.mark.asyncio
async def test_eof_is_disconnect_and_monotonic(mock_writer: Mock) -> None:
    reader = asyncio.StreamReader()
    reader.feed_data(b"bye\r\n")
    reader.feed_eof()
    transport = TelnetTransport(reader, mock_writer)

    with pytest.raises(DisconnectedError) as exc_info:
        await transport.read_until("prompt")
    assert exc_info.value.data == "bye\n"

    with pytest.raises(DisconnectedError):
        await transport.read_until("prompt")
    with pytest.raises(DisconnectedError):
        await transport.send("hello")
    await transport.close()


@pytest.mark.asyncio
async def test_queued_data_drains_before_disconnect(mock_writer: Mock) -> None:
    reader = asyncio.StreamReader()
    reader.feed_data(b"first\r\n")
    reader.feed_data(b"second\r\n")
    reader.feed_eof()
    transport = TelnetTransport(reader, mock_writer)
    await asyncio.sleep(0.01)

    assert await transport.read_until("second\n") == "first\nsecond\n"
    with pytest.raises(DisconnectedError):
        await transport.read_until("\n")
    await transport.close()


@pytest.mark.asyncio
async def test_reset_during_send_is_disconnect(mock_writer: Mock) -> None:
    reader = asyncio.StreamReader()
    mock_writer.drain.side_effect = ConnectionResetError()
    transport = TelnetTransport(reader, mock_writer)

    with pytest.raises(DisconnectedError):
        await transport.send("hello")
    with pytest.raises(DisconnectedError):
        await transport.read_until("x", timeout=0.05)
    await transport.close()


@pytest.mark.asyncio
async def test_send_appends_newline(mock_writer: Mock) -> None:
    transport = TelnetTransport(asyncio.StreamReader(), mock_writer)

    await transport.send("LA")
    await transport.send("body\n/EX\n")

    assert [c.args[0] for c in mock_writer.write.call_args_list] == [b"LA\n", b"body\n/EX\n"]
    await transport.close()


@pytest.mark.asyncio
async def test_close_is_idempotent(mock_writer: Mock) -> None:
    transport = TelnetTransport(asyncio.StreamReader(), mock_writer)

    await transport.close()
    await transport.close()

    mock_writer.close.assert_called_once()


@given(
    text=st.text(alphabet="xyz \n", max_size=60),
    tail=st.text(alphabet="xyz \n", max_size=20),
    cuts=st.lists(st.integers(min_value=0, max_value=100), max_size=8),
)
@settings(max_examples=40, deadline=None)
def test_read_until_returns_prefix_through_pattern(text: str, tail: str, cuts: list[int]) -> None:
    wire = (text + "END\n" + tail + "!").replace("\n", "\r\n").encode()
    points = sorted({min(c, len(wire)) for c in cuts} | {0, len(wire)})
    chunks = [wire[a:b] for a, b in zip(points, points[1:]) if b > a]

    async def scenario() -> tuple[str, str]:
        reader = asyncio.StreamReader()
        writer = Mock(wait_closed=AsyncMock())
        transport = TelnetTransport(reader, writer, timeout=1.0)

        async def feed() -> None:
            for chunk in chunks:
                reader.feed_data(chunk)
                await asyncio.sleep(0)

        feeder = asyncio.create_task(feed())
        first = await transport.read_until("END\n")
        second = await transport.read_until("!")
        await feeder
        await transport.close()
        return first, second

    first, second = asyncio.run(scenario())
    assert first == text + "END\n"
    assert second == tail + "!"


async def _serve_login(challenge_line: bytes, received: list[bytes]) -> tuple[asyncio.Server, int]:
    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        writer.write(b"login: ")
        received.append(await reader.readline())
        writer.write(challenge_line)
        received.append(await reader.readline())
        writer.write(b"(#1) >\r\n")
        await writer.drain()
        await reader.read()
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    return server, server.sockets[0].getsockname()[1]


@pytest.mark.asyncio
async def test_open_logs_in_with_challenge_response() -> None:
    received: list[bytes] = []
    server, port = await _serve_login(b"Password [1a2b3c4d] : ", received)
    try:
        transport = await TelnetTransport.open("127.0.0.1", port, "kc6rsc", "secret", timeout=1.0)
        assert await transport.read_until(">\n") == "(#1) >\n"
        await transport.close()
    finally:
        server.close()
        await server.wait_closed()

    assert received == [b"kc6rsc\n", SECRET_RESPONSE.encode() + b"\n"]


@pytest.mark.asyncio
async def test_open_without_challenge_is_login_error() -> None:
    received: list[bytes] = []
    server, port = await _serve_login(b"Password: ", received)
    try:
        with pytest.raises(LoginError) as exc_info:
            await TelnetTransport.open("127.0.0.1", port, "kc6rsc", "secret", timeout=0.5)
    finally:
        server.close()
        await server.wait_closed()

    assert "MD5 challenge" in str(exc_info.value.__cause__)


@pytest.mark.asyncio
async def test_open_connection_refused() -> None:
    server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    server.close()
    await server.wait_closed()

    with pytest.raises(TransportError):
        await TelnetTransport.open("127.0.0.1", port, "m", "p", connect_timeout=1.0)
