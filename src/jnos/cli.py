# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""jnos command line interface."""

from __future__ import annotations

import asyncio
import contextlib
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from jnos.conn import Conn
from jnos.constants import AX25_ADDRESS_RE, FCC_CALLSIGN_RE
from jnos.errors import JNOSError
from jnos.logging import configure_logging
from jnos.models import MessageList
from jnos.settings import Settings
from jnos.simulator import Simulator
from jnos.transport import kpc3plus, telnet

TRANSPORT_HELP = """
For TNC-based RF connections, --bbs must be an AX.25 address (A1AAA-1),
--mbox and --port must be set, and --call must be set if the mailbox is not
an FCC call sign. For network connections, --bbs is a host:port address and
--mbox and --pwd must be set (--pwd may name a file holding the password).
For simulations, --bbs names a file of messages to serve.
"""


def transport_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Add the options that select and configure the BBS transport."""
    options = [
        click.option("--bbs", required=True, help="BBS address, or a message file to simulate."),
        click.option("--mbox", default="", help="BBS mailbox."),
        click.option("--call", default="", help="FCC call sign, if the mailbox is not one."),
        click.option("--port", default="", help="Serial port of the TNC."),
        click.option("--pwd", default="", help="Password, or a file containing it."),
    ]
    for option in reversed(options):
        f = option(f)
    return f


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--log-level", default=None, help="Override JNOS_LOG_LEVEL.")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """jnos command line interface."""
    settings = Settings(log_level=log_level) if log_level else Settings()
    configure_logging(settings)
    ctx.obj = settings


@cli.command("list", epilog=TRANSPORT_HELP)
@transport_options
@click.option("--area", default="", help="Message area to list (default: the mailbox).")
@click.option("--start", type=int, default=0, show_default=True, help="First message number; negative lists unread only.")
@click.pass_obj
def list_messages(settings: Settings, bbs: str, mbox: str, call: str, port: str, pwd: str, area: str, start: int) -> None:
    """List the messages held in a mailbox."""

    async def _run() -> MessageList:
        conn, simulator = await _connect(settings, bbs, mbox, call, port, pwd)
        try:
            try:
                if area:
                    await conn.set_area(area)
                listing = await conn.list(start)
            except JNOSError:
                with contextlib.suppress(JNOSError):
                    await conn.close()
                raise
            await conn.close()
            return listing
        finally:
            if simulator:
                await simulator.stop()

    try:
        listing = asyncio.run(_run())
    except JNOSError as e:
        raise click.ClickException(str(e)) from e

    if not listing.messages:
        click.echo("No messages.")
        return
    click.echo(f"Area: {listing.area} - {listing.count} messages, {listing.count_new} new")
    for m in listing.messages:
        flags = "D" if m.deleted else "H" if m.held else " "
        flags += "R" if m.read else " "
        click.echo(f"{m.number:3d} {flags} {m.date} {m.from_prefix:<8.8} {m.to_prefix:<13.13} {m.size:3d} {m.subject_prefix}")


@cli.command("simulate")
@click.argument("files", nargs=-1)
@click.option("--host", default=None, help="Host to listen on (default: JNOS_SIMULATOR_HOST).")
@click.option("--port", type=int, default=None, help="Port to listen on (default: JNOS_SIMULATOR_PORT).")
@click.pass_obj
def simulate(settings: Settings, files: tuple[str, ...], host: str | None, port: int | None) -> None:
    """Run a simulated JNOS BBS until interrupted.

    Each FILE is AREA:PATH, naming a message file (mbox or session
    transcript) for that area; the first area is the home area. A single
    file may omit the area. With no files, messages are read from stdin.
    On exit, the messages sent through the simulator are printed.
    """
    messages, home = _load_areas(files)
    simulator = Simulator(
        messages,
        home,
        host=host or settings.simulator_host,
        port=settings.simulator_port if port is None else port,
        latency=settings.simulator_latency,
    )

    async def _serve() -> None:
        async with simulator:
            click.echo(f"JNOS simulator listening on {simulator.address}", err=True)
            await asyncio.Event().wait()

    with contextlib.suppress(KeyboardInterrupt):
        try:
            asyncio.run(_serve())
        except OSError as e:
            raise click.ClickException(str(e)) from e

    click.echo(f"{len(simulator.sent)} messages sent:")
    for i, message in enumerate(simulator.sent):
        click.echo(f"==== SENT MESSAGE {i} ====")
        click.echo(f"To: {', '.join(message.to)}")
        click.echo(f"Subject: {message.subject}")
        click.echo("")
        click.echo(message.body)


@cli.command("password")
@click.argument("challenge")
@click.argument("password")
def password(challenge: str, password: str) -> None:
    """Print the response to a JNOS MD5 password CHALLENGE."""
    try:
        click.echo(telnet.challenge_response(challenge, password))
    except ValueError as e:
        raise click.BadParameter(f"invalid challenge {challenge!r}", param_hint="CHALLENGE") from e


def _load_areas(files: tuple[str, ...]) -> tuple[dict[str, str], str]:
    messages: dict[str, str] = {}
    home = ""
    for arg in files:
        area, found, filename = arg.partition(":")
        if not found:
            if files != (arg,):
                raise click.UsageError("with multiple areas, every message file must be prefixed with area:")
            area, filename = "", arg
        elif not messages:
            home = area
        try:
            messages[area] = Path(filename).read_text(errors="surrogateescape")
        except OSError as e:
            raise click.ClickException(str(e)) from e
    if not messages:
        messages[""] = sys.stdin.read()
    return messages, home


async def _connect(
    settings: Settings, bbs: str, mbox: str, call: str, port: str, pwd: str
) -> tuple[Conn, Simulator | None]:
    """Connect to the BBS the transport options describe.

    Returns the Conn, plus the simulator serving it when --bbs names a file.
    """
    if Path(bbs).is_file():
        simulator = Simulator(
            {"": Path(bbs).read_text(errors="surrogateescape")},
            host=settings.simulator_host,
            port=0,
            latency=settings.simulator_latency,
        )
        await simulator.start()
        try:
            return await simulator.connect(settings=settings), simulator
        except JNOSError:
            await simulator.stop()
            raise

    if AX25_ADDRESS_RE.match(bbs):
        if not port:
            raise click.UsageError("--port required for TNC connection")
        if not mbox:
            raise click.UsageError("--mbox required for BBS connection")
        if not FCC_CALLSIGN_RE.match(mbox) and not call:
            raise click.UsageError("--mbox doesn't look like an FCC call sign, so --call required")
        if call and not FCC_CALLSIGN_RE.match(call):
            raise click.UsageError("--call doesn't look like an FCC call sign")
        conn = await kpc3plus.connect(port, bbs.upper(), mbox.upper(), call.upper(), settings=settings)
        return conn, None

    if not mbox:
        raise click.UsageError("--mbox required for BBS connection")
    if not pwd:
        raise click.UsageError("--pwd required for BBS connection")
    if Path(pwd).is_file():
        pwd = Path(pwd).read_text().strip()
    try:
        conn = await telnet.connect(bbs, mbox, pwd, settings=settings)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--bbs") from e
    return conn, None
