"""Tests for the jnos command line."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog
from click.testing import CliRunner

from jnos.cli import cli


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    monkeypatch.setenv("JNOS_SIMULATOR_HOST", "127.0.0.1")
    return CliRunner()


def test_password_prints_challenge_response(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["password", "1a2b3c4d", "secret"])

    assert result.exit_code == 0
    assert result.output.strip() == "268058bd10a3c2712eb730d46b217d1f"


def test_password_rejects_bad_challenge(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["password", "not-hex", "secret"])

    assert result.exit_code == 2
    assert "invalid challenge" in result.output


def test_list_against_simulated_file(runner: CliRunner, tmp_path: Path, mbox_corpus: str) -> None:
    messages = tmp_path / "messages.mbox"
    messages.write_text(mbox_corpus)

    result = runner.invoke(cli, ["list", "--bbs", str(messages)])

    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0] == "Area:  - 3 messages, 3 new"
    assert lines[1].startswith("  1    Jan 02 W6ABC    KC6RSC")
    assert lines[1].endswith("First check-in")
    assert len(lines) == 4


def test_list_unread_from_start(runner: CliRunner, tmp_path: Path, mbox_corpus: str) -> None:
    messages = tmp_path / "messages.mbox"
    messages.write_text(mbox_corpus)

    result = runner.invoke(cli, ["list", "--bbs", str(messages), "--start", "3"])

    assert result.exit_code == 0, result.output
    assert result.output.splitlines()[1].startswith("  3 ")


def test_list_empty_file(runner: CliRunner, tmp_path: Path) -> None:
    messages = tmp_path / "empty.mbox"
    messages.write_text("")

    result = runner.invoke(cli, ["list", "--bbs", str(messages)])

    assert result.exit_code == 0, result.output
    assert result.output.strip() == "No messages."


def test_list_unknown_area_is_error(runner: CliRunner, tmp_path: Path, mbox_corpus: str) -> None:
    messages = tmp_path / "messages.mbox"
    messages.write_text(mbox_corpus)

    result = runner.invoke(cli, ["list", "--bbs", str(messages), "--area", "nowhere"])

    assert result.exit_code == 1
    assert "No such message area" in result.output


@pytest.mark.parametrize(
    ("args", "message"),
    [
        (["--bbs", "W6XSC-1", "--mbox", "KC6RSC"], "--port required"),
        (["--bbs", "W6XSC-1", "--port", "/dev/ttyUSB0"], "--mbox required"),
        (["--bbs", "W6XSC-1", "--port", "/dev/ttyUSB0", "--mbox", "XSCEOC"], "--call required"),
        (["--bbs", "W6XSC-1", "--port", "/dev/ttyUSB0", "--mbox", "XSCEOC", "--call", "BOGUS"], "FCC call sign"),
        (["--bbs", "bbs.example.org:8023", "--mbox", "KC6RSC"], "--pwd required"),
        (["--bbs", "bbs.example.org:8023", "--pwd", "secret"], "--mbox required"),
    ],
)
def test_list_transport_option_validation(runner: CliRunner, args: list[str], message: str) -> None:
    result = runner.invoke(cli, ["list", *args])

    assert result.exit_code == 2
    assert message in result.output


def test_simulate_rejects_mixed_area_prefixes(runner: CliRunner, tmp_path: Path) -> None:
    a = tmp_path / "a.mbox"
    a.write_text("")

    result = runner.invoke(cli, ["simulate", f"home:{a}", str(a)])

    assert result.exit_code == 2
    assert "every message file must be prefixed" in result.output
