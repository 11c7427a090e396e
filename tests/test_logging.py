from __future__ import annotations

from collections.abc import Iterator

import pytest
import structlog

from jnos.logging import configure_logging, escape_traffic, get_logger
from jnos.settings import Settings


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


def test_escape_traffic_shows_control_characters() -> None:
    event = escape_traffic(None, "debug", {"event": "jnos_tx", "data": "D\r\x03"})

    assert event["data"] == "D\\r\\x03"


def test_escape_traffic_leaves_other_events() -> None:
    event = escape_traffic(None, "info", {"event": "telnet_connected", "data": "a\r"})

    assert event["data"] == "a\r"


def test_unknown_level_falls_back_to_warning(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(Settings(log_level="chatty"))
    logger = get_logger(__name__)

    logger.info("quiet_event")
    logger.warning("loud_event")

    err = capsys.readouterr().err
    assert "quiet_event" not in err
    assert "loud_event" in err


def test_debug_level_logs_escaped_traffic(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(Settings(log_level="debug"))

    get_logger(__name__).debug("jnos_rx", data="cmd:\r\n")

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "cmd:\\r\\n" in captured.err
