# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""structlog setup for jnos.

Logs go to stderr so that stdout stays free for command output. Wire
traffic is logged at DEBUG as ``jnos_tx``/``jnos_rx`` events; their
``data`` is shown with control characters escaped, so a TNC's bare CRs
and Ctrl-C bytes are visible in the console.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from jnos.settings import Settings

__all__ = ["configure_logging", "escape_traffic", "get_logger"]

TRAFFIC_EVENTS = frozenset({"jnos_tx", "jnos_rx"})


def escape_traffic(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Escape the payload of wire traffic events."""
    if event_dict.get("event") in TRAFFIC_EVENTS and isinstance(event_dict.get("data"), str):
        event_dict["data"] = event_dict["data"].encode("unicode_escape", "backslashreplace").decode("ascii")
    return event_dict


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog from ``settings.log_level`` (JNOS_LOG_LEVEL).

    Unknown level names fall back to WARNING.
    """
    if settings is None:
        from jnos.settings import Settings

        settings = Settings()

    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.WARNING

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            escape_traffic,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)
