# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Pytest configuration and fixtures."""

from __future__ import annotations

from unittest.mock import AsyncMock, Mock

import pytest

from tests.fakes import MBOX_CORPUS, FakeTNC


@pytest.fixture
def mbox_corpus() -> str:
    """Three-message mbox file."""
    return MBOX_CORPUS


@pytest.fixture
def fake_tnc() -> FakeTNC:
    """Fake KPC-3 Plus on a serial port."""
    return FakeTNC()


@pytest.fixture
def mock_writer() -> Mock:
    """Mock asyncio StreamWriter."""
    writer = AsyncMock()
    writer.write = Mock()
    writer.drain = AsyncMock()
    writer.close = Mock()
    writer.wait_closed = AsyncMock()
    writer.is_closing = Mock(return_value=False)
    return writer
