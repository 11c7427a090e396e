# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Application settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from jnos.constants import (
    DEFAULT_BBS_TIMEOUT_S,
    DEFAULT_ECHO_TIMEOUT_S,
    DEFAULT_IDENT_INTERVAL_S,
    DEFAULT_RF_TIMEOUT_S,
    DEFAULT_SERIAL_BAUD,
    DEFAULT_TNC_TIMEOUT_S,
    SIMULATOR_HOST,
    SIMULATOR_PORT,
)


class Settings(BaseSettings):
    log_level: str = "WARNING"

    # Timeouts, in seconds
    bbs_timeout: float = Field(default=DEFAULT_BBS_TIMEOUT_S, gt=0)
    tnc_timeout: float = Field(default=DEFAULT_TNC_TIMEOUT_S, gt=0)
    echo_timeout: float = Field(default=DEFAULT_ECHO_TIMEOUT_S, gt=0)
    rf_timeout: float = Field(default=DEFAULT_RF_TIMEOUT_S, gt=0)

    serial_baud: int = DEFAULT_SERIAL_BAUD
    ident_interval: float = Field(default=DEFAULT_IDENT_INTERVAL_S, gt=0)

    simulator_host: str = SIMULATOR_HOST
    simulator_port: int = SIMULATOR_PORT
    simulator_latency: float = Field(default=0.0, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="JNOS_",
        extra="ignore",
    )
