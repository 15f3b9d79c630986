"""Runtime settings, read from ``ZNP_*`` environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from .protocol.commands import PERMIT_JOIN_LONG
from .transport.serial_connection import DEFAULT_BAUDRATE, DEFAULT_PORT, READ_TIMEOUT_S

ENV_PREFIX = "ZNP_"
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@dataclass
class CoordinatorSettings:
    """Connection and bring-up settings."""

    port: str = DEFAULT_PORT
    baudrate: int = DEFAULT_BAUDRATE
    read_timeout: float = READ_TIMEOUT_S
    wait_for_config_ack: bool = False
    permit_join_seconds: int = PERMIT_JOIN_LONG
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.baudrate <= 0:
            raise ValueError(f"Baud rate must be positive, got {self.baudrate}")
        if self.read_timeout <= 0:
            raise ValueError(f"Read timeout must be positive, got {self.read_timeout}")
        if not 0 <= self.permit_join_seconds <= 0xFF:
            raise ValueError(
                f"Permit join seconds must be 0-255, got {self.permit_join_seconds}"
            )
        level = logging.getLevelName(self.log_level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level {self.log_level!r}")
        self.log_level = self.log_level.upper()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> CoordinatorSettings:
        """Build settings from ``ZNP_PORT``, ``ZNP_BAUDRATE`` and friends."""
        env = os.environ if environ is None else environ
        kwargs: dict = {}

        if f"{ENV_PREFIX}PORT" in env:
            kwargs["port"] = env[f"{ENV_PREFIX}PORT"]
        if f"{ENV_PREFIX}BAUDRATE" in env:
            kwargs["baudrate"] = int(env[f"{ENV_PREFIX}BAUDRATE"])
        if f"{ENV_PREFIX}READ_TIMEOUT" in env:
            kwargs["read_timeout"] = float(env[f"{ENV_PREFIX}READ_TIMEOUT"])
        if f"{ENV_PREFIX}WAIT_FOR_CONFIG_ACK" in env:
            kwargs["wait_for_config_ack"] = _parse_bool(
                f"{ENV_PREFIX}WAIT_FOR_CONFIG_ACK",
                env[f"{ENV_PREFIX}WAIT_FOR_CONFIG_ACK"],
            )
        if f"{ENV_PREFIX}PERMIT_JOIN_SECONDS" in env:
            kwargs["permit_join_seconds"] = int(env[f"{ENV_PREFIX}PERMIT_JOIN_SECONDS"], 0)
        if f"{ENV_PREFIX}LOG_LEVEL" in env:
            kwargs["log_level"] = env[f"{ENV_PREFIX}LOG_LEVEL"]

        return cls(**kwargs)

    def to_dict(self) -> dict:
        return {
            "port": self.port,
            "baudrate": self.baudrate,
            "read_timeout": self.read_timeout,
            "wait_for_config_ack": self.wait_for_config_ack,
            "permit_join_seconds": self.permit_join_seconds,
            "log_level": self.log_level,
        }
