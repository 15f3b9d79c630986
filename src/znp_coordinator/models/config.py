"""NV configuration items written to the radio during bring-up."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ConfigId(IntEnum):
    """ZCD_NV item ids accepted by ZB_WRITE_CONFIGURATION."""

    STARTUP_OPTION = 0x03
    PRECFGKEY = 0x62
    PRECFGKEYS_ENABLE = 0x63
    SECURITY_MODE = 0x64
    PANID = 0x83
    CHANLIST = 0x84
    LOGICAL_TYPE = 0x87
    ZDO_DIRECT_CB = 0x8F


class LogicalType(IntEnum):
    COORDINATOR = 0x00
    ROUTER = 0x01
    END_DEVICE = 0x02


@dataclass(frozen=True)
class ConfigParameter:
    """A single (id, value) configuration write."""

    config_id: int
    value: bytes

    @property
    def name(self) -> str:
        try:
            return ConfigId(self.config_id).name
        except ValueError:
            return f"0x{self.config_id:02X}"

    def to_dict(self) -> dict:
        return {
            "id": self.config_id,
            "name": self.name,
            "length": len(self.value),
            "value_hex": self.value.hex(" "),
        }


# 2.4 GHz channel 11 as a little-endian 32-bit mask
CHANNEL_11_MASK = (1 << 11).to_bytes(4, "little")

DEFAULT_STARTUP_CONFIGURATION: tuple[ConfigParameter, ...] = (
    ConfigParameter(ConfigId.STARTUP_OPTION, b"\x00"),
    ConfigParameter(ConfigId.ZDO_DIRECT_CB, b"\x01"),
    ConfigParameter(ConfigId.PRECFGKEY, bytes(range(16))),
    ConfigParameter(ConfigId.PRECFGKEYS_ENABLE, b"\x00"),
    ConfigParameter(ConfigId.SECURITY_MODE, b"\x01"),
    ConfigParameter(ConfigId.LOGICAL_TYPE, bytes([LogicalType.COORDINATOR])),
    ConfigParameter(ConfigId.CHANLIST, CHANNEL_11_MASK),
)
