"""Device lifecycle states and discovered peers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum


class DeviceState(IntEnum):
    """Values carried by ZDO_STATE_CHANGE_IND."""

    HOLD = 0x00
    INIT = 0x01
    NWK_DISC = 0x02
    NWK_JOINING = 0x03
    NWK_REJOIN = 0x04
    END_DEVICE_UNAUTH = 0x05
    END_DEVICE = 0x06
    ROUTER = 0x07
    COORD_STARTING = 0x08
    ZB_COORD = 0x09
    NWK_ORPHAN = 0x0A


class ResetReason(IntEnum):
    """First byte of SYS_RESET_IND."""

    POWER_UP = 0x00
    EXTERNAL = 0x01
    WATCHDOG = 0x02


class PeerStage(Enum):
    """Progress of the per-peer discovery chain."""

    QUEUED = "queued"
    ADDRESS_RESOLVING = "address_resolving"
    ADDRESS_RESOLVED = "address_resolved"
    SERVICES_QUERYING = "services_querying"
    SERVICES_DISCOVERED = "services_discovered"


@dataclass
class PeerDevice:
    """A peer found in the coordinator's association table."""

    nwk_address: int
    ieee_address: str = ""
    endpoints: list[int] = field(default_factory=list)
    stage: PeerStage = PeerStage.QUEUED

    def to_dict(self) -> dict:
        return {
            "nwk_address": f"0x{self.nwk_address:04X}",
            "ieee_address": self.ieee_address,
            "endpoints": list(self.endpoints),
            "stage": self.stage.value,
        }
