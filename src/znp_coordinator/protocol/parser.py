"""Payload parsing for frames received from the radio."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..exceptions import PayloadError
from ..models.device import DeviceState, ResetReason

STATUS_SUCCESS = 0x00
INVALID_NWK_ADDRESSES = (0xFFFE, 0xFFFF)


def _require(payload: bytes, size: int, what: str) -> None:
    if len(payload) < size:
        raise PayloadError(
            f"{what} needs at least {size} bytes, got {len(payload)}"
        )


def format_ieee(data: bytes) -> str:
    """Format a little-endian 64-bit IEEE address, most significant byte first."""
    return bytes(reversed(data)).hex().upper()


@dataclass
class PowerUpIndication:
    """Parsed SYS_RESET_IND."""

    reason: int
    transport_revision: int
    product_id: int
    major: int
    minor: int
    maintenance: int

    @property
    def reason_name(self) -> str:
        try:
            return ResetReason(self.reason).name
        except ValueError:
            return f"UNKNOWN(0x{self.reason:02X})"

    @property
    def version(self) -> str:
        return f"{self.major}.{self.minor}.{self.maintenance}"


@dataclass
class StatusResponse:
    """A synchronous response whose payload starts with a status byte."""

    status: int

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS


@dataclass
class AssocCountResponse:
    count: int


@dataclass
class AssocDeviceResponse:
    nwk_address: int

    @property
    def valid(self) -> bool:
        return self.nwk_address not in INVALID_NWK_ADDRESSES


@dataclass
class IeeeAddressResponse:
    ieee_address: str


@dataclass
class ActiveEndpointsResponse:
    """Parsed ZDO_ACTIVE_EP_RSP."""

    src_address: int
    status: int
    nwk_address: int
    endpoints: list[int] = field(default_factory=list)


@dataclass
class DeviceAnnounce:
    src_address: int
    nwk_address: int
    ieee_address: str
    capabilities: int


@dataclass
class LeaveIndication:
    src_address: int
    ieee_address: str
    request: bool
    remove: bool
    rejoin: bool


def parse_power_up(payload: bytes) -> PowerUpIndication:
    """Parse SYS_RESET_IND: reason, transport rev, product id, version."""
    _require(payload, 6, "SYS_RESET_IND")
    return PowerUpIndication(*payload[:6])


def parse_status(payload: bytes) -> StatusResponse:
    _require(payload, 1, "Status response")
    return StatusResponse(status=payload[0])


def parse_state_change(payload: bytes) -> DeviceState | int:
    """Return the new device state, or the raw value if it is unknown."""
    _require(payload, 1, "ZDO_STATE_CHANGE_IND")
    try:
        return DeviceState(payload[0])
    except ValueError:
        return payload[0]


def parse_assoc_count(payload: bytes) -> AssocCountResponse:
    _require(payload, 2, "UTIL_ASSOC_COUNT response")
    return AssocCountResponse(count=int.from_bytes(payload[:2], "little"))


def parse_assoc_device(payload: bytes) -> AssocDeviceResponse:
    """Parse UTIL_ASSOC_FIND_DEVICE; the entry starts with the short address."""
    _require(payload, 2, "UTIL_ASSOC_FIND_DEVICE response")
    return AssocDeviceResponse(
        nwk_address=int.from_bytes(payload[:2], "little")
    )


def parse_ieee_address(payload: bytes) -> IeeeAddressResponse:
    _require(payload, 8, "UTIL_ADDRMGR_NWK_ADDR_LOOKUP response")
    return IeeeAddressResponse(ieee_address=format_ieee(payload[:8]))


def parse_active_endpoints(payload: bytes) -> ActiveEndpointsResponse:
    """Parse ZDO_ACTIVE_EP_RSP: src, status, nwk, count, endpoint list."""
    _require(payload, 6, "ZDO_ACTIVE_EP_RSP")
    count = payload[5]
    _require(payload, 6 + count, "ZDO_ACTIVE_EP_RSP endpoint list")
    return ActiveEndpointsResponse(
        src_address=int.from_bytes(payload[0:2], "little"),
        status=payload[2],
        nwk_address=int.from_bytes(payload[3:5], "little"),
        endpoints=list(payload[6 : 6 + count]),
    )


def parse_device_announce(payload: bytes) -> DeviceAnnounce:
    _require(payload, 13, "ZDO_END_DEVICE_ANNCE_IND")
    return DeviceAnnounce(
        src_address=int.from_bytes(payload[0:2], "little"),
        nwk_address=int.from_bytes(payload[2:4], "little"),
        ieee_address=format_ieee(payload[4:12]),
        capabilities=payload[12],
    )


def parse_leave(payload: bytes) -> LeaveIndication:
    _require(payload, 13, "ZDO_LEAVE_IND")
    return LeaveIndication(
        src_address=int.from_bytes(payload[0:2], "little"),
        ieee_address=format_ieee(payload[2:10]),
        request=bool(payload[10]),
        remove=bool(payload[11]),
        rejoin=bool(payload[12]),
    )
