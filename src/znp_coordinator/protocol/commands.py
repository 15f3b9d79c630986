"""Command type, subsystem and opcode constants plus request builders.

A frame's class byte combines a command type (upper bits) with a subsystem
id (lower bits). Opcodes are grouped per subsystem.
"""

from __future__ import annotations

from enum import IntEnum

from .framing import build_frame


class CommandType(IntEnum):
    """Upper bits of the class byte."""

    POLL = 0x00
    SREQ = 0x20
    AREQ = 0x40
    SRSP = 0x60


class Subsystem(IntEnum):
    """Lower bits of the class byte."""

    SYS = 0x01
    MAC = 0x02
    AF = 0x04
    ZDO = 0x05
    SAPI = 0x06
    UTIL = 0x07


def frame_class(command_type: CommandType, subsystem: Subsystem) -> int:
    """Combine a command type and a subsystem into a class byte."""
    return command_type | subsystem


class SysCommand(IntEnum):
    RESET_REQ = 0x00
    PING = 0x01
    VERSION = 0x02
    RESET_IND = 0x80


class AfCommand(IntEnum):
    REGISTER = 0x00


class ZdoCommand(IntEnum):
    ACTIVE_EP_REQ = 0x05
    MSG_CB_REGISTER = 0x3E
    STARTUP_FROM_APP = 0x40
    ACTIVE_EP_RSP = 0x85
    STATE_CHANGE_IND = 0xC0
    END_DEVICE_ANNCE_IND = 0xC1
    LEAVE_IND = 0xC9


class SapiCommand(IntEnum):
    START_REQUEST = 0x00
    WRITE_CONFIGURATION = 0x05
    PERMIT_JOINING_REQUEST = 0x08
    START_CONFIRM = 0x80


class UtilCommand(IntEnum):
    ADDRMGR_NWK_ADDR_LOOKUP = 0x41
    ASSOC_COUNT = 0x48
    ASSOC_FIND_DEVICE = 0x49


SREQ_AF = frame_class(CommandType.SREQ, Subsystem.AF)
SREQ_ZDO = frame_class(CommandType.SREQ, Subsystem.ZDO)
SREQ_SAPI = frame_class(CommandType.SREQ, Subsystem.SAPI)
SREQ_UTIL = frame_class(CommandType.SREQ, Subsystem.UTIL)
AREQ_SYS = frame_class(CommandType.AREQ, Subsystem.SYS)
AREQ_ZDO = frame_class(CommandType.AREQ, Subsystem.ZDO)
AREQ_SAPI = frame_class(CommandType.AREQ, Subsystem.SAPI)
SRSP_AF = frame_class(CommandType.SRSP, Subsystem.AF)
SRSP_ZDO = frame_class(CommandType.SRSP, Subsystem.ZDO)
SRSP_SAPI = frame_class(CommandType.SRSP, Subsystem.SAPI)
SRSP_UTIL = frame_class(CommandType.SRSP, Subsystem.UTIL)

# Semantic names used to correlate asynchronous responses
NWK_ADDR_LOOKUP = "UTIL_ADDRMGR_NWK_ADDR_LOOKUP"
ACTIVE_EP_RSP = "ZDO_ACTIVE_EP_RSP"

BROADCAST_ROUTERS_AND_COORDINATOR = 0xFFFC
PERMIT_JOIN_SHORT = 0x00
PERMIT_JOIN_LONG = 0x3C
HOME_AUTOMATION_PROFILE = 0x0104


def active_ep_response_name(nwk_address: int) -> str:
    """Semantic name of the active endpoint response for one peer."""
    return f"{ACTIVE_EP_RSP}:{nwk_address:04X}"


def _check_u16(name: str, value: int) -> None:
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"{name} must be 0-0xFFFF, got {value}")


def build_reset_request(hard: bool = True) -> bytes:
    """Build a SYS_RESET_REQ (0 = hard reset, 1 = soft reset)."""
    return build_frame(AREQ_SYS, SysCommand.RESET_REQ, bytes([0 if hard else 1]))


def build_write_configuration(config_id: int, value: bytes) -> bytes:
    """Build a ZB_WRITE_CONFIGURATION for one NV parameter.

    Args:
        config_id: NV item id (single byte).
        value: Raw value bytes; the length is prepended automatically.
    """
    if not 0 <= config_id <= 0xFF:
        raise ValueError(f"Config id must be 0-255, got {config_id}")
    if len(value) > 128:
        raise ValueError(f"Config value must be at most 128 bytes, got {len(value)}")
    payload = bytes([config_id, len(value)]) + bytes(value)
    return build_frame(SREQ_SAPI, SapiCommand.WRITE_CONFIGURATION, payload)


def build_start_request() -> bytes:
    """Build a ZB_START_REQUEST (no payload)."""
    return build_frame(SREQ_SAPI, SapiCommand.START_REQUEST)


def build_af_register(
    endpoint: int = 0x01,
    profile_id: int = HOME_AUTOMATION_PROFILE,
    device_id: int = 0x0000,
    device_version: int = 0x00,
    input_clusters: tuple[int, ...] = (0x0000,),
    output_clusters: tuple[int, ...] = (0x0500,),
) -> bytes:
    """Build an AF_REGISTER for an application endpoint.

    Cluster lists are encoded as a count byte followed by little-endian ids.
    """
    _check_u16("Profile id", profile_id)
    _check_u16("Device id", device_id)
    payload = bytearray([endpoint & 0xFF])
    payload += profile_id.to_bytes(2, "little")
    payload += device_id.to_bytes(2, "little")
    payload += bytes([device_version & 0xFF, 0x00])  # latency: none
    for clusters in (input_clusters, output_clusters):
        payload.append(len(clusters))
        for cluster in clusters:
            _check_u16("Cluster id", cluster)
            payload += cluster.to_bytes(2, "little")
    return build_frame(SREQ_AF, AfCommand.REGISTER, bytes(payload))


def build_startup_from_app(start_delay: int = 0) -> bytes:
    """Build a ZDO_STARTUP_FROM_APP with the given delay in ms."""
    _check_u16("Start delay", start_delay)
    return build_frame(
        SREQ_ZDO, ZdoCommand.STARTUP_FROM_APP, start_delay.to_bytes(2, "little")
    )


def build_msg_cb_register(cluster_id: int = 0x0500) -> bytes:
    """Build a ZDO_MSG_CB_REGISTER for a ZDO cluster."""
    _check_u16("Cluster id", cluster_id)
    return build_frame(
        SREQ_ZDO, ZdoCommand.MSG_CB_REGISTER, cluster_id.to_bytes(2, "little")
    )


def build_permit_joining(
    timeout: int,
    destination: int = BROADCAST_ROUTERS_AND_COORDINATOR,
) -> bytes:
    """Build a ZB_PERMIT_JOINING_REQUEST.

    Args:
        timeout: Seconds the window stays open (0 closes it, 0xFF forever).
        destination: Short address the request is sent to.
    """
    _check_u16("Destination", destination)
    if not 0 <= timeout <= 0xFF:
        raise ValueError(f"Permit joining timeout must be 0-255, got {timeout}")
    payload = destination.to_bytes(2, "little") + bytes([timeout])
    return build_frame(SREQ_SAPI, SapiCommand.PERMIT_JOINING_REQUEST, payload)


def build_assoc_count(start_relation: int = 0x00, end_relation: int = 0x06) -> bytes:
    """Build a UTIL_ASSOC_COUNT over a range of node relations."""
    return build_frame(
        SREQ_UTIL,
        UtilCommand.ASSOC_COUNT,
        bytes([start_relation & 0xFF, end_relation & 0xFF]),
    )


def build_assoc_find_device(index: int) -> bytes:
    """Build a UTIL_ASSOC_FIND_DEVICE for an association table index."""
    if not 0 <= index <= 0xFF:
        raise ValueError(f"Association index must be 0-255, got {index}")
    return build_frame(SREQ_UTIL, UtilCommand.ASSOC_FIND_DEVICE, bytes([index]))


def build_nwk_addr_lookup(nwk_address: int) -> bytes:
    """Build a UTIL_ADDRMGR_NWK_ADDR_LOOKUP for a short address."""
    _check_u16("Short address", nwk_address)
    return build_frame(
        SREQ_UTIL,
        UtilCommand.ADDRMGR_NWK_ADDR_LOOKUP,
        nwk_address.to_bytes(2, "little"),
    )


def build_active_ep_request(
    nwk_address: int, destination: int | None = None
) -> bytes:
    """Build a ZDO_ACTIVE_EP_REQ asking a peer for its active endpoints.

    Args:
        nwk_address: Short address of interest.
        destination: Short address the request is sent to (defaults to the
            address of interest).
    """
    if destination is None:
        destination = nwk_address
    _check_u16("Short address", nwk_address)
    _check_u16("Destination", destination)
    payload = destination.to_bytes(2, "little") + nwk_address.to_bytes(2, "little")
    return build_frame(SREQ_ZDO, ZdoCommand.ACTIVE_EP_REQ, payload)
