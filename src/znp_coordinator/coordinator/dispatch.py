"""Routing of decoded frames to handlers and pending requests.

Every known ``(class, command)`` pair maps to a handler taking the payload
and returning an optional semantic name. After the handler runs, the name is
dispatched to the pending-request registry so that one frame can both drive
built-in logic and complete an outstanding request.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ..exceptions import PayloadError
from ..models.device import DeviceState
from ..protocol.commands import (
    AREQ_SAPI,
    AREQ_SYS,
    AREQ_ZDO,
    NWK_ADDR_LOOKUP,
    SRSP_AF,
    SRSP_SAPI,
    SRSP_UTIL,
    SRSP_ZDO,
    AfCommand,
    SapiCommand,
    SysCommand,
    UtilCommand,
    ZdoCommand,
    active_ep_response_name,
)
from ..protocol.framing import Frame
from ..protocol.parser import (
    parse_active_endpoints,
    parse_assoc_count,
    parse_assoc_device,
    parse_device_announce,
    parse_ieee_address,
    parse_leave,
    parse_power_up,
    parse_state_change,
    parse_status,
)
from .bringup import BringUpSequencer
from .discovery import PeerDiscovery
from .registry import PendingRequestRegistry

logger = logging.getLogger(__name__)

Handler = Callable[[bytes], Optional[str]]


class DispatchTable:
    """Maps incoming frames to handlers and completes pending requests."""

    def __init__(
        self,
        registry: PendingRequestRegistry,
        sequencer: BringUpSequencer,
        discovery: PeerDiscovery,
    ) -> None:
        self._registry = registry
        self._sequencer = sequencer
        self._discovery = discovery
        self.device_state: DeviceState | int | None = None
        self.coordinator_started = False

        self._routes: dict[tuple[int, int], Handler] = {
            (AREQ_SYS, SysCommand.RESET_IND): self._handle_power_up,
            (AREQ_ZDO, ZdoCommand.STATE_CHANGE_IND): self._handle_state_change,
            (AREQ_ZDO, ZdoCommand.END_DEVICE_ANNCE_IND): self._handle_device_announce,
            (AREQ_ZDO, ZdoCommand.LEAVE_IND): self._handle_leave,
            (AREQ_ZDO, ZdoCommand.ACTIVE_EP_RSP): self._handle_active_endpoints,
            (AREQ_SAPI, SapiCommand.START_CONFIRM): self._handle_start_confirm,
            (SRSP_AF, AfCommand.REGISTER): self._status_logger("AF_REGISTER"),
            (SRSP_ZDO, ZdoCommand.ACTIVE_EP_REQ): self._status_logger("ZDO_ACTIVE_EP_REQ"),
            (SRSP_ZDO, ZdoCommand.STARTUP_FROM_APP): self._status_logger("ZDO_STARTUP_FROM_APP"),
            (SRSP_ZDO, ZdoCommand.MSG_CB_REGISTER): self._status_logger("ZDO_MSG_CB_REGISTER"),
            (SRSP_SAPI, SapiCommand.START_REQUEST): self._handle_start_request,
            (SRSP_SAPI, SapiCommand.WRITE_CONFIGURATION): self._handle_write_configuration,
            (SRSP_SAPI, SapiCommand.PERMIT_JOINING_REQUEST): self._handle_permit_joining,
            (SRSP_UTIL, UtilCommand.ADDRMGR_NWK_ADDR_LOOKUP): self._handle_nwk_addr_lookup,
            (SRSP_UTIL, UtilCommand.ASSOC_COUNT): self._handle_assoc_count,
            (SRSP_UTIL, UtilCommand.ASSOC_FIND_DEVICE): self._handle_assoc_find_device,
        }

    def route(self, frame: Frame) -> None:
        """Run the handler for ``frame`` and fire matching pending requests."""
        handler = self._routes.get(frame.key)
        if handler is None:
            logger.warning(
                "Unknown command [class: 0x%02X, command: 0x%02X] payload: %s",
                frame.frame_class,
                frame.command,
                frame.payload.hex(" ") or "(empty)",
            )
            return

        try:
            semantic_name = handler(frame.payload)
        except PayloadError as e:
            logger.warning("Dropping malformed %r: %s", frame, e)
            return

        self._registry.dispatch(semantic_name, frame.payload)

    # SYS

    def _handle_power_up(self, payload: bytes) -> None:
        indication = parse_power_up(payload)
        logger.info("ZNP powered up (reason: %s)", indication.reason_name)
        logger.info("Transport revision: %d", indication.transport_revision)
        logger.info("Product ID: %d", indication.product_id)
        logger.info("Product version: %s", indication.version)
        self.coordinator_started = False
        self._sequencer.power_up()
        return None

    # ZDO

    def _handle_state_change(self, payload: bytes) -> None:
        state = parse_state_change(payload)
        self.device_state = state
        if not isinstance(state, DeviceState):
            logger.warning("Unknown device state 0x%02X", state)
        elif state is DeviceState.ZB_COORD:
            self.coordinator_started = True
            logger.info("Started as Zigbee coordinator")
        else:
            logger.info("Device state: DEV_%s", state.name)
        return None

    def _handle_device_announce(self, payload: bytes) -> None:
        announce = parse_device_announce(payload)
        logger.info(
            "Device joined: 0x%04X (IEEE %s, capabilities 0x%02X)",
            announce.nwk_address,
            announce.ieee_address,
            announce.capabilities,
        )
        return None

    def _handle_leave(self, payload: bytes) -> None:
        leave = parse_leave(payload)
        logger.info(
            "Device left: 0x%04X (IEEE %s, rejoin=%s)",
            leave.src_address,
            leave.ieee_address,
            leave.rejoin,
        )
        return None

    def _handle_active_endpoints(self, payload: bytes) -> str:
        response = parse_active_endpoints(payload)
        return active_ep_response_name(response.nwk_address)

    # SAPI

    def _handle_start_request(self, payload: bytes) -> None:
        self._sequencer.network_start_confirmed()
        return None

    def _handle_start_confirm(self, payload: bytes) -> None:
        status = parse_status(payload)
        if status.ok:
            self._sequencer.network_start_confirmed()
        else:
            logger.error("Network start failed with status 0x%02X", status.status)
        return None

    def _handle_write_configuration(self, payload: bytes) -> None:
        status = parse_status(payload)
        if status.ok:
            logger.info("Write configuration OK")
        else:
            logger.warning(
                "Write configuration failed with status 0x%02X", status.status
            )
        self._sequencer.config_write_acknowledged(status.status)
        return None

    def _handle_permit_joining(self, payload: bytes) -> None:
        status = parse_status(payload)
        if not status.ok:
            logger.warning("Permit joining failed with status 0x%02X", status.status)
            return None
        logger.info("Permit joining accepted")
        self._discovery.trigger()
        return None

    # UTIL

    def _handle_nwk_addr_lookup(self, payload: bytes) -> str:
        response = parse_ieee_address(payload)
        logger.debug("Address lookup returned IEEE %s", response.ieee_address)
        return NWK_ADDR_LOOKUP

    def _handle_assoc_count(self, payload: bytes) -> None:
        self._discovery.on_assoc_count(parse_assoc_count(payload).count)
        return None

    def _handle_assoc_find_device(self, payload: bytes) -> None:
        self._discovery.on_device_found(parse_assoc_device(payload))
        return None

    @staticmethod
    def _status_logger(name: str) -> Handler:
        def handler(payload: bytes) -> None:
            status = parse_status(payload)
            if status.ok:
                logger.info("%s OK", name)
            else:
                logger.warning("%s failed with status 0x%02X", name, status.status)
            return None

        return handler
