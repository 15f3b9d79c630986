"""Tests for frame routing and the chained peer discovery."""

import logging

from znp_coordinator.coordinator.bringup import BringUpState
from znp_coordinator.models.device import DeviceState, PeerStage
from znp_coordinator.protocol.commands import (
    AREQ_SAPI,
    AREQ_SYS,
    AREQ_ZDO,
    NWK_ADDR_LOOKUP,
    SRSP_AF,
    SRSP_SAPI,
    SRSP_UTIL,
    SapiCommand,
    SysCommand,
    UtilCommand,
    ZdoCommand,
    active_ep_response_name,
    build_active_ep_request,
    build_assoc_count,
    build_assoc_find_device,
    build_nwk_addr_lookup,
    build_start_request,
)
from znp_coordinator.protocol.framing import Frame

POWER_UP = Frame(AREQ_SYS, SysCommand.RESET_IND, bytes([0x00, 0x02, 0x01, 0x02, 0x06, 0x03]))


def _ieee(last: int) -> bytes:
    return bytes([last, 0x03, 0x02, 0x01, 0x00, 0x4B, 0x12, 0x00])


def _assoc_count(count: int) -> Frame:
    return Frame(SRSP_UTIL, UtilCommand.ASSOC_COUNT, count.to_bytes(2, "little"))


def _assoc_device(nwk: int) -> Frame:
    return Frame(
        SRSP_UTIL,
        UtilCommand.ASSOC_FIND_DEVICE,
        nwk.to_bytes(2, "little") + b"\x00\x00\x01",
    )


def _addr_lookup(last: int) -> Frame:
    return Frame(SRSP_UTIL, UtilCommand.ADDRMGR_NWK_ADDR_LOOKUP, _ieee(last))


def _active_endpoints(nwk: int, endpoints: list[int]) -> Frame:
    addr = nwk.to_bytes(2, "little")
    payload = addr + b"\x00" + addr + bytes([len(endpoints)]) + bytes(endpoints)
    return Frame(AREQ_ZDO, ZdoCommand.ACTIVE_EP_RSP, payload)


def test_unknown_command_is_logged_not_raised(coordinator, transport, caplog):
    coordinator.handle_frame(Frame(0x45, 0xCA, b"\x01\x02"))
    assert "Unknown command" in caplog.text
    assert "0xCA" in caplog.text
    assert transport.written == []


def test_malformed_payload_is_dropped(coordinator, transport, caplog):
    coordinator.registry.register(NWK_ADDR_LOOKUP, lambda payload, context: None)
    coordinator.handle_frame(Frame(SRSP_UTIL, UtilCommand.ADDRMGR_NWK_ADDR_LOOKUP, b"\x01"))
    assert "malformed" in caplog.text
    assert len(coordinator.registry) == 1


def test_power_up_frame_runs_bring_up(coordinator, transport):
    coordinator.handle_frame(POWER_UP)
    configuration = coordinator.sequencer.configuration
    assert len(transport.written) == len(configuration) + 1
    assert transport.written[-1] == build_start_request()
    assert all(
        key == (0x26, SapiCommand.WRITE_CONFIGURATION)
        for key in transport.keys()[:-1]
    )


def test_power_up_logs_identity(coordinator, caplog):
    caplog.set_level(logging.INFO)
    coordinator.handle_frame(POWER_UP)
    assert "POWER_UP" in caplog.text
    assert "Product version: 2.6.3" in caplog.text


def test_start_request_response_confirms_network(coordinator, transport):
    coordinator.handle_frame(POWER_UP)
    transport.clear()
    coordinator.handle_frame(Frame(SRSP_SAPI, SapiCommand.START_REQUEST))
    assert coordinator.sequencer.state is BringUpState.PERMITTING_JOINS
    assert len(transport.written) == 5


def test_failed_start_confirm_does_not_advance(coordinator, transport):
    coordinator.handle_frame(POWER_UP)
    transport.clear()
    coordinator.handle_frame(Frame(AREQ_SAPI, SapiCommand.START_CONFIRM, b"\x01"))
    assert coordinator.sequencer.state is BringUpState.NETWORK_STARTING
    assert transport.written == []


def test_state_change_to_coordinator(coordinator, caplog):
    caplog.set_level(logging.INFO)
    coordinator.handle_frame(Frame(AREQ_ZDO, ZdoCommand.STATE_CHANGE_IND, b"\x08"))
    assert "DEV_COORD_STARTING" in caplog.text
    assert not coordinator.dispatch.coordinator_started

    coordinator.handle_frame(Frame(AREQ_ZDO, ZdoCommand.STATE_CHANGE_IND, b"\x09"))
    assert coordinator.dispatch.device_state is DeviceState.ZB_COORD
    assert coordinator.dispatch.coordinator_started
    assert "Started as Zigbee coordinator" in caplog.text


def test_unknown_state_change_is_logged(coordinator, caplog):
    coordinator.handle_frame(Frame(AREQ_ZDO, ZdoCommand.STATE_CHANGE_IND, b"\x42"))
    assert "Unknown device state 0x42" in caplog.text


def test_status_responses_are_logged(coordinator, caplog):
    caplog.set_level(logging.INFO)
    coordinator.handle_frame(Frame(SRSP_AF, 0x00, b"\x00"))
    coordinator.handle_frame(Frame(SRSP_SAPI, SapiCommand.WRITE_CONFIGURATION, b"\x01"))
    assert "AF_REGISTER OK" in caplog.text
    assert "Write configuration failed" in caplog.text


def test_device_announce_and_leave(coordinator, transport, caplog):
    caplog.set_level(logging.INFO)
    coordinator.handle_frame(
        Frame(AREQ_ZDO, ZdoCommand.END_DEVICE_ANNCE_IND, b"\x34\x12\x34\x12" + _ieee(4) + b"\x80")
    )
    coordinator.handle_frame(
        Frame(AREQ_ZDO, ZdoCommand.LEAVE_IND, b"\x34\x12" + _ieee(4) + b"\x00\x00\x01")
    )
    assert "Device joined: 0x1234" in caplog.text
    assert "Device left: 0x1234" in caplog.text
    assert transport.written == []


def test_permit_joining_response_triggers_discovery(coordinator, transport):
    coordinator.handle_frame(Frame(SRSP_SAPI, SapiCommand.PERMIT_JOINING_REQUEST, b"\x00"))
    assert transport.written == [build_assoc_count(), build_assoc_find_device(0)]


def test_failed_permit_joining_does_not_discover(coordinator, transport):
    coordinator.handle_frame(Frame(SRSP_SAPI, SapiCommand.PERMIT_JOINING_REQUEST, b"\x01"))
    assert transport.written == []


def test_assoc_count_requests_each_index(coordinator, transport):
    coordinator.handle_frame(_assoc_count(2))
    assert transport.written == [build_assoc_find_device(0), build_assoc_find_device(1)]


def test_invalid_association_entry_is_skipped(coordinator, transport):
    coordinator.handle_frame(_assoc_device(0xFFFE))
    assert transport.written == []
    assert len(coordinator.registry) == 0


def test_chained_discovery_per_peer(coordinator, transport):
    """Lookup -> address resolution -> active endpoints, one stage at a time."""
    coordinator.handle_frame(_assoc_count(2))
    assert transport.written == [build_assoc_find_device(0), build_assoc_find_device(1)]

    for nwk, last, endpoints in ((0x1234, 0x04, [1]), (0x5678, 0x05, [1, 2])):
        transport.clear()
        coordinator.handle_frame(_assoc_device(nwk))
        assert transport.written == [build_nwk_addr_lookup(nwk)]
        assert len(coordinator.registry) == 1

        # The endpoint answer cannot complete anything before its request exists
        coordinator.handle_frame(_active_endpoints(nwk, endpoints))
        assert transport.written == [build_nwk_addr_lookup(nwk)]

        transport.clear()
        coordinator.handle_frame(_addr_lookup(last))
        assert transport.written == [build_active_ep_request(nwk)]
        pending = coordinator.registry.pending()
        assert len(pending) == 1
        assert pending[0].startswith(active_ep_response_name(nwk))

        transport.clear()
        coordinator.handle_frame(_active_endpoints(nwk, endpoints))
        assert transport.written == []
        assert len(coordinator.registry) == 0

    peers = {peer.nwk_address: peer for peer in coordinator.peers()}
    assert peers[0x1234].ieee_address == "00124B0001020304"
    assert peers[0x1234].endpoints == [1]
    assert peers[0x5678].ieee_address == "00124B0001020305"
    assert peers[0x5678].endpoints == [1, 2]
    assert all(peer.stage is PeerStage.SERVICES_DISCOVERED for peer in peers.values())


def test_endpoint_answer_for_other_peer_does_not_fire(coordinator, transport):
    coordinator.handle_frame(_assoc_device(0x1234))
    coordinator.handle_frame(_addr_lookup(0x04))
    transport.clear()

    coordinator.handle_frame(_active_endpoints(0x9999, [1]))
    assert len(coordinator.registry) == 1

    coordinator.handle_frame(_active_endpoints(0x1234, [1]))
    assert len(coordinator.registry) == 0


def test_running_discovery_is_not_restarted(coordinator, transport):
    coordinator.handle_frame(_assoc_device(0x1234))
    transport.clear()
    coordinator.handle_frame(_assoc_device(0x1234))
    assert transport.written == []
    assert len(coordinator.registry) == 1


def test_finished_peer_can_be_rediscovered(coordinator, transport):
    coordinator.handle_frame(_assoc_device(0x1234))
    coordinator.handle_frame(_addr_lookup(0x04))
    coordinator.handle_frame(_active_endpoints(0x1234, [1]))
    transport.clear()

    coordinator.handle_frame(_assoc_device(0x1234))
    assert transport.written == [build_nwk_addr_lookup(0x1234)]


def test_overlapping_lookups_resolve_each_peer(coordinator, transport):
    """Both association answers arrive before either address lookup answer."""
    coordinator.handle_frame(_assoc_count(2))
    transport.clear()

    coordinator.handle_frame(_assoc_device(0x1234))
    coordinator.handle_frame(_assoc_device(0x5678))
    assert transport.written == [build_nwk_addr_lookup(0x1234)]
    assert coordinator.discovery.queued() == [0x5678]

    transport.clear()
    coordinator.handle_frame(_addr_lookup(0x04))
    assert transport.written == [
        build_active_ep_request(0x1234),
        build_nwk_addr_lookup(0x5678),
    ]

    transport.clear()
    coordinator.handle_frame(_addr_lookup(0x05))
    assert transport.written == [build_active_ep_request(0x5678)]
    assert coordinator.discovery.queued() == []

    coordinator.handle_frame(_active_endpoints(0x5678, [2]))
    coordinator.handle_frame(_active_endpoints(0x1234, [1]))
    assert len(coordinator.registry) == 0

    peers = {peer.nwk_address: peer for peer in coordinator.peers()}
    assert peers[0x1234].ieee_address == "00124B0001020304"
    assert peers[0x1234].endpoints == [1]
    assert peers[0x5678].ieee_address == "00124B0001020305"
    assert peers[0x5678].endpoints == [2]


def test_expired_lookup_allows_rediscovery(coordinator, transport):
    coordinator.handle_frame(_assoc_device(0x1234))
    expired = coordinator.expire_pending(0.0)
    assert len(expired) == 1
    assert expired[0].startswith(NWK_ADDR_LOOKUP)

    transport.clear()
    coordinator.handle_frame(_assoc_device(0x1234))
    assert transport.written == [build_nwk_addr_lookup(0x1234)]
    assert len(coordinator.registry) == 1


def test_expired_lookup_releases_queued_peer(coordinator, transport):
    coordinator.handle_frame(_assoc_device(0x1234))
    coordinator.handle_frame(_assoc_device(0x5678))
    transport.clear()

    coordinator.expire_pending(0.0)
    assert transport.written == [build_nwk_addr_lookup(0x5678)]

    transport.clear()
    coordinator.handle_frame(_addr_lookup(0x05))
    assert transport.written == [build_active_ep_request(0x5678)]
    peers = {peer.nwk_address: peer for peer in coordinator.peers()}
    assert peers[0x5678].ieee_address == "00124B0001020305"
    assert peers[0x1234].ieee_address == ""


def test_expired_endpoint_query_allows_rediscovery(coordinator, transport):
    coordinator.handle_frame(_assoc_device(0x1234))
    coordinator.handle_frame(_addr_lookup(0x04))
    coordinator.expire_pending(0.0)
    assert coordinator.peers()[0].stage is PeerStage.SERVICES_QUERYING

    transport.clear()
    coordinator.handle_frame(_assoc_device(0x1234))
    assert transport.written == [build_nwk_addr_lookup(0x1234)]
