"""Discovery of peers in the coordinator's association table.

Each peer found by an association lookup runs a :class:`PeerWorkflow`
through three asynchronous stages:

1. resolve the short address to an IEEE address,
2. query the peer's active endpoints,
3. record the endpoints.

Every stage is a pending request in the registry whose context is the peer's
short address. The next stage is only issued from the previous stage's
continuation.

The address lookup response does not echo the short address it resolved,
so only one lookup may be outstanding at a time. Found peers wait in a queue
and the next lookup is sent once the previous one has been answered or its
pending request has expired.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Callable

from ..exceptions import PayloadError
from ..models.device import PeerDevice, PeerStage
from ..protocol.commands import (
    NWK_ADDR_LOOKUP,
    active_ep_response_name,
    build_active_ep_request,
    build_assoc_count,
    build_assoc_find_device,
    build_nwk_addr_lookup,
)
from ..protocol.parser import AssocDeviceResponse, parse_active_endpoints, parse_ieee_address
from .registry import PendingRequestRegistry

logger = logging.getLogger(__name__)

MAX_ASSOC_INDEX = 0xFF

_AWAITING_RESPONSE = (PeerStage.ADDRESS_RESOLVING, PeerStage.SERVICES_QUERYING)


class PeerWorkflow:
    """Carries one peer through address resolution and endpoint discovery."""

    def __init__(
        self,
        peer: PeerDevice,
        registry: PendingRequestRegistry,
        send: Callable[[bytes], Any],
        on_lookup_done: Callable[[PeerWorkflow], None] | None = None,
    ) -> None:
        self.peer = peer
        self.pending_key: str | None = None
        self._registry = registry
        self._send = send
        self._on_lookup_done = on_lookup_done

    @property
    def stage(self) -> PeerStage:
        return self.peer.stage

    @property
    def finished(self) -> bool:
        return self.peer.stage is PeerStage.SERVICES_DISCOVERED

    @property
    def awaiting_response(self) -> bool:
        """True while the workflow's request is still in the registry."""
        return (
            self.peer.stage in _AWAITING_RESPONSE
            and self.pending_key is not None
            and self.pending_key in self._registry
        )

    @property
    def stalled(self) -> bool:
        """True once the request of a running stage has left the registry unanswered."""
        return self.peer.stage in _AWAITING_RESPONSE and not self.awaiting_response

    def start(self) -> None:
        """Issue the address lookup for the peer."""
        self.peer.stage = PeerStage.ADDRESS_RESOLVING
        self.pending_key = self._registry.register(
            NWK_ADDR_LOOKUP, self.on_address_resolved, self.peer.nwk_address
        )
        self._send(build_nwk_addr_lookup(self.peer.nwk_address))

    def on_address_resolved(self, payload: bytes, nwk_address: int) -> None:
        try:
            self._resolve_address(payload, nwk_address)
        finally:
            if self._on_lookup_done is not None:
                self._on_lookup_done(self)

    def _resolve_address(self, payload: bytes, nwk_address: int) -> None:
        if self.peer.stage is not PeerStage.ADDRESS_RESOLVING:
            logger.warning(
                "Ignoring address lookup for 0x%04X in stage %s",
                nwk_address,
                self.peer.stage.name,
            )
            return

        try:
            response = parse_ieee_address(payload)
        except PayloadError as e:
            logger.warning("Address lookup for 0x%04X failed: %s", nwk_address, e)
            return

        self.peer.ieee_address = response.ieee_address
        self.peer.stage = PeerStage.ADDRESS_RESOLVED
        logger.info(
            "Discovered new device: IEEE %s (0x%04X)",
            response.ieee_address,
            nwk_address,
        )

        self.pending_key = self._registry.register(
            active_ep_response_name(nwk_address),
            self.on_active_endpoints,
            nwk_address,
        )
        self.peer.stage = PeerStage.SERVICES_QUERYING
        self._send(build_active_ep_request(nwk_address))

    def on_active_endpoints(self, payload: bytes, nwk_address: int) -> None:
        if self.peer.stage is not PeerStage.SERVICES_QUERYING:
            logger.warning(
                "Ignoring active endpoints for 0x%04X in stage %s",
                nwk_address,
                self.peer.stage.name,
            )
            return

        try:
            response = parse_active_endpoints(payload)
        except PayloadError as e:
            logger.warning("Active endpoint query for 0x%04X failed: %s", nwk_address, e)
            return

        if response.status:
            logger.warning(
                "Active endpoint query for 0x%04X returned status 0x%02X",
                nwk_address,
                response.status,
            )

        self.pending_key = None
        self.peer.endpoints = response.endpoints
        self.peer.stage = PeerStage.SERVICES_DISCOVERED
        logger.info(
            "Device 0x%04X (IEEE %s) active endpoints: %s",
            nwk_address,
            self.peer.ieee_address or "unknown",
            ", ".join(str(ep) for ep in response.endpoints) or "none",
        )


class PeerDiscovery:
    """Walks the association table and runs a workflow per peer.

    Address lookups are serialized: one workflow resolves its address while
    the others wait in a queue. Endpoint queries are correlated per peer and
    may overlap freely.
    """

    def __init__(
        self,
        registry: PendingRequestRegistry,
        send: Callable[[bytes], Any],
    ) -> None:
        self._registry = registry
        self._send = send
        self._workflows: dict[int, PeerWorkflow] = {}
        self._queue: deque[PeerWorkflow] = deque()
        self._resolving: PeerWorkflow | None = None
        self._lock = threading.RLock()

    def trigger(self) -> None:
        """Ask for the association count and look up the first entry."""
        logger.info("Discovering associated devices")
        self._send(build_assoc_count())
        self._send(build_assoc_find_device(0))

    def on_assoc_count(self, count: int) -> None:
        logger.info("Association table holds %d device(s)", count)
        if count > MAX_ASSOC_INDEX + 1:
            logger.warning("Only the first %d associations are looked up", MAX_ASSOC_INDEX + 1)
            count = MAX_ASSOC_INDEX + 1
        for index in range(count):
            self._send(build_assoc_find_device(index))

    def on_device_found(self, device: AssocDeviceResponse) -> PeerWorkflow | None:
        """Queue the workflow for a peer unless one is already running.

        A finished workflow, or one whose pending request expired, is
        replaced by a fresh one.
        """
        nwk_address = device.nwk_address
        if not device.valid:
            logger.debug("Association entry has no device (0x%04X)", nwk_address)
            return None

        with self._lock:
            workflow = self._workflows.get(nwk_address)
            if workflow is not None and not (workflow.finished or workflow.stalled):
                logger.debug("Discovery of 0x%04X already in progress", nwk_address)
                return None
            if workflow is not None and workflow.stalled:
                logger.info("Restarting stalled discovery of 0x%04X", nwk_address)

            workflow = PeerWorkflow(
                PeerDevice(nwk_address), self._registry, self._send, self._lookup_done
            )
            self._workflows[nwk_address] = workflow
            self._queue.append(workflow)
            logger.debug("Queued discovery of 0x%04X", nwk_address)

        self.resume()
        return workflow

    def resume(self) -> None:
        """Start the next queued address lookup if none is outstanding."""
        with self._lock:
            current = self._resolving
            if (
                current is not None
                and current.stage is PeerStage.ADDRESS_RESOLVING
                and current.awaiting_response
            ):
                return
            self._resolving = None
            if not self._queue:
                return
            self._resolving = self._queue.popleft()
            self._resolving.start()

    def queued(self) -> list[int]:
        """Short addresses waiting for their address lookup."""
        with self._lock:
            return [workflow.peer.nwk_address for workflow in self._queue]

    def peers(self) -> list[PeerDevice]:
        with self._lock:
            return [workflow.peer for workflow in self._workflows.values()]

    def _lookup_done(self, workflow: PeerWorkflow) -> None:
        logger.debug("Address lookup for 0x%04X done", workflow.peer.nwk_address)
        self.resume()
