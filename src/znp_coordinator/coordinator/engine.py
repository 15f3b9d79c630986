"""Coordinator engine wiring the reader, dispatch table and bring-up together."""

from __future__ import annotations

import logging
import threading
from typing import Iterable

from ..config import CoordinatorSettings
from ..exceptions import TransportReadFailure
from ..models.config import ConfigParameter, DEFAULT_STARTUP_CONFIGURATION
from ..models.device import DeviceState, PeerDevice
from ..protocol.commands import build_permit_joining
from ..protocol.framing import Frame
from ..transport.base import Transport
from ..transport.reader import FrameReader
from .bringup import BringUpSequencer
from .discovery import PeerDiscovery
from .dispatch import DispatchTable
from .registry import PendingRequestRegistry

logger = logging.getLogger(__name__)


class Coordinator:
    """Drives one radio over an already open transport.

    Usage::

        conn = SerialConnection(settings.port, settings.baudrate)
        conn.open()
        coordinator = Coordinator(conn, settings)
        coordinator.start()
        ...
        coordinator.stop()
    """

    def __init__(
        self,
        transport: Transport,
        settings: CoordinatorSettings | None = None,
        configuration: Iterable[ConfigParameter] = DEFAULT_STARTUP_CONFIGURATION,
    ) -> None:
        self.settings = settings or CoordinatorSettings()
        self._transport = transport
        self._failed = threading.Event()

        self.registry = PendingRequestRegistry()
        self.sequencer = BringUpSequencer(
            self.send,
            configuration=configuration,
            wait_for_config_ack=self.settings.wait_for_config_ack,
            permit_join_seconds=self.settings.permit_join_seconds,
        )
        self.discovery = PeerDiscovery(self.registry, self.send)
        self.dispatch = DispatchTable(self.registry, self.sequencer, self.discovery)
        self.reader = FrameReader(transport, self.handle_frame, self._on_transport_failure)

    @property
    def failure(self) -> TransportReadFailure | None:
        return self.reader.failure

    def send(self, data: bytes) -> None:
        """Write one encoded frame to the transport."""
        self._transport.write(data)

    def handle_frame(self, frame: Frame) -> None:
        self.dispatch.route(frame)

    def start(self) -> None:
        """Start reading and request a radio reset to begin bring-up."""
        self._failed.clear()
        self.reader.start()
        self.sequencer.start()

    def stop(self, timeout: float | None = 2.0) -> None:
        self.reader.stop(timeout)
        logger.info("Coordinator stopped")

    def wait_for_failure(self, timeout: float | None = None) -> bool:
        """Block until the transport fails; return False on timeout."""
        return self._failed.wait(timeout)

    def permit_joining(self, seconds: int | None = None) -> None:
        """Open a permit-joining window; its confirmation triggers discovery."""
        if seconds is None:
            seconds = self.settings.permit_join_seconds
        logger.info("Permitting joins for %d s", seconds)
        self.send(build_permit_joining(seconds))

    def discover_peers(self) -> None:
        self.discovery.trigger()

    def peers(self) -> list[PeerDevice]:
        return self.discovery.peers()

    def pending_requests(self) -> list[str]:
        return self.registry.pending()

    def expire_pending(self, max_age: float) -> list[str]:
        """Drop stale pending requests and let stalled discovery move on."""
        expired = self.registry.expire(max_age)
        self.discovery.resume()
        return expired

    def status(self) -> dict:
        state = self.dispatch.device_state
        if isinstance(state, DeviceState):
            device_state = state.name
        elif state is None:
            device_state = None
        else:
            device_state = f"UNKNOWN(0x{state:02X})"
        return {
            "bring_up_state": self.sequencer.state.value,
            "device_state": device_state,
            "coordinator_started": self.dispatch.coordinator_started,
            "pending_requests": len(self.registry),
            "peers": len(self.peers()),
            "queued_lookups": len(self.discovery.queued()),
            "reader_running": self.reader.running,
            "transport_failure": str(self.failure) if self.failure else None,
        }

    def _on_transport_failure(self, failure: TransportReadFailure) -> None:
        self._failed.set()
