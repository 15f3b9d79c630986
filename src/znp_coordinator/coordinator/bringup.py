"""Radio bring-up sequence as an explicit state machine.

States advance only through the transition table ``(state, event) -> effect``.
Each effect emits the requests for its step and returns the next state.
Events with no entry for the current state are rejected without side
effects. A power-up indication is accepted in every state because the
radio can reset at any time; it restarts the sequence.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Iterable

from ..models.config import ConfigParameter, DEFAULT_STARTUP_CONFIGURATION
from ..protocol.commands import (
    PERMIT_JOIN_LONG,
    PERMIT_JOIN_SHORT,
    build_af_register,
    build_msg_cb_register,
    build_permit_joining,
    build_reset_request,
    build_start_request,
    build_startup_from_app,
    build_write_configuration,
)
from ..protocol.parser import STATUS_SUCCESS

logger = logging.getLogger(__name__)


class BringUpState(Enum):
    IDLE = "idle"
    RESETTING = "resetting"
    POWERED_UP = "powered_up"
    CONFIGURING = "configuring"
    CONFIGURATION_WRITTEN = "configuration_written"
    NETWORK_STARTING = "network_starting"
    NETWORK_STARTED = "network_started"
    PERMITTING_JOINS = "permitting_joins"


class BringUpEvent(Enum):
    START = "start"
    POWER_UP = "power_up"
    CONFIG_WRITE_ACK = "config_write_ack"
    NETWORK_START_CONFIRMED = "network_start_confirmed"


_TRANSITIONS: dict[tuple[BringUpState, BringUpEvent], str] = {
    (BringUpState.IDLE, BringUpEvent.START): "_on_start",
    (BringUpState.CONFIGURING, BringUpEvent.CONFIG_WRITE_ACK): "_on_config_write_ack",
    (BringUpState.NETWORK_STARTING, BringUpEvent.NETWORK_START_CONFIRMED): "_on_network_started",
}
_TRANSITIONS.update(
    {(state, BringUpEvent.POWER_UP): "_on_power_up" for state in BringUpState}
)


class BringUpSequencer:
    """Emits the initialization requests in order as device events arrive.

    Args:
        send: Callable writing one encoded frame to the transport.
        configuration: Ordered configuration writes issued after power-up.
        wait_for_config_ack: Issue one configuration write per
            acknowledgment instead of the whole batch back-to-back.
        permit_join_seconds: Duration of the second, longer permit window.
    """

    def __init__(
        self,
        send: Callable[[bytes], Any],
        configuration: Iterable[ConfigParameter] = DEFAULT_STARTUP_CONFIGURATION,
        wait_for_config_ack: bool = False,
        permit_join_seconds: int = PERMIT_JOIN_LONG,
    ) -> None:
        self._send = send
        self._configuration = tuple(configuration)
        self.wait_for_config_ack = wait_for_config_ack
        self.permit_join_seconds = permit_join_seconds
        self._state = BringUpState.IDLE
        self._remaining: list[ConfigParameter] = []
        self._lock = threading.RLock()

    @property
    def state(self) -> BringUpState:
        return self._state

    @property
    def configuration(self) -> tuple[ConfigParameter, ...]:
        return self._configuration

    def reset(self) -> None:
        """Return to IDLE, e.g. after the transport was reopened."""
        with self._lock:
            self._state = BringUpState.IDLE
            self._remaining = []

    def handle(self, event: BringUpEvent, data: Any = None) -> bool:
        """Apply ``event``; return False if it is not legal in this state."""
        with self._lock:
            effect_name = _TRANSITIONS.get((self._state, event))
            if effect_name is None:
                if (
                    event is BringUpEvent.CONFIG_WRITE_ACK
                    and not self.wait_for_config_ack
                ):
                    logger.debug("Configuration write acknowledged")
                else:
                    logger.warning(
                        "Rejected bring-up event %s in state %s",
                        event.name,
                        self._state.name,
                    )
                return False

            effect = getattr(self, effect_name)
            self._set_state(effect(data))
            return True

    # Convenience wrappers used by the dispatch table

    def start(self) -> bool:
        return self.handle(BringUpEvent.START)

    def power_up(self) -> bool:
        return self.handle(BringUpEvent.POWER_UP)

    def config_write_acknowledged(self, status: int) -> bool:
        return self.handle(BringUpEvent.CONFIG_WRITE_ACK, status)

    def network_start_confirmed(self) -> bool:
        return self.handle(BringUpEvent.NETWORK_START_CONFIRMED)

    # Effects

    def _on_start(self, _data: Any) -> BringUpState:
        logger.info("Resetting radio")
        self._send(build_reset_request())
        return BringUpState.RESETTING

    def _on_power_up(self, _data: Any) -> BringUpState:
        self._set_state(BringUpState.POWERED_UP)
        self._remaining = list(self._configuration)

        if self.wait_for_config_ack and self._remaining:
            self._write_next_configuration()
            return BringUpState.CONFIGURING

        while self._remaining:
            self._write_next_configuration()
        return self._start_network()

    def _on_config_write_ack(self, status: int) -> BringUpState:
        if status != STATUS_SUCCESS:
            logger.error("Configuration write failed with status 0x%02X", status)
        if self._remaining:
            self._write_next_configuration()
            return BringUpState.CONFIGURING
        return self._start_network()

    def _on_network_started(self, _data: Any) -> BringUpState:
        self._set_state(BringUpState.NETWORK_STARTED)
        self._send(build_af_register())
        self._send(build_startup_from_app())
        self._send(build_msg_cb_register())
        self._send(build_permit_joining(PERMIT_JOIN_SHORT))
        self._send(build_permit_joining(self.permit_join_seconds))
        return BringUpState.PERMITTING_JOINS

    def _write_next_configuration(self) -> None:
        parameter = self._remaining.pop(0)
        logger.debug(
            "Writing configuration %s = %s", parameter.name, parameter.value.hex(" ")
        )
        self._send(build_write_configuration(parameter.config_id, parameter.value))

    def _start_network(self) -> BringUpState:
        self._set_state(BringUpState.CONFIGURATION_WRITTEN)
        self._send(build_start_request())
        return BringUpState.NETWORK_STARTING

    def _set_state(self, state: BringUpState) -> None:
        if state is not self._state:
            logger.info("Bring-up: %s -> %s", self._state.name, state.name)
            self._state = state
