"""Blocking read loop feeding decoded frames to a callback."""

from __future__ import annotations

import logging
import threading
from typing import Callable

import serial

from ..exceptions import ProtocolError, TransportReadFailure
from ..protocol.framing import Frame, FrameBuffer, parse_frame
from .base import Transport

logger = logging.getLogger(__name__)


class FrameReader:
    """Reads the transport on a dedicated thread and decodes frames.

    Frames are handed to ``on_frame`` on the reader thread, one at a time.
    Bad frames are logged and dropped. A failing read stops the loop, is
    stored in :attr:`failure` and reported through ``on_failure``.
    """

    def __init__(
        self,
        source: Transport,
        on_frame: Callable[[Frame], None],
        on_failure: Callable[[TransportReadFailure], None] | None = None,
    ) -> None:
        self._source = source
        self._on_frame = on_frame
        self._on_failure = on_failure
        self._buffer = FrameBuffer()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.failure: TransportReadFailure | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        if len(self._buffer):
            logger.debug("Discarding %d buffered bytes", len(self._buffer))
            self._buffer.clear()
        self._thread = threading.Thread(target=self.run, name="znp-reader", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None

    def run(self) -> None:
        """Read until stopped or the transport fails."""
        try:
            while not self._stop.is_set():
                self.read_once()
        except TransportReadFailure as e:
            logger.error("%s", e)
            self.failure = e
            if self._on_failure is not None:
                self._on_failure(e)

    def read_once(self) -> int:
        """Perform one read and process every complete frame.

        Returns:
            The number of frames delivered.

        Raises:
            TransportReadFailure: If the read itself fails.
        """
        try:
            chunk = self._source.read()
        except (serial.SerialException, OSError) as e:
            raise TransportReadFailure(f"Serial read failed: {e}") from e

        if not chunk:
            return 0
        return self.feed(chunk)

    def feed(self, chunk: bytes) -> int:
        delivered = 0
        for raw in self._buffer.feed(chunk):
            try:
                frame = parse_frame(raw)
            except ProtocolError as e:
                logger.warning("Dropping frame %s: %s", raw.hex(" "), e)
                continue

            logger.debug("Received %r", frame)
            try:
                self._on_frame(frame)
            except Exception:
                logger.exception("Handler for %r failed", frame)
            delivered += 1
        return delivered
