"""Shared fixtures: a recording in-memory transport and an unstarted coordinator."""

from __future__ import annotations

import pytest

from znp_coordinator.coordinator.engine import Coordinator
from znp_coordinator.protocol.framing import Frame, parse_frame


class FakeTransport:
    """Records written frames and replays queued read results.

    Queued items are returned by ``read()`` in order; an exception instance
    is raised instead of returned. An empty queue reads as a timeout.
    """

    def __init__(self, chunks=()):
        self.written: list[bytes] = []
        self._chunks = list(chunks)

    def write(self, data: bytes) -> int:
        self.written.append(bytes(data))
        return len(data)

    def read(self):
        if not self._chunks:
            return None
        item = self._chunks.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def frames(self) -> list[Frame]:
        return [parse_frame(data) for data in self.written]

    def keys(self) -> list[tuple[int, int]]:
        return [frame.key for frame in self.frames()]

    def clear(self) -> None:
        self.written.clear()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def coordinator(transport) -> Coordinator:
    return Coordinator(transport)
