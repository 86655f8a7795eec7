from __future__ import annotations

import pytest

from gridsync.config import Settings
from gridsync.services.coordinator import GridCoordinator
from gridsync.services.transport import Peer


class RecordingPeer(Peer):
    """Peer that keeps every message it is sent."""

    def __init__(self, peer_id: str, identity: str | None = None, fail: bool = False) -> None:
        super().__init__(peer_id, identity)
        self.received: list[dict] = []
        self.fail = fail
        self.closed = False

    async def send(self, message: dict) -> None:
        if self.fail:
            raise ConnectionError("peer went away")
        self.received.append(message)

    async def close(self) -> None:
        self.closed = True

    def of_type(self, kind: str) -> list[dict]:
        return [m for m in self.received if m["type"] == kind]


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings() -> Settings:
    return Settings()


@pytest.fixture()
def coordinator(settings: Settings, clock: FakeClock) -> GridCoordinator:
    return GridCoordinator(settings, clock=clock)


@pytest.fixture()
def make_peer():
    counter = iter(range(1, 1000))

    def factory(identity: str | None = None, fail: bool = False) -> RecordingPeer:
        return RecordingPeer(f"peer-{next(counter)}", identity, fail=fail)

    return factory
