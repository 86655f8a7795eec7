import pytest

from gridsync.client.session import ClientSession, LockState
from gridsync.services.transport import Peer
from gridsync.services.validation import ContentCategory


class SessionPeer(Peer):
    def __init__(self, session: ClientSession) -> None:
        super().__init__(f"peer-{session.device_id}", session.device_id)
        self.session = session

    async def send(self, message: dict) -> None:
        self.session.apply(message)


class Harness:
    """Clients wired to a coordinator; intents queue up until pumped."""

    def __init__(self, coordinator) -> None:
        self.coordinator = coordinator
        self.outbox: list[tuple[Peer, dict]] = []
        self.peers: dict[str, SessionPeer] = {}

    async def join(self, device_id: str, **kwargs) -> ClientSession:
        holder = {}
        session = ClientSession(lambda m: self.outbox.append((holder["peer"], m)), device_id=device_id, **kwargs)
        peer = holder["peer"] = SessionPeer(session)
        self.peers[device_id] = peer
        await self.coordinator.on_connect(peer)
        return session

    async def pump(self) -> None:
        while self.outbox:
            peer, message = self.outbox.pop(0)
            await self.coordinator.on_intent(peer, message)


@pytest.fixture()
def harness(coordinator):
    return Harness(coordinator)


def test_generates_device_id_once():
    session = ClientSession(lambda m: None)
    assert session.device_id
    assert ClientSession(lambda m: None).device_id != session.device_id


def test_view_changes_only_through_server_messages():
    sent = []
    session = ClientSession(sent.append, device_id="me")
    assert session.edit(0, "A1")
    assert sent == [{"type": "update", "blockId": 0, "content": "A1", "deviceId": "me"}]
    assert session.blocks[0].content == ""

    session.apply(sent[0])
    assert session.blocks[0].content == "A1"


def test_invalid_edit_is_never_sent():
    sent = []
    session = ClientSession(sent.append, device_id="me")
    for raw in ("11", "AB", "A1x"):
        assert not session.edit(0, raw)
    assert sent == []


def test_edit_is_normalized():
    sent = []
    session = ClientSession(sent.append, device_id="me")
    session.edit(2, " 1a ")
    assert sent[-1]["content"] == "1a"


def test_lock_states():
    session = ClientSession(lambda m: None, device_id="me")
    session.apply({"type": "lock", "blockId": 0, "deviceId": "me"})
    session.apply({"type": "lock", "blockId": 1, "deviceId": "other"})
    assert session.lock_state(0) is LockState.LOCKED_BY_SELF
    assert session.lock_state(1) is LockState.LOCKED_BY_OTHER
    assert session.lock_state(2) is LockState.UNLOCKED


def test_cell_locked_by_other_is_read_only():
    sent = []
    session = ClientSession(sent.append, device_id="me")
    session.apply({"type": "update", "blockId": 0, "content": "A1", "deviceId": "other"})
    session.apply({"type": "lock", "blockId": 0, "deviceId": "other"})

    assert not session.edit(0, "B2")
    assert not session.focus(0)
    assert not session.blur(0)
    assert not session.drop(0, 1)
    assert sent == []


def test_blur_releases_only_empty_own_cells():
    sent = []
    session = ClientSession(sent.append, device_id="me")
    session.apply({"type": "lock", "blockId": 0, "deviceId": "me"})
    session.apply({"type": "lock", "blockId": 1, "deviceId": "me"})
    session.apply({"type": "update", "blockId": 1, "content": "7", "deviceId": "me"})

    assert session.blur(0)
    assert not session.blur(1)
    assert not session.blur(2)
    assert sent == [{"type": "lock", "blockId": 0, "deviceId": None}]


def test_drop_guards():
    sent = []
    session = ClientSession(sent.append, device_id="me")
    session.apply({"type": "update", "blockId": 0, "content": "A1", "deviceId": "me"})
    session.apply({"type": "update", "blockId": 1, "content": "B2", "deviceId": "me"})

    assert not session.drop(0, 0)
    assert not session.drop(0, 1)  # target occupied
    assert not session.drop(2, 3)  # nothing to move
    assert sent == []

    assert session.drop(0, 5)
    assert sent == [{"type": "move", "fromId": 0, "toId": 5, "deviceId": "me"}]


def test_init_replaces_view_and_clear_empties_it():
    session = ClientSession(lambda m: None, size=2)
    session.apply({"type": "init", "blocks": [{"content": "A", "lockedBy": "x"}, {"content": "", "lockedBy": None}]})
    assert session.snapshot() == [{"content": "A", "lockedBy": "x"}, {"content": "", "lockedBy": None}]
    session.apply({"type": "clear", "deviceId": "x"})
    assert session.snapshot() == [{"content": "", "lockedBy": None}] * 2


def test_unknown_message_is_ignored():
    session = ClientSession(lambda m: None)
    session.apply({"type": "weather", "blockId": 0})
    assert session.snapshot() == [{"content": "", "lockedBy": None}] * 9


def test_classify_uses_restricted_tokens():
    session = ClientSession(lambda m: None, restricted=["zz"])
    session.apply({"type": "update", "blockId": 0, "content": "ZZ", "deviceId": None})
    session.apply({"type": "update", "blockId": 1, "content": "A1", "deviceId": None})
    assert session.classify(0) is ContentCategory.RESTRICTED
    assert session.classify(1) is ContentCategory.VALID
    assert session.classify(2) is ContentCategory.EMPTY


class TestAgainstCoordinator:
    @pytest.mark.asyncio
    async def test_join_gets_current_grid(self, harness):
        alice = await harness.join("alice")
        alice.focus(0)
        alice.edit(0, "A1")
        await harness.pump()

        bob = await harness.join("bob")
        assert bob.snapshot() == harness.coordinator.snapshot()
        assert bob.lock_state(0) is LockState.LOCKED_BY_OTHER

    @pytest.mark.asyncio
    async def test_focus_blur_cycle(self, harness):
        alice = await harness.join("alice")
        bob = await harness.join("bob")

        alice.focus(4)
        await harness.pump()
        assert alice.lock_state(4) is LockState.LOCKED_BY_SELF
        assert bob.lock_state(4) is LockState.LOCKED_BY_OTHER

        alice.blur(4)
        await harness.pump()
        assert alice.lock_state(4) is LockState.UNLOCKED
        assert bob.lock_state(4) is LockState.UNLOCKED

    @pytest.mark.asyncio
    async def test_competing_focus_first_wins(self, harness):
        alice = await harness.join("alice")
        bob = await harness.join("bob")

        # both clients still see the cell as free when they focus it
        alice.focus(2)
        bob.focus(2)
        alice.edit(2, "A")
        bob.edit(2, "B")
        await harness.pump()

        assert harness.coordinator.grid[2].wire() == {"content": "A", "lockedBy": "alice"}
        assert alice.snapshot() == bob.snapshot() == harness.coordinator.snapshot()

    @pytest.mark.asyncio
    async def test_drag_scenario_both_protocols(self, harness):
        x = await harness.join("X")
        other = await harness.join("other")
        x.focus(0)
        x.edit(0, "A1")
        await harness.pump()

        x.drop(0, 3, legacy=True)
        await harness.pump()
        assert harness.coordinator.grid[0].wire() == {"content": "", "lockedBy": None}
        assert harness.coordinator.grid[3].wire() == {"content": "A1", "lockedBy": "X"}

        x.drop(3, 8)
        await harness.pump()
        assert harness.coordinator.grid[3].wire() == {"content": "", "lockedBy": None}
        assert harness.coordinator.grid[8].wire() == {"content": "A1", "lockedBy": "X"}
        assert x.snapshot() == other.snapshot() == harness.coordinator.snapshot()

    @pytest.mark.asyncio
    async def test_clear_resets_everyone(self, harness):
        alice = await harness.join("alice")
        bob = await harness.join("bob")
        alice.focus(1)
        alice.edit(1, "9")
        bob.clear()
        await harness.pump()
        assert alice.snapshot() == bob.snapshot() == [{"content": "", "lockedBy": None}] * 9
