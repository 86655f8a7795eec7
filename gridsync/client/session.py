# gridsync/client/session.py
import logging
import uuid
from enum import Enum
from typing import Callable, Iterable, Optional

from gridsync.models.grid import Cell
from gridsync.services.validation import ContentCategory, classify_content, prepare_content

logger = logging.getLogger(__name__)


class LockState(str, Enum):
    UNLOCKED = "unlocked"
    LOCKED_BY_SELF = "locked_by_self"
    LOCKED_BY_OTHER = "locked_by_other"


class ClientSession:
    """
    One client's view of the shared grid.

    The session only mirrors what the server broadcasts; user actions turn
    into intents handed to `send` and show up in the view once they come back.
    Lock checks here only spare the server obviously doomed intents.
    """

    def __init__(
        self,
        send: Callable[[dict], None],
        device_id: Optional[str] = None,
        size: int = 9,
        restricted: Iterable[str] = (),
    ) -> None:
        self._send = send
        self.device_id = device_id or str(uuid.uuid4())
        self.blocks: list[Cell] = [Cell() for _ in range(size)]
        self.restricted = tuple(restricted)

    # server -> client

    def apply(self, message: dict) -> None:
        kind = message.get("type")
        if kind == "init":
            self.blocks = [Cell.model_validate(block) for block in message["blocks"]]
        elif kind == "update":
            self.blocks[message["blockId"]].content = message["content"]
        elif kind == "lock":
            self.blocks[message["blockId"]].locked_by = message.get("deviceId")
        elif kind == "move":
            source, target = self.blocks[message["fromId"]], self.blocks[message["toId"]]
            source.content, source.locked_by = "", None
            target.content, target.locked_by = message.get("content", ""), message.get("deviceId")
        elif kind == "clear":
            self.blocks = [Cell() for _ in self.blocks]
        else:
            logger.debug("ignoring message of type %r", kind)

    def snapshot(self) -> list[dict]:
        return [cell.wire() for cell in self.blocks]

    def lock_state(self, block_id: int) -> LockState:
        holder = self.blocks[block_id].locked_by
        if holder is None:
            return LockState.UNLOCKED
        if holder == self.device_id:
            return LockState.LOCKED_BY_SELF
        return LockState.LOCKED_BY_OTHER

    def classify(self, block_id: int) -> ContentCategory:
        return classify_content(self.blocks[block_id].content, self.restricted)

    # client -> server

    def _writable(self, block_id: int) -> bool:
        return self.lock_state(block_id) is not LockState.LOCKED_BY_OTHER

    def edit(self, block_id: int, raw: str) -> bool:
        """Send an update if the cell is writable and the text passes validation."""
        if not self._writable(block_id):
            return False
        content = prepare_content(raw)
        if content is None:
            logger.debug("dropping invalid edit %r on block %d", raw, block_id)
            return False
        self._send({"type": "update", "blockId": block_id, "content": content, "deviceId": self.device_id})
        return True

    def focus(self, block_id: int) -> bool:
        if not self._writable(block_id):
            return False
        self._send({"type": "lock", "blockId": block_id, "deviceId": self.device_id})
        return True

    def blur(self, block_id: int) -> bool:
        """Give back a lock on a cell that was focused but left empty."""
        cell = self.blocks[block_id]
        if cell.content != "" or self.lock_state(block_id) is not LockState.LOCKED_BY_SELF:
            return False
        self._send({"type": "lock", "blockId": block_id, "deviceId": None})
        return True

    def drop(self, source: int, target: int, legacy: bool = False) -> bool:
        """
        Move the content of `source` into the empty `target`.

        By default this is one `move` intent. With `legacy` it is the older
        four-intent sequence (clear and unlock the source, then write and lock
        the target), which other clients see as four separate steps.
        """
        if source == target:
            return False
        if not (self._writable(source) and self._writable(target)):
            return False
        content = self.blocks[source].content
        if content == "" or self.blocks[target].content != "":
            return False
        if not legacy:
            self._send({"type": "move", "fromId": source, "toId": target, "deviceId": self.device_id})
            return True
        self._send({"type": "update", "blockId": source, "content": "", "deviceId": None})
        self._send({"type": "lock", "blockId": source, "deviceId": None})
        self._send({"type": "update", "blockId": target, "content": content, "deviceId": self.device_id})
        self._send({"type": "lock", "blockId": target, "deviceId": self.device_id})
        return True

    def clear(self) -> None:
        self._send({"type": "clear", "deviceId": self.device_id})
