# gridsync/services/guards.py
from dataclasses import dataclass
from typing import Optional

from gridsync.models.grid import Grid
from gridsync.models.schemas import ClearIntent, LockIntent, MoveIntent, UpdateIntent
from gridsync.services.validation import is_valid_content


@dataclass(frozen=True)
class Verdict:
    accepted: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.accepted


ACCEPT = Verdict(True)


def reject(reason: str) -> Verdict:
    return Verdict(False, reason)


def _may_touch(grid: Grid, block_id: int, acting_id: Optional[str]) -> bool:
    holder = grid[block_id].locked_by
    return holder is None or holder == acting_id


def check_intent(
    grid: Grid,
    intent,
    acting_id: Optional[str],
    enforce_locks: bool = True,
    validate_content: bool = True,
) -> Verdict:
    """
    Decide whether `intent`, sent on behalf of `acting_id`, may be applied.

    Range (and optionally content) checks always run. Ownership checks run
    only with `enforce_locks`; without them the grid behaves as a plain relay.
    """
    if isinstance(intent, ClearIntent):
        return ACCEPT

    if isinstance(intent, UpdateIntent):
        if not grid.in_range(intent.block_id):
            return reject(f"block {intent.block_id} out of range")
        if validate_content and not is_valid_content(intent.content):
            return reject(f"content {intent.content!r} is not allowed")
        if enforce_locks and not _may_touch(grid, intent.block_id, acting_id):
            return reject(f"block {intent.block_id} is locked by another client")
        return ACCEPT

    if isinstance(intent, LockIntent):
        if not grid.in_range(intent.block_id):
            return reject(f"block {intent.block_id} out of range")
        if enforce_locks:
            if not _may_touch(grid, intent.block_id, acting_id):
                return reject(f"block {intent.block_id} is locked by another client")
            if intent.device_id is not None and intent.device_id != acting_id:
                return reject("cannot take a lock on behalf of another client")
        return ACCEPT

    if isinstance(intent, MoveIntent):
        source, target = intent.from_id, intent.to_id
        if not grid.in_range(source) or not grid.in_range(target):
            return reject(f"move {source}->{target} out of range")
        if source == target:
            return reject("move source and target are the same block")
        if grid[source].content == "":
            return reject(f"block {source} has nothing to move")
        if grid[target].content != "":
            return reject(f"block {target} is not empty")
        if enforce_locks and not (_may_touch(grid, source, acting_id) and _may_touch(grid, target, acting_id)):
            return reject(f"move {source}->{target} touches a block locked by another client")
        return ACCEPT

    return reject(f"unsupported intent {type(intent).__name__}")
