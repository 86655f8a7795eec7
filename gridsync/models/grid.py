# gridsync/models/grid.py
from typing import Optional

from pydantic import BaseModel, ConfigDict, PrivateAttr
from pydantic.alias_generators import to_camel


class Cell(BaseModel):
    """One slot of the shared grid: its text and who holds its lock."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    content: str = ""
    locked_by: Optional[str] = None

    # when the current lock was taken; never sent over the wire
    _locked_at: Optional[float] = PrivateAttr(default=None)

    @property
    def locked_at(self) -> Optional[float]:
        return self._locked_at

    def wire(self) -> dict:
        return self.model_dump(by_alias=True)


class Grid:
    """
    The authoritative ordered sequence of cells.

    The shape (size and columns) is configuration; nothing below assumes 3x3.
    Only the coordinator is expected to hold a reference to a Grid.
    """

    def __init__(self, size: int = 9, columns: int = 3) -> None:
        if size <= 0:
            raise ValueError("grid size must be positive")
        if columns <= 0:
            raise ValueError("grid columns must be positive")
        self.size = size
        self.columns = columns
        self._cells: list[Cell] = [Cell() for _ in range(size)]

    @property
    def rows(self) -> int:
        # a last, partly filled row still counts
        return -(-self.size // self.columns)

    def __len__(self) -> int:
        return self.size

    def __getitem__(self, block_id: int) -> Cell:
        if not self.in_range(block_id):
            raise IndexError(f"block {block_id} is outside the grid")
        return self._cells[block_id]

    def in_range(self, block_id) -> bool:
        # bool is an int subclass; True must not address block 1
        return isinstance(block_id, int) and not isinstance(block_id, bool) and 0 <= block_id < self.size

    def snapshot(self) -> list[dict]:
        return [cell.wire() for cell in self._cells]

    def set_content(self, block_id: int, content: str) -> None:
        self[block_id].content = content

    def set_lock(self, block_id: int, device_id: Optional[str], now: Optional[float] = None) -> None:
        cell = self[block_id]
        cell.locked_by = device_id
        cell._locked_at = now if device_id is not None else None

    def touch(self, block_id: int, now: float) -> None:
        cell = self[block_id]
        if cell.locked_by is not None:
            cell._locked_at = now

    def relocate(self, source: int, target: int, device_id: Optional[str], now: Optional[float] = None) -> str:
        """Move the content of `source` into `target` as a single step.

        The source ends up empty and unlocked, the target holds the content
        and is locked to `device_id`. Returns the moved content.
        """
        content = self[source].content
        target_cell = self[target]
        self.set_content(source, "")
        self.set_lock(source, None)
        target_cell.content = content
        self.set_lock(target, device_id, now)
        return content

    def reset(self) -> None:
        self._cells = [Cell() for _ in range(self.size)]

    def locks_held_by(self, device_id: str) -> list[int]:
        return [i for i, cell in enumerate(self._cells) if cell.locked_by == device_id]

    def stale_locks(self, now: float, timeout: float) -> list[int]:
        """Blocks whose lock was taken more than `timeout` seconds before `now`."""
        stale = []
        for i, cell in enumerate(self._cells):
            if cell.locked_by is None or cell.locked_at is None:
                continue
            if now - cell.locked_at >= timeout:
                stale.append(i)
        return stale
