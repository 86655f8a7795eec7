# gridsync/services/coordinator.py
import asyncio
import logging
import time
from typing import Callable, Optional

from gridsync.config import Settings
from gridsync.models.grid import Grid
from gridsync.models.schemas import (
    ClearIntent,
    InitMessage,
    LockIntent,
    MalformedIntent,
    MoveIntent,
    MoveMessage,
    UpdateIntent,
    parse_intent,
)
from gridsync.services.guards import check_intent
from gridsync.services.transport import Peer

logger = logging.getLogger(__name__)


class GridCoordinator:
    """
    Single owner of the grid and of the set of connected peers.

    Every entry point takes the same asyncio lock, so intents are validated,
    applied and broadcast one at a time in arrival order. Peers never get a
    reference to the grid itself, only messages.
    """

    def __init__(self, settings: Optional[Settings] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.settings = settings or Settings()
        self.grid = Grid(self.settings.grid_size, self.settings.grid_columns)
        self._peers: dict[str, Peer] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        # peers whose send failed; their transports are closed once the lock is free
        self._dropped: list[Peer] = []

    @property
    def peers(self) -> tuple[Peer, ...]:
        return tuple(self._peers.values())

    def snapshot(self) -> list[dict]:
        return self.grid.snapshot()

    async def on_connect(self, peer: Peer) -> None:
        async with self._lock:
            self._peers[peer.peer_id] = peer
            logger.info("peer %s connected as %s (%d online)", peer.peer_id, peer.identity, len(self._peers))
            init = InitMessage(blocks=self.grid.snapshot()).wire()
            try:
                await peer.send(init)
            except Exception as e:
                logger.warning("could not send init to %s: %s", peer.peer_id, e)
                self._drop(peer)
        await self._close_dropped()

    async def on_disconnect(self, peer: Peer) -> None:
        async with self._lock:
            if self._peers.pop(peer.peer_id, None) is None:
                return
            logger.info("peer %s disconnected (%d online)", peer.peer_id, len(self._peers))
            await self._release_departed(peer)
        await self._close_dropped()

    async def on_intent(self, peer: Peer, raw) -> Optional[dict]:
        """
        Apply one client intent and broadcast the result to every peer.

        Returns the broadcast message, or None when the intent was malformed
        or rejected. Nothing is ever sent back to the client in that case.
        """
        async with self._lock:
            message = await self._handle_intent(peer, raw)
        await self._close_dropped()
        return message

    async def clear(self, device_id: Optional[str] = None) -> dict:
        """Server-side clear, broadcast like a client `clear`."""
        async with self._lock:
            message = self._apply(ClearIntent(device_id=device_id), device_id)
            await self._broadcast(message)
        await self._close_dropped()
        return message

    async def expire_locks(self, now: Optional[float] = None) -> list[int]:
        timeout = self.settings.lock_timeout
        if timeout is None:
            return []
        async with self._lock:
            now = self._clock() if now is None else now
            expired = self.grid.stale_locks(now, timeout)
            for block_id in expired:
                logger.info("lock on block %d held by %s expired", block_id, self.grid[block_id].locked_by)
                self.grid.set_lock(block_id, None)
                await self._broadcast(LockIntent(block_id=block_id, device_id=None).wire())
        await self._close_dropped()
        return expired

    async def run_lock_reaper(self, interval: Optional[float] = None) -> None:
        interval = interval or self.settings.reaper_interval
        while True:
            await asyncio.sleep(interval)
            await self.expire_locks()

    async def _handle_intent(self, peer: Peer, raw) -> Optional[dict]:
        if peer.peer_id not in self._peers:
            logger.debug("ignoring intent from unregistered peer %s", peer.peer_id)
            return None
        try:
            intent = parse_intent(raw)
        except MalformedIntent as e:
            logger.debug("dropping malformed intent from %s: %s", peer.peer_id, e)
            return None

        acting_id = self._acting_id(peer, intent)
        verdict = check_intent(
            self.grid,
            intent,
            acting_id,
            enforce_locks=self.settings.enforce_locks,
            validate_content=self.settings.validate_content,
        )
        if not verdict:
            logger.info("rejected %s from %s: %s", intent.type, peer.peer_id, verdict.reason)
            return None

        message = self._apply(intent, acting_id)
        await self._broadcast(message)
        return message

    def _acting_id(self, peer: Peer, intent) -> Optional[str]:
        if peer.identity is None and intent.device_id is not None:
            peer.identity = intent.device_id
            logger.debug("peer %s bound to identity %s", peer.peer_id, peer.identity)
        return peer.identity if peer.identity is not None else intent.device_id

    def _apply(self, intent, acting_id: Optional[str]) -> dict:
        now = self._clock()
        if isinstance(intent, UpdateIntent):
            self.grid.set_content(intent.block_id, intent.content)
            if self.grid[intent.block_id].locked_by == acting_id:
                self.grid.touch(intent.block_id, now)
            return UpdateIntent(block_id=intent.block_id, content=intent.content, device_id=acting_id).wire()
        if isinstance(intent, LockIntent):
            self.grid.set_lock(intent.block_id, intent.device_id, now)
            return intent.wire()
        if isinstance(intent, MoveIntent):
            content = self.grid.relocate(intent.from_id, intent.to_id, acting_id, now)
            return MoveMessage(from_id=intent.from_id, to_id=intent.to_id, device_id=acting_id, content=content).wire()
        if isinstance(intent, ClearIntent):
            self.grid.reset()
            logger.info("grid cleared by %s", acting_id)
            return ClearIntent(device_id=acting_id).wire()
        raise TypeError(f"cannot apply {type(intent).__name__}")

    async def _release_departed(self, peer: Peer) -> None:
        """Apply the disconnect policy for a peer that is no longer registered. Lock must be held."""
        if not self.settings.release_on_disconnect or peer.identity is None:
            # locks stay with the identity until released or cleared
            return
        if any(other.identity == peer.identity for other in self._peers.values()):
            return
        for block_id in self.grid.locks_held_by(peer.identity):
            self.grid.set_lock(block_id, None)
            logger.info("released block %d held by departed %s", block_id, peer.identity)
            await self._broadcast(LockIntent(block_id=block_id, device_id=None).wire())

    def _drop(self, peer: Peer) -> None:
        if self._peers.pop(peer.peer_id, None) is not None:
            self._dropped.append(peer)

    async def _broadcast(self, message: dict) -> None:
        for peer in list(self._peers.values()):
            try:
                await peer.send(message)
            except Exception as e:
                logger.warning("dropping peer %s after failed send: %s", peer.peer_id, e)
                self._drop(peer)

    async def _close_dropped(self) -> None:
        # Closing a transport can re-enter on_disconnect, so this runs outside the lock.
        while self._dropped:
            peer = self._dropped.pop(0)
            try:
                await peer.close()
            except Exception as e:
                logger.debug("closing dropped peer %s failed: %s", peer.peer_id, e)
            async with self._lock:
                await self._release_departed(peer)
