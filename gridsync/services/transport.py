# gridsync/services/transport.py
import json
from typing import Optional

import socketio
from fastapi import WebSocket


class Peer:
    """A connected client as seen by the coordinator."""

    def __init__(self, peer_id: str, identity: Optional[str] = None) -> None:
        self.peer_id = peer_id
        # device id the client acts as; may be bound later by its first intent
        self.identity = identity

    async def send(self, message: dict) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        """Shut the underlying connection; the client may reconnect for a fresh init."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(peer_id={self.peer_id!r}, identity={self.identity!r})"


class WebSocketPeer(Peer):
    def __init__(self, websocket: WebSocket, peer_id: str, identity: Optional[str] = None) -> None:
        super().__init__(peer_id, identity)
        self.websocket = websocket

    async def send(self, message: dict) -> None:
        await self.websocket.send_text(json.dumps(message))

    async def close(self) -> None:
        await self.websocket.close()


class SocketIOPeer(Peer):
    """Socket.IO session; every message goes out under its `type` as the event name."""

    def __init__(self, sio: socketio.AsyncServer, sid: str, identity: Optional[str] = None) -> None:
        super().__init__(sid, identity)
        self.sio = sio

    async def send(self, message: dict) -> None:
        await self.sio.emit(message["type"], message, to=self.peer_id)

    async def close(self) -> None:
        await self.sio.disconnect(self.peer_id)
