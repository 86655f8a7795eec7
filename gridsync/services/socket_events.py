# gridsync/services/socket_events.py
import logging
from typing import Optional
from urllib.parse import parse_qs

import socketio

from gridsync.models.schemas import INTENT_TYPES
from gridsync.services.coordinator import GridCoordinator
from gridsync.services.transport import SocketIOPeer

logger = logging.getLogger(__name__)


def _identity(environ: dict, auth) -> Optional[str]:
    if isinstance(auth, dict) and isinstance(auth.get("deviceId"), str):
        return auth["deviceId"]
    query = parse_qs(environ.get("QUERY_STRING", ""))
    values = query.get("deviceId")
    return values[0] if values else None


def register_socket_events(sio: socketio.AsyncServer, coordinator: GridCoordinator) -> dict[str, SocketIOPeer]:
    """Wire Socket.IO events to the coordinator. Returns the live sid -> peer map."""
    peers: dict[str, SocketIOPeer] = {}

    @sio.on("connect")
    async def connect(sid, environ, auth=None):
        peer = SocketIOPeer(sio, sid, _identity(environ, auth))
        peers[sid] = peer
        await coordinator.on_connect(peer)

    @sio.on("disconnect")
    async def disconnect(sid, *args):
        peer = peers.pop(sid, None)
        if peer is not None:
            await coordinator.on_disconnect(peer)

    def intent_handler(kind: str):
        async def handler(sid, data=None):
            peer = peers.get(sid)
            if peer is None:
                logger.debug("intent from unknown sid %s", sid)
                return
            if data is None:
                data = {}
            if not isinstance(data, dict):
                # the event name is the intent type; a payload cannot pick another one
                logger.debug("dropping non-object %s payload from %s", kind, sid)
                return
            await coordinator.on_intent(peer, {**data, "type": kind})

        return handler

    for kind in INTENT_TYPES:
        sio.on(kind, intent_handler(kind))

    return peers
