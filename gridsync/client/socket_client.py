# gridsync/client/socket_client.py
import logging
from typing import Iterable, Optional

import socketio

from gridsync.client.session import ClientSession
from gridsync.config import Settings

logger = logging.getLogger(__name__)

SERVER_URL = "http://localhost:8000"

SERVER_EVENTS = ("init", "update", "lock", "clear", "move")


class GridClient:
    """Runs a ClientSession over a Socket.IO connection."""

    def __init__(
        self,
        url: str = SERVER_URL,
        device_id: Optional[str] = None,
        size: Optional[int] = None,
        restricted: Optional[Iterable[str]] = None,
        sio: Optional[socketio.Client] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        # grid shape and denylist come from the same GRID_* settings as the server
        settings = settings or Settings.from_env()
        size = settings.grid_size if size is None else size
        restricted = settings.restricted_tokens if restricted is None else restricted
        self.url = url
        self.sio = sio or socketio.Client()
        self.session = ClientSession(self._emit, device_id=device_id, size=size, restricted=restricted)

        self.sio.on("connect", self._on_connect)
        self.sio.on("disconnect", self._on_disconnect)
        for event in SERVER_EVENTS:
            self.sio.on(event, self.session.apply)

    def _emit(self, message: dict) -> None:
        self.sio.emit(message["type"], message)

    def _on_connect(self):
        logger.info("connected to %s as %s", self.url, self.session.device_id)

    def _on_disconnect(self, *args):
        logger.info("disconnected from %s", self.url)

    def connect(self) -> None:
        self.sio.connect(self.url, auth={"deviceId": self.session.device_id})

    def wait(self) -> None:
        self.sio.wait()

    def disconnect(self) -> None:
        self.sio.disconnect()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    client = GridClient()
    client.connect()
    client.wait()
