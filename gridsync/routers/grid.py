# gridsync/routers/grid.py
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect

from gridsync.models.grid import Cell
from gridsync.services.coordinator import GridCoordinator
from gridsync.services.transport import WebSocketPeer

logger = logging.getLogger(__name__)

router = APIRouter()


def get_coordinator(request: Request) -> GridCoordinator:
    return request.app.state.coordinator


@router.get("/grid", summary="Current grid", response_model=list[Cell], response_model_by_alias=True)
async def read_grid(request: Request):
    """Full snapshot, the same payload a joining client gets in `init`."""
    return get_coordinator(request).snapshot()


@router.get("/grid/layout", summary="Grid shape and display settings")
async def read_layout(request: Request):
    """What a client needs to lay the cells out and classify their content."""
    coordinator = get_coordinator(request)
    grid = coordinator.grid
    return {
        "size": grid.size,
        "columns": grid.columns,
        "rows": grid.rows,
        "restrictedTokens": list(coordinator.settings.restricted_tokens),
    }


@router.get("/grid/{block_id}", summary="One cell", response_model=Cell, response_model_by_alias=True)
async def read_cell(block_id: int, request: Request):
    coordinator = get_coordinator(request)
    if not coordinator.grid.in_range(block_id):
        raise HTTPException(status_code=404, detail="Block not found")
    return coordinator.snapshot()[block_id]


@router.post("/grid/clear", summary="Reset every cell and broadcast the clear")
async def clear_grid(request: Request, device_id: Optional[str] = None):
    return await get_coordinator(request).clear(device_id)


@router.websocket("/ws")
async def grid_socket(websocket: WebSocket, deviceId: Optional[str] = None):
    coordinator: GridCoordinator = websocket.app.state.coordinator
    await websocket.accept()
    peer = WebSocketPeer(websocket, uuid.uuid4().hex, deviceId)
    await coordinator.on_connect(peer)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug("websocket %s closed with code %s", peer.peer_id, message.get("code"))
                break
            # text and binary frames both carry JSON; parse_intent drops anything else
            frame = message.get("text")
            if frame is None:
                frame = message.get("bytes")
            await coordinator.on_intent(peer, frame)
    except WebSocketDisconnect as e:
        logger.debug("websocket %s closed with code %s", peer.peer_id, e.code)
    finally:
        await coordinator.on_disconnect(peer)
