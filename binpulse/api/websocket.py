from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from binpulse.telemetry.broadcast import Snapshot

LOGGER = logging.getLogger(__name__)

router = APIRouter()


def snapshot_message(snapshot: Snapshot) -> dict:
    return {"type": "snapshot", "data": [record.model_dump(mode="json") for record in snapshot]}


class ConnectionManager:
    """Telemetry listener that pushes every snapshot to connected websockets."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._pending: set[asyncio.Task[None]] = set()

    def __len__(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)

    async def broadcast(self, message: dict) -> None:
        stale: list[WebSocket] = []
        for websocket in list(self._connections):
            try:
                await websocket.send_json(message)
            except Exception:
                stale.append(websocket)

        for websocket in stale:
            self.disconnect(websocket)

    def notify(self, snapshot: Snapshot) -> None:
        if not self._connections:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.debug("No running event loop; skipping websocket push")
            return
        task = loop.create_task(self.broadcast(snapshot_message(snapshot)))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)


@router.websocket("/ws/bins")
async def bins_ws(websocket: WebSocket) -> None:
    manager: ConnectionManager = websocket.app.state.ws_manager
    engine = websocket.app.state.engine
    await manager.connect(websocket)
    await websocket.send_json(snapshot_message(engine.telemetry.list_all()))

    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)
