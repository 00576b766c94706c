"""WebSocket surface: FastAPI app broadcasting notifications and receiving commands."""

import logging
import uuid

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from modtoggler.commands import CommandDispatcher

logger = logging.getLogger(__name__)


class WebSocketHub:
    """Tracks connected clients. Implements NotificationSink."""

    def __init__(self) -> None:
        self._sockets: dict[str, WebSocket] = {}

    @property
    def connection_count(self) -> int:
        return len(self._sockets)

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        client_id = uuid.uuid4().hex
        self._sockets[client_id] = websocket
        logger.info("Client connected %s", client_id)
        return client_id

    async def disconnect(self, client_id: str) -> None:
        self._sockets.pop(client_id, None)
        logger.info("Client disconnected %s", client_id)

    async def broadcast(self, message: str) -> None:
        targets = list(self._sockets.items())
        dead: list[str] = []
        for client_id, websocket in targets:
            try:
                await websocket.send_text(message)
            except Exception as e:
                logger.debug("Dropping client %s: %s", client_id, e)
                dead.append(client_id)
        for client_id in dead:
            await self.disconnect(client_id)


def create_app(
    hub: WebSocketHub,
    dispatcher: CommandDispatcher,
    path: str = "/modtoggler",
) -> FastAPI:
    """App with a single WebSocket endpoint. New clients receive the inventory first."""
    app = FastAPI(title="modtoggler")

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "clients": hub.connection_count}

    @app.websocket(path)
    async def module_socket(websocket: WebSocket) -> None:
        client_id = await hub.connect(websocket)
        try:
            await dispatcher.publish_modules()
            while True:
                message = await websocket.receive_text()
                await dispatcher.handle(message)
        except WebSocketDisconnect:
            pass
        finally:
            await hub.disconnect(client_id)

    return app
