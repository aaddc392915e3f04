import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from typing import List
import anyio
from stockroom.services.notifications import Notification

logger = logging.getLogger(__name__)

router = APIRouter()


class ConnectionManager:
    """Guarda todas las conexiones WebSocket activas.
    Cada vez que alguien se conecta al WebSocket, se añade a la lista."""

    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()  # .accept() es obligatorio para establecer la conexión con el cliente.
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        # Si el cliente se desconecta (o se cae), lo quitamos de la lista.
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def broadcast(self, message: str):
        """Envía un mensaje de texto a todos los clientes conectados."""
        for connection in list(self.active_connections):
            await connection.send_text(message)

    def send_notification(self, notification: Notification):
        """Suscriptor del servicio de notificaciones.

        Las rutas de movimientos son síncronas (se ejecutan en un hilo del
        threadpool), así que el envío se delega al event loop con AnyIO."""
        if not self.active_connections:
            return
        anyio.from_thread.run(self.broadcast, notification.model_dump_json())


manager = ConnectionManager()


@router.websocket("/ws/movimientos")
async def websocket_endpoint(websocket: WebSocket):
    await manager.connect(websocket)

    try:
        # Mantenemos la conexión viva hasta que el cliente se desconecte.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        # Lo quitamos para no dejar conexiones zombis.
        manager.disconnect(websocket)
        logger.debug("Cliente WebSocket desconectado")
