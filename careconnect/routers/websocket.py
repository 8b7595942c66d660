# careconnect/routers/websocket.py
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from typing import Dict, List, Optional
import logging

from ..db import get_store
from ..security import decode_user_id
from ..store import Store

logger = logging.getLogger(__name__)

router = APIRouter()

class ConnectionManager:
    """Sockets abiertos por usuario (uno por dispositivo)"""

    def __init__(self):
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: str):
        await websocket.accept()
        self.active_connections.setdefault(user_id, []).append(websocket)

    def disconnect(self, user_id: str, websocket: Optional[WebSocket] = None):
        sockets = self.active_connections.get(user_id, [])
        if websocket is not None and websocket in sockets:
            sockets.remove(websocket)
        if websocket is None or not sockets:
            self.active_connections.pop(user_id, None)

    def is_connected(self, user_id: str) -> bool:
        return bool(self.active_connections.get(user_id))

    async def send_personal_message(self, message: dict, user_id: str):
        payload = jsonable_encoder(message)
        for websocket in list(self.active_connections.get(user_id, [])):
            try:
                await websocket.send_json(payload)
            except Exception as e:
                logger.error(f"No se pudo enviar a {user_id}: {e}", exc_info=True)
                self.disconnect(user_id, websocket)

manager = ConnectionManager()

async def get_user_from_token(websocket: WebSocket, token: str) -> Optional[str]:
    """Extrae el user_id del token JWT o cierra la conexión"""
    user_id = decode_user_id(token)
    if not user_id:
        await websocket.close(code=1008, reason="Invalid token")
        return None
    return user_id

@router.websocket("/ws/{token}")
async def websocket_endpoint(websocket: WebSocket, token: str, store: Store = Depends(get_store)):
    """
    Canal de notificaciones en tiempo real (eventos de reserva y alertas de escaneo).
    El token se pasa como parámetro en la URL.
    """
    user_id = await get_user_from_token(websocket, token)
    if not user_id:
        return

    await manager.connect(websocket, user_id)

    try:
        await websocket.send_json({
            "type": "connected",
            "message": "Conectado a las notificaciones",
            "user_id": user_id
        })

        while True:
            data = await websocket.receive_json()
            message_type = data.get("type")

            if message_type == "mark_read":
                notification_id = data.get("notification_id")
                if notification_id:
                    await store.mark_notification_read(notification_id, user_id)
                else:
                    await store.mark_all_notifications_read(user_id)
                await websocket.send_json({
                    "type": "notifications_read",
                    "notification_id": notification_id,
                })

            elif message_type == "ping":
                await websocket.send_json({"type": "pong"})

            else:
                await websocket.send_json({
                    "type": "error",
                    "message": f"Tipo de mensaje no soportado: {message_type}"
                })

    except WebSocketDisconnect:
        manager.disconnect(user_id, websocket)
    except Exception as e:
        logger.error(f"Error en WebSocket de {user_id}: {e}", exc_info=True)
        manager.disconnect(user_id, websocket)
