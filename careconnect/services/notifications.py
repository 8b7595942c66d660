"""
Despacho de notificaciones (eventos de ciclo de vida y alertas de seguridad).

Es "fire-and-forget" para el núcleo: un fallo al guardar o al enviar por
WebSocket se registra y se descarta, nunca deshace una transición.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional
import logging

from ..store import Store
from ..utils import to_id

logger = logging.getLogger(__name__)

# Tipos de evento
NEW_BOOKING = "new_booking"
BOOKING_ACCEPTED = "booking_accepted"
BOOKING_DECLINED = "booking_declined"
BOOKING_CANCELLED = "booking_cancelled"
PAYMENT_CONFIRMED = "payment_confirmed"
SESSION_STARTED = "session_started"
SESSION_COMPLETED = "session_completed"
SCAN_MISMATCH = "scan_mismatch"

Pusher = Callable[[dict, str], Awaitable[None]]


@dataclass
class LifecycleEvent:
    recipient_id: str
    kind: str
    title: str
    body: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class Notifier:
    """
    Guarda la notificación en `notifications` y la empuja al WebSocket del
    destinatario si está conectado.
    """

    def __init__(self, store: Store, pusher: Optional[Pusher] = None):
        self.store = store
        self.pusher = pusher

    async def dispatch(
        self,
        recipient_id: str,
        kind: str,
        title: str,
        body: str,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        now: datetime,
    ) -> Optional[dict]:
        doc = {
            "user_id": recipient_id,
            "type": kind,
            "title": title,
            "message": body,
            "data": dict(metadata or {}),
            "is_read": False,
            "created_at": now.astimezone(timezone.utc),
        }
        try:
            saved = await self.store.insert_notification(doc)
        except Exception as e:
            logger.error(f"No se pudo guardar la notificación {kind} para {recipient_id}: {e}", exc_info=True)
            return None

        out = to_id(saved)
        if self.pusher is not None:
            try:
                await self.pusher({"type": "notification", "notification": out}, recipient_id)
            except Exception as e:
                logger.error(f"No se pudo enviar {kind} por WebSocket a {recipient_id}: {e}", exc_info=True)
        return out

    async def emit(self, event: LifecycleEvent, now: datetime) -> Optional[dict]:
        return await self.dispatch(event.recipient_id, event.kind, event.title, event.body, event.metadata, now=now)
