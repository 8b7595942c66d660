# careconnect/routers/notifications.py
from fastapi import APIRouter, Depends, HTTPException
from typing import List
from datetime import datetime, timedelta, timezone

from ..db import get_store
from ..store import Store
from ..security import get_current_user_id, get_now
from ..schemas.notification import NotificationOut
from ..utils import to_id

router = APIRouter()

@router.get("/mine", response_model=List[NotificationOut])
async def list_my_notifications(
    store: Store = Depends(get_store),
    current_id: str = Depends(get_current_user_id),
):
    """Notificaciones del usuario, las más recientes primero"""
    return [to_id(d) for d in await store.list_notifications(current_id)]

@router.get("/recent", response_model=List[NotificationOut])
async def list_recent_notifications(
    store: Store = Depends(get_store),
    current_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
):
    """Últimas 24 horas"""
    since = now.astimezone(timezone.utc) - timedelta(hours=24)
    return [to_id(d) for d in await store.list_notifications(current_id, since=since)]

@router.post("/read-all")
async def mark_all_read(
    store: Store = Depends(get_store),
    current_id: str = Depends(get_current_user_id),
):
    updated = await store.mark_all_notifications_read(current_id)
    return {"updated": updated}

@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: str,
    store: Store = Depends(get_store),
    current_id: str = Depends(get_current_user_id),
):
    doc = await store.mark_notification_read(notification_id, current_id)
    if not doc:
        raise HTTPException(404, "Notificación no encontrada")
    return to_id(doc)
