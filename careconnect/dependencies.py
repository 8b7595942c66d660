# careconnect/dependencies.py
from fastapi import Depends

from .config import get_settings
from .db import get_store
from .store import Store
from .services.lifecycle import BookingLifecycle
from .services.notifications import Notifier
from .services.verification import VerificationProtocol

# Importación diferida para evitar import circular con el router de WebSocket
def get_websocket_manager():
    from .routers.websocket import manager
    return manager

async def get_notifier(store: Store = Depends(get_store)) -> Notifier:
    return Notifier(store, pusher=get_websocket_manager().send_personal_message)

async def get_lifecycle(
    store: Store = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
) -> BookingLifecycle:
    return BookingLifecycle(store, notifier, get_settings())

async def get_verification(
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
    notifier: Notifier = Depends(get_notifier),
) -> VerificationProtocol:
    return VerificationProtocol(lifecycle, notifier, get_settings())
