"""
Configuración de pytest para tests

Los tests no necesitan MongoDB: `InMemoryStore` implementa el mismo contrato
que `MongoStore` (incluida la actualización condicional de estado y el índice
único de slot_key) y se inyecta con dependency_overrides.
"""
import pytest
from copy import deepcopy
from datetime import datetime, timezone
from zoneinfo import ZoneInfo
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError

from careconnect.config import get_settings
from careconnect.db import get_store
from careconnect.security import create_access_token, get_now
from careconnect.services.lifecycle import ActorContext, BookingLifecycle, BookingRequest
from careconnect.services.notifications import Notifier
from careconnect.services.verification import VerificationProtocol
from careconnect.utils import is_object_id

TZ = ZoneInfo(get_settings().timezone)
NOW = datetime(2024, 11, 20, 10, 0, tzinfo=TZ)

REQUESTER_ID = "6500000000000000000000a1"
PROVIDER_ID = "6500000000000000000000b2"
STRANGER_ID = "6500000000000000000000c3"
OTHER_PROVIDER_ID = "6500000000000000000000d4"

# 2024-11-26 es martes (day_of_week = 2)
TUESDAY = "2024-11-26"
WEDNESDAY = "2024-11-27"


class InMemoryStore:
    def __init__(self):
        self.rules = {}
        self.plans = {}
        self.bookings = {}
        self.notifications = {}

    @staticmethod
    def _find(collection, doc_id):
        if not is_object_id(doc_id):
            return None
        doc = collection.get(ObjectId(doc_id))
        return deepcopy(doc) if doc else None

    @staticmethod
    def _insert(collection, doc):
        doc = deepcopy(doc)
        doc["_id"] = ObjectId()
        collection[doc["_id"]] = doc
        return deepcopy(doc)

    # ---------- Sembrado síncrono para los tests ----------

    def add_rule(self, provider_id, start_time, end_time, day_of_week=None, date=None):
        doc = self._insert(self.rules, {
            "provider_id": provider_id,
            "is_recurring": date is None,
            "day_of_week": day_of_week,
            "date": date,
            "start_time": start_time,
            "end_time": end_time,
            "created_at": NOW,
        })
        return str(doc["_id"])

    def add_plan(self, provider_id, hourly_rate=50.0, minimum_hours=1, active=True, category="single_session"):
        doc = self._insert(self.plans, {
            "provider_id": provider_id,
            "category": category,
            "hourly_rate": hourly_rate,
            "minimum_hours": minimum_hours,
            "description": "",
            "features": [],
            "active": active,
        })
        return str(doc["_id"])

    def add_notification(self, user_id, title="Hola", kind="new_booking", created_at=NOW):
        doc = self._insert(self.notifications, {
            "user_id": user_id,
            "type": kind,
            "title": title,
            "message": "Mensaje",
            "data": {},
            "is_read": False,
            "created_at": created_at.astimezone(timezone.utc),
        })
        return str(doc["_id"])

    def notifications_for(self, user_id):
        return [n for n in self.notifications.values() if n["user_id"] == user_id]

    # ---------- Reglas ----------

    async def list_rules(self, provider_id):
        return [deepcopy(r) for r in self.rules.values() if r["provider_id"] == provider_id]

    async def get_rule(self, rule_id):
        return self._find(self.rules, rule_id)

    async def insert_rules(self, docs):
        return [self._insert(self.rules, d) for d in docs]

    async def delete_rule(self, rule_id):
        if not is_object_id(rule_id):
            return False
        return self.rules.pop(ObjectId(rule_id), None) is not None

    async def clear_dated_rules(self, provider_id, dates):
        doomed = [
            k for k, r in self.rules.items()
            if r["provider_id"] == provider_id and not r["is_recurring"] and r["date"] in dates
        ]
        for k in doomed:
            del self.rules[k]
        return len(doomed)

    # ---------- Planes ----------

    async def list_plans(self, provider_id, active_only=False):
        return [
            deepcopy(p) for p in self.plans.values()
            if p["provider_id"] == provider_id and (p["active"] or not active_only)
        ]

    async def get_plan(self, plan_id):
        return self._find(self.plans, plan_id)

    async def insert_plan(self, doc):
        return self._insert(self.plans, doc)

    async def update_plan(self, plan_id, updates):
        if not is_object_id(plan_id) or ObjectId(plan_id) not in self.plans:
            return None
        self.plans[ObjectId(plan_id)].update(deepcopy(updates))
        return self._find(self.plans, plan_id)

    async def delete_plan(self, plan_id):
        if not is_object_id(plan_id):
            return False
        return self.plans.pop(ObjectId(plan_id), None) is not None

    # ---------- Reservas ----------

    async def insert_booking(self, doc):
        key = doc.get("slot_key")
        if key and any(b.get("slot_key") == key for b in self.bookings.values()):
            raise DuplicateKeyError(f"E11000 duplicate key error: slot_key {key}", 11000)
        return self._insert(self.bookings, doc)

    async def get_booking(self, booking_id):
        return self._find(self.bookings, booking_id)

    async def list_bookings(self, party_id, role=None, status=None):
        def belongs(b):
            if role == "requester":
                return b["requester_id"] == party_id
            if role == "provider":
                return b["provider_id"] == party_id
            return party_id in (b["requester_id"], b["provider_id"])

        found = [
            deepcopy(b) for b in self.bookings.values()
            if belongs(b) and (not status or b["status"] in status)
        ]
        return sorted(found, key=lambda b: b["date"], reverse=True)

    async def update_booking_status(self, booking_id, expected, new, now, release_slot=False, extra=None):
        if not is_object_id(booking_id):
            return None
        booking = self.bookings.get(ObjectId(booking_id))
        if booking is None or booking["status"] != expected:
            return None
        booking.update(extra or {})
        booking["status"] = new
        booking["updated_at"] = now
        if release_slot:
            booking.pop("slot_key", None)
        return deepcopy(booking)

    # ---------- Notificaciones ----------

    async def insert_notification(self, doc):
        return self._insert(self.notifications, doc)

    async def list_notifications(self, user_id, since=None):
        found = [
            deepcopy(n) for n in self.notifications.values()
            if n["user_id"] == user_id and (since is None or n["created_at"] >= since)
        ]
        return sorted(found, key=lambda n: n["created_at"], reverse=True)

    async def mark_notification_read(self, notification_id, user_id):
        if not is_object_id(notification_id):
            return None
        n = self.notifications.get(ObjectId(notification_id))
        if n is None or n["user_id"] != user_id:
            return None
        n["is_read"] = True
        return deepcopy(n)

    async def mark_all_notifications_read(self, user_id):
        count = 0
        for n in self.notifications.values():
            if n["user_id"] == user_id and not n["is_read"]:
                n["is_read"] = True
                count += 1
        return count


class BrokenNotificationStore(InMemoryStore):
    """Guarda todo salvo las notificaciones"""

    async def insert_notification(self, doc):
        raise RuntimeError("colección notifications no disponible")


class Clock:
    def __init__(self, now):
        self.now = now


def actor(user_id, now=NOW):
    return ActorContext(actor_id=user_id, now=now)


def booking_request(plan_id, dates=(TUESDAY,), **overrides):
    data = dict(
        provider_id=PROVIDER_ID,
        plan_id=plan_id,
        dates=list(dates),
        start_time="14:00",
        duration_hours=3,
        headcount=1,
    )
    data.update(overrides)
    return BookingRequest(**data)


# ---------- Núcleo ----------

@pytest.fixture
def store():
    return InMemoryStore()

@pytest.fixture
def pushed():
    """Mensajes empujados al WebSocket: (mensaje, user_id)"""
    return []

@pytest.fixture
def notifier(store, pushed):
    async def pusher(message, user_id):
        pushed.append((message, user_id))
    return Notifier(store, pusher=pusher)

@pytest.fixture
def lifecycle(store, notifier):
    return BookingLifecycle(store, notifier, get_settings())

@pytest.fixture
def verification(lifecycle, notifier):
    return VerificationProtocol(lifecycle, notifier, get_settings())

@pytest.fixture
def provider_setup(store):
    """Cuidadora disponible los martes de 09:00 a 18:00 con un plan de 50/h"""
    store.add_rule(PROVIDER_ID, "09:00", "18:00", day_of_week=2)
    return store.add_plan(PROVIDER_ID, hourly_rate=50.0)


# ---------- HTTP ----------

@pytest.fixture
def clock():
    return Clock(NOW)

@pytest.fixture
def client(store, clock):
    """Fixture para cliente de test de FastAPI"""
    from careconnect.main import app
    # Asegurar que rate limiting esté deshabilitado
    app.state.limiter = None
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_now] = lambda: clock.now
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def auth():
    """auth(user_id) -> cabeceras con un JWT válido"""
    def _headers(user_id):
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}
    return _headers
