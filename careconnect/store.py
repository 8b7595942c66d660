# careconnect/store.py
"""
Acceso a datos del núcleo.

`Store` es el contrato que necesitan los servicios (reglas, planes, reservas y
notificaciones). `MongoStore` lo implementa sobre Motor; los tests usan una
implementación en memoria.

Los documentos se devuelven tal cual salen de MongoDB (con `_id` ObjectId);
la conversión a salida HTTP la hace `utils.to_id`.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from .utils import is_object_id

Doc = Dict[str, Any]


def slot_key(provider_id: str, date: str, start_time: str) -> str:
    """Clave de unicidad (cuidador, fecha, hora de inicio) de una reserva viva."""
    return f"{provider_id}|{date}|{start_time}"


class Store(Protocol):
    # Reglas de disponibilidad
    async def list_rules(self, provider_id: str) -> List[Doc]: ...
    async def get_rule(self, rule_id: str) -> Optional[Doc]: ...
    async def insert_rules(self, docs: List[Doc]) -> List[Doc]: ...
    async def delete_rule(self, rule_id: str) -> bool: ...
    async def clear_dated_rules(self, provider_id: str, dates: List[str]) -> int: ...

    # Planes de servicio
    async def list_plans(self, provider_id: str, active_only: bool = False) -> List[Doc]: ...
    async def get_plan(self, plan_id: str) -> Optional[Doc]: ...
    async def insert_plan(self, doc: Doc) -> Doc: ...
    async def update_plan(self, plan_id: str, updates: Doc) -> Optional[Doc]: ...
    async def delete_plan(self, plan_id: str) -> bool: ...

    # Reservas
    async def insert_booking(self, doc: Doc) -> Doc: ...
    async def get_booking(self, booking_id: str) -> Optional[Doc]: ...
    async def list_bookings(self, party_id: str, role: Optional[str] = None,
                            status: Optional[List[str]] = None) -> List[Doc]: ...
    async def update_booking_status(self, booking_id: str, expected: str, new: str,
                                    now: datetime, release_slot: bool = False,
                                    extra: Optional[Doc] = None) -> Optional[Doc]: ...

    # Notificaciones
    async def insert_notification(self, doc: Doc) -> Doc: ...
    async def list_notifications(self, user_id: str, since: Optional[datetime] = None) -> List[Doc]: ...
    async def mark_notification_read(self, notification_id: str, user_id: str) -> Optional[Doc]: ...
    async def mark_all_notifications_read(self, user_id: str) -> int: ...


def _oid(value: str) -> Optional[ObjectId]:
    return ObjectId(value) if is_object_id(value) else None


class MongoStore:
    """Implementación de `Store` sobre Motor"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    # ---------- Reglas ----------

    async def list_rules(self, provider_id: str) -> List[Doc]:
        return await self.db.availability_rules.find({"provider_id": provider_id}).sort("created_at", 1).to_list(1000)

    async def get_rule(self, rule_id: str) -> Optional[Doc]:
        oid = _oid(rule_id)
        if oid is None:
            return None
        return await self.db.availability_rules.find_one({"_id": oid})

    async def insert_rules(self, docs: List[Doc]) -> List[Doc]:
        if not docs:
            return []
        res = await self.db.availability_rules.insert_many(docs)
        return await self.db.availability_rules.find({"_id": {"$in": res.inserted_ids}}).to_list(len(docs))

    async def delete_rule(self, rule_id: str) -> bool:
        oid = _oid(rule_id)
        if oid is None:
            return False
        res = await self.db.availability_rules.delete_one({"_id": oid})
        return res.deleted_count == 1

    async def clear_dated_rules(self, provider_id: str, dates: List[str]) -> int:
        if not dates:
            return 0
        res = await self.db.availability_rules.delete_many({
            "provider_id": provider_id,
            "is_recurring": False,
            "date": {"$in": dates},
        })
        return res.deleted_count

    # ---------- Planes ----------

    async def list_plans(self, provider_id: str, active_only: bool = False) -> List[Doc]:
        q: Doc = {"provider_id": provider_id}
        if active_only:
            q["active"] = True
        return await self.db.service_plans.find(q).sort("category", 1).to_list(200)

    async def get_plan(self, plan_id: str) -> Optional[Doc]:
        oid = _oid(plan_id)
        if oid is None:
            return None
        return await self.db.service_plans.find_one({"_id": oid})

    async def insert_plan(self, doc: Doc) -> Doc:
        res = await self.db.service_plans.insert_one(doc)
        return await self.db.service_plans.find_one({"_id": res.inserted_id})

    async def update_plan(self, plan_id: str, updates: Doc) -> Optional[Doc]:
        oid = _oid(plan_id)
        if oid is None:
            return None
        return await self.db.service_plans.find_one_and_update(
            {"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )

    async def delete_plan(self, plan_id: str) -> bool:
        oid = _oid(plan_id)
        if oid is None:
            return False
        res = await self.db.service_plans.delete_one({"_id": oid})
        return res.deleted_count == 1

    # ---------- Reservas ----------

    async def insert_booking(self, doc: Doc) -> Doc:
        # DuplicateKeyError (índice único sobre slot_key) se propaga al llamador
        res = await self.db.bookings.insert_one(doc)
        return await self.db.bookings.find_one({"_id": res.inserted_id})

    async def get_booking(self, booking_id: str) -> Optional[Doc]:
        oid = _oid(booking_id)
        if oid is None:
            return None
        return await self.db.bookings.find_one({"_id": oid})

    async def list_bookings(self, party_id: str, role: Optional[str] = None,
                            status: Optional[List[str]] = None) -> List[Doc]:
        if role == "requester":
            q: Doc = {"requester_id": party_id}
        elif role == "provider":
            q = {"provider_id": party_id}
        else:
            q = {"$or": [{"requester_id": party_id}, {"provider_id": party_id}]}
        if status:
            q["status"] = {"$in": status}
        return await self.db.bookings.find(q).sort("date", -1).to_list(500)

    async def update_booking_status(self, booking_id: str, expected: str, new: str,
                                    now: datetime, release_slot: bool = False,
                                    extra: Optional[Doc] = None) -> Optional[Doc]:
        """
        Actualización condicional: solo aplica si el estado sigue siendo `expected`.
        `extra` añade campos al mismo `$set` (p. ej. `started_at`).
        Devuelve el documento actualizado o None si otro escritor llegó antes.
        """
        oid = _oid(booking_id)
        if oid is None:
            return None
        update: Doc = {"$set": {**(extra or {}), "status": new, "updated_at": now}}
        if release_slot:
            update["$unset"] = {"slot_key": ""}
        return await self.db.bookings.find_one_and_update(
            {"_id": oid, "status": expected}, update, return_document=ReturnDocument.AFTER
        )

    # ---------- Notificaciones ----------

    async def insert_notification(self, doc: Doc) -> Doc:
        res = await self.db.notifications.insert_one(doc)
        return await self.db.notifications.find_one({"_id": res.inserted_id})

    async def list_notifications(self, user_id: str, since: Optional[datetime] = None) -> List[Doc]:
        q: Doc = {"user_id": user_id}
        if since is not None:
            q["created_at"] = {"$gte": since}
        return await self.db.notifications.find(q).sort("created_at", -1).to_list(200)

    async def mark_notification_read(self, notification_id: str, user_id: str) -> Optional[Doc]:
        oid = _oid(notification_id)
        if oid is None:
            return None
        return await self.db.notifications.find_one_and_update(
            {"_id": oid, "user_id": user_id},
            {"$set": {"is_read": True}},
            return_document=ReturnDocument.AFTER,
        )

    async def mark_all_notifications_read(self, user_id: str) -> int:
        res = await self.db.notifications.update_many(
            {"user_id": user_id, "is_read": False}, {"$set": {"is_read": True}}
        )
        return res.modified_count
