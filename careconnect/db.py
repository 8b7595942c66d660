from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from .config import get_settings
from .store import MongoStore

_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None

async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        settings = get_settings()
        _client = AsyncIOMotorClient(settings.mongodb_uri)
        _db = _client[settings.db_name]
        await _db.availability_rules.create_index([("provider_id", 1), ("is_recurring", 1)])
        await _db.availability_rules.create_index([("provider_id", 1), ("date", 1)])
        await _db.service_plans.create_index([("provider_id", 1), ("active", 1)])
        await _db.bookings.create_index([("requester_id", 1), ("provider_id", 1)])
        await _db.bookings.create_index([("provider_id", 1), ("date", 1), ("status", 1)])
        # Solo las reservas vivas llevan slot_key; evita dos reservas con el mismo inicio
        await _db.bookings.create_index("slot_key", unique=True, sparse=True)
        await _db.notifications.create_index([("user_id", 1), ("created_at", -1)])
        await _db.notifications.create_index([("user_id", 1), ("is_read", 1)])
    return _db

async def get_store() -> MongoStore:
    return MongoStore(await get_db())
