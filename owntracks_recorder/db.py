# owntracks_recorder/db.py
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient

from . import config
from .services.index_store import IndexStore, MemoryIndexStore, MongoIndexStore
from .services.object_store import MemoryObjectStore, MongoObjectStore, ObjectStore

logger = logging.getLogger("uvicorn.error")

client: Optional[AsyncIOMotorClient] = None
_object_store: Optional[ObjectStore] = None
_index_store: Optional[IndexStore] = None


def _connect():
    global client
    if client is None:
        if not config.MONGO_URI:
            raise RuntimeError("MONGO_URI not set in .env but STORAGE_BACKEND is 'mongo'")
        # Fail fast if the server isn't reachable (tunable)
        client = AsyncIOMotorClient(config.MONGO_URI, serverSelectionTimeoutMS=5000)
    return client[config.MONGO_DBNAME]


def init_stores():
    """Build the store singletons for the configured backend (idempotent)."""
    global _object_store, _index_store
    if _object_store is not None and _index_store is not None:
        return _object_store, _index_store

    if config.STORAGE_BACKEND == "mongo":
        db = _connect()
        _object_store = MongoObjectStore(db["recs"])
        _index_store = MongoIndexStore(db["last_locations"])
    elif config.STORAGE_BACKEND == "memory":
        logger.warning("Using in-memory storage; recorded data is lost on restart.")
        _object_store = MemoryObjectStore()
        _index_store = MemoryIndexStore()
    else:
        raise RuntimeError(f"Unknown STORAGE_BACKEND {config.STORAGE_BACKEND!r} (expected 'mongo' or 'memory')")
    return _object_store, _index_store


# FastAPI dependencies; tests swap these through app.dependency_overrides
def get_object_store() -> ObjectStore:
    return init_stores()[0]


def get_index_store() -> IndexStore:
    return init_stores()[1]


async def ping_db() -> bool:
    """
    Ping the MongoDB server. Returns True if reachable (or not using MongoDB),
    False otherwise.
    """
    if config.STORAGE_BACKEND != "mongo":
        return True
    try:
        await _connect().command("ping")
        return True
    except Exception as e:
        logger.error("MongoDB ping failed: %s", e)
        return False


def close_client():
    """Close the underlying motor client (useful in tests or shutdown)."""
    global client, _object_store, _index_store
    if client is not None:
        client.close()
    client = None
    _object_store = None
    _index_store = None
