# owntracks_recorder/services/object_store.py
import asyncio
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pymongo.errors import PyMongoError

from ..exceptions import StorageError


class ObjectStore:
    """Text blobs addressed by slash-separated keys (log partitions)."""

    name = "abstract"

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def put(self, key: str, body: str) -> None:
        raise NotImplementedError

    async def append(self, key: str, data: str) -> None:
        """Append ``data`` to the blob at ``key``, creating it if missing."""
        raise NotImplementedError

    async def list(self, prefix: str) -> List[str]:
        """Return every key starting with ``prefix``, sorted."""
        raise NotImplementedError


class MemoryObjectStore(ObjectStore):
    name = "memory"

    def __init__(self):
        self._blobs: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    async def put(self, key: str, body: str) -> None:
        self._blobs[key] = body

    async def append(self, key: str, data: str) -> None:
        async with self._lock:
            content = await self.get(key) or ""
            content += data
            await self.put(key, content)

    async def list(self, prefix: str) -> List[str]:
        return sorted(k for k in self._blobs if k.startswith(prefix))


class MongoObjectStore(ObjectStore):
    """Blobs stored as ``{_id: key, body, content_type, updated_at}`` documents."""

    name = "mongo"

    def __init__(self, collection):
        self._coll = collection

    async def get(self, key: str) -> Optional[str]:
        try:
            doc = await self._coll.find_one({"_id": key}, {"body": 1})
        except PyMongoError as e:
            raise StorageError(f"get {key} failed: {e}") from e
        if not doc:
            return None
        return doc.get("body") or ""

    async def put(self, key: str, body: str) -> None:
        try:
            await self._coll.replace_one(
                {"_id": key},
                {"_id": key, "body": body, "content_type": "text/plain",
                 "updated_at": datetime.now(timezone.utc)},
                upsert=True,
            )
        except PyMongoError as e:
            raise StorageError(f"put {key} failed: {e}") from e

    async def append(self, key: str, data: str) -> None:
        # server-side concat: the partition is never read back by the app
        try:
            await self._coll.update_one(
                {"_id": key},
                [{"$set": {
                    "body": {"$concat": [{"$ifNull": ["$body", ""]}, data]},
                    "content_type": "text/plain",
                    "updated_at": "$$NOW",
                }}],
                upsert=True,
            )
        except PyMongoError as e:
            raise StorageError(f"append {key} failed: {e}") from e

    async def list(self, prefix: str) -> List[str]:
        try:
            cursor = self._coll.find({"_id": {"$regex": "^" + re.escape(prefix)}}, {"_id": 1}).sort("_id", 1)
            docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            raise StorageError(f"list {prefix} failed: {e}") from e
        return [d["_id"] for d in docs]
