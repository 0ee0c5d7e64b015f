# owntracks_recorder/services/index_store.py
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from pymongo.errors import DuplicateKeyError, PyMongoError

from ..exceptions import StorageError


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _loads(key: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise StorageError(f"value at {key} is not valid JSON: {e}") from e


class IndexStore:
    """Small JSON values by string key, with a per-key version counter.

    ``put_if_version`` is the compare-and-set primitive: it writes only when
    the stored version still equals ``expected_version`` (``None`` meaning the
    key must not exist) and reports whether it did.
    """

    name = "abstract"

    async def get_versioned(self, key: str) -> Tuple[Optional[Any], Optional[int]]:
        raise NotImplementedError

    async def put(self, key: str, value: Any) -> None:
        raise NotImplementedError

    async def put_if_version(self, key: str, value: Any, expected_version: Optional[int]) -> bool:
        raise NotImplementedError

    async def get(self, key: str) -> Optional[Any]:
        value, _ = await self.get_versioned(key)
        return value


class MemoryIndexStore(IndexStore):
    name = "memory"

    def __init__(self):
        self._data: Dict[str, Tuple[str, int]] = {}

    async def get_versioned(self, key: str) -> Tuple[Optional[Any], Optional[int]]:
        entry = self._data.get(key)
        if entry is None:
            return None, None
        raw, version = entry
        return _loads(key, raw), version

    async def put(self, key: str, value: Any) -> None:
        entry = self._data.get(key)
        version = entry[1] + 1 if entry else 1
        self._data[key] = (_dumps(value), version)

    async def put_if_version(self, key: str, value: Any, expected_version: Optional[int]) -> bool:
        entry = self._data.get(key)
        current = entry[1] if entry else None
        if current != expected_version:
            return False
        self._data[key] = (_dumps(value), (current or 0) + 1)
        return True


class MongoIndexStore(IndexStore):
    """Values stored as ``{_id: key, value: <json text>, version, updated_at}``."""

    name = "mongo"

    def __init__(self, collection):
        self._coll = collection

    async def get_versioned(self, key: str) -> Tuple[Optional[Any], Optional[int]]:
        try:
            doc = await self._coll.find_one({"_id": key})
        except PyMongoError as e:
            raise StorageError(f"get {key} failed: {e}") from e
        if not doc:
            return None, None
        return _loads(key, doc.get("value")), int(doc.get("version") or 0)

    async def put(self, key: str, value: Any) -> None:
        try:
            await self._coll.update_one(
                {"_id": key},
                {"$set": {"value": _dumps(value), "updated_at": datetime.now(timezone.utc)},
                 "$inc": {"version": 1}},
                upsert=True,
            )
        except PyMongoError as e:
            raise StorageError(f"put {key} failed: {e}") from e

    async def put_if_version(self, key: str, value: Any, expected_version: Optional[int]) -> bool:
        now = datetime.now(timezone.utc)
        try:
            if expected_version is None:
                await self._coll.insert_one({"_id": key, "value": _dumps(value), "version": 1, "updated_at": now})
                return True
            res = await self._coll.update_one(
                {"_id": key, "version": expected_version},
                {"$set": {"value": _dumps(value), "updated_at": now}, "$inc": {"version": 1}},
            )
        except DuplicateKeyError:
            return False
        except PyMongoError as e:
            raise StorageError(f"put {key} failed: {e}") from e
        return res.matched_count == 1
