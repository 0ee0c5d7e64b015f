# owntracks_recorder/services/ingest.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from .. import config
from ..db import get_index_store, get_object_store
from ..exceptions import InternalError, InvalidPayload, StorageError
from ..utils.locks import KeyedLock
from ..utils.timeutil import from_tst, utcnow
from ..utils.validators import is_location, parse_topic, require_coordinates
from .index_store import IndexStore
from .last_location import LastLocationIndex
from .object_store import ObjectStore
from .record_log import RecordLog

logger = logging.getLogger("uvicorn.error")

router = APIRouter(tags=["ingest"])

# same-device writers run one at a time within this process
device_locks = KeyedLock()


class IngestionCoordinator:
    """Validate a report, refresh the last-location views, append it to its log."""

    def __init__(self, record_log: RecordLog, last_locations: LastLocationIndex,
                 locks: Optional[KeyedLock] = None, clock=utcnow):
        self.record_log = record_log
        self.last_locations = last_locations
        self.locks = locks if locks is not None else device_locks
        self.clock = clock

    def resolve_timestamp(self, payload: dict):
        tst = payload.get("tst")
        if not tst:
            return self.clock()
        try:
            return from_tst(tst)
        except (TypeError, ValueError, OverflowError, OSError):
            raise InvalidPayload(f"Invalid tst {tst!r}")

    async def ingest(self, payload) -> list:
        if not isinstance(payload, dict) or not is_location(payload):
            # other OwnTracks message types are accepted and dropped
            return []
        require_coordinates(payload)
        user, device = parse_topic(payload)
        timestamp = self.resolve_timestamp(payload)

        failed = []
        async with self.locks.hold((user, device)):
            try:
                await self.last_locations.update(user, device, payload)
            except StorageError:
                logger.exception("Error updating last locations for %s/%s", user, device)
                failed.append("index")
            try:
                await self.record_log.append(user, device, timestamp, payload)
            except StorageError:
                logger.exception("Error appending record for %s/%s", user, device)
                failed.append("log")

        if failed:
            raise InternalError(f"ingest of {user}/{device} failed at: {', '.join(failed)}")
        return []


def get_coordinator(object_store: ObjectStore = Depends(get_object_store),
                    index_store: IndexStore = Depends(get_index_store)) -> IngestionCoordinator:
    return IngestionCoordinator(
        RecordLog(object_store),
        LastLocationIndex(index_store, max_attempts=config.INDEX_MAX_ATTEMPTS),
    )


# POST / - OwnTracks HTTP mode endpoint
@router.post("/")
async def receive_report(request: Request, coordinator: IngestionCoordinator = Depends(get_coordinator)):
    try:
        payload = await request.json()
    except ValueError:
        raise InvalidPayload("Request body is not valid JSON")
    # empty list tells the app there is nothing to push back
    return await coordinator.ingest(payload)
