# owntracks_recorder/services/query.py
import logging
from datetime import datetime
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query

from .. import config
from ..db import get_index_store, get_object_store
from ..models import ErrorResponse, ListResults, LocationsResponse, VersionResponse
from ..utils.timeutil import EPOCH, parse_query_date, utcnow
from .index_store import IndexStore
from .last_location import LastLocationIndex
from .object_store import ObjectStore
from .record_log import RecordLog

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/api/0", tags=["query"])


class QueryService:
    """Read side: range reads and inventory over the logs, last-location lookups."""

    def __init__(self, record_log: RecordLog, last_locations: LastLocationIndex):
        self.record_log = record_log
        self.last_locations = last_locations

    async def get_locations(self, user: str, device: str,
                            from_ts: Optional[datetime] = None,
                            to_ts: Optional[datetime] = None) -> List[dict]:
        return await self.record_log.read_range(user, device, from_ts, to_ts)

    async def list_inventory(self, user: Optional[str] = None,
                             device: Optional[str] = None) -> Union[List[str], ListResults]:
        if user and device:
            return await self.record_log.list_partitions(user, device)
        if user:
            return ListResults(results=await self.record_log.list_devices(user))
        return ListResults(results=await self.record_log.list_users())

    async def last_locations_for(self, user: Optional[str] = None, device: Optional[str] = None,
                                 fields: Optional[List[str]] = None) -> list:
        if fields:
            # accepted for client compatibility, no projection is applied
            logger.debug("ignoring fields=%s on last-location lookup", ",".join(fields))
        return await self.last_locations.get(user, device)


def get_query_service(object_store: ObjectStore = Depends(get_object_store),
                      index_store: IndexStore = Depends(get_index_store)) -> QueryService:
    return QueryService(
        RecordLog(object_store),
        LastLocationIndex(index_store, max_attempts=config.INDEX_MAX_ATTEMPTS),
    )


@router.get("/locations", response_model=LocationsResponse, responses={400: {"model": ErrorResponse}})
async def get_locations(user: Optional[str] = None, device: Optional[str] = None,
                        from_: Optional[str] = Query(None, alias="from"), to: Optional[str] = None,
                        service: QueryService = Depends(get_query_service)):
    if not user or not device:
        raise HTTPException(status_code=400, detail="User and device parameters are required")
    try:
        from_ts = parse_query_date(from_, EPOCH)
        to_ts = parse_query_date(to, utcnow())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    data = await service.get_locations(user, device, from_ts, to_ts)
    return LocationsResponse(data=data)


@router.get("/list")
async def list_data(user: Optional[str] = None, device: Optional[str] = None,
                    service: QueryService = Depends(get_query_service)):
    return await service.list_inventory(user, device)


@router.get("/version", response_model=VersionResponse)
async def version():
    return VersionResponse(version=config.API_VERSION)


@router.get("/last", responses={404: {"model": ErrorResponse}})
async def last_location(user: Optional[str] = None, device: Optional[str] = None,
                        fields: Optional[str] = None,
                        service: QueryService = Depends(get_query_service)):
    field_list = [f.strip() for f in fields.split(",") if f.strip()] if fields else None
    return await service.last_locations_for(user, device, field_list)
