# owntracks_recorder/services/record_log.py
import json
import logging
from datetime import datetime
from typing import List, Optional

from ..utils.timeutil import EPOCH, format_record_ts, iter_months, month_key, parse_record_ts, utcnow
from .object_store import ObjectStore

logger = logging.getLogger(__name__)

ROOT_PREFIX = "rec/"
REC_SUFFIX = ".rec"

# past this many months, list the device prefix first instead of probing each month
_PROBE_LIMIT = 12


def partition_key(user: str, device: str, month: str) -> str:
    return f"{ROOT_PREFIX}{user}/{device}/{month}{REC_SUFFIX}"


def format_line(timestamp: datetime, report: dict) -> str:
    return f"{format_record_ts(timestamp)} * {json.dumps(report, separators=(',', ':'), ensure_ascii=False)}\n"


def _unique_segment(keys: List[str], index: int) -> List[str]:
    seen = []
    for key in keys:
        parts = key.split("/")
        if len(parts) > index and parts[index] and parts[index] not in seen:
            seen.append(parts[index])
    return seen


class RecordLog:
    """Monthly append-only logs of reports, one per (user, device, month)."""

    def __init__(self, store: ObjectStore):
        self.store = store

    async def append(self, user: str, device: str, timestamp: datetime, report: dict) -> str:
        key = partition_key(user, device, month_key(timestamp))
        logger.debug("appending record to %s", key)
        await self.store.append(key, format_line(timestamp, report))
        return key

    async def read_range(self, user: str, device: str,
                         from_ts: Optional[datetime] = None,
                         to_ts: Optional[datetime] = None) -> List[dict]:
        """
        Reports of one device whose line timestamp lies in [from_ts, to_ts].

        Months are visited in calendar order and lines in file order; nothing
        is re-sorted, so backdated reports stay where they were appended.
        """
        from_ts = from_ts or EPOCH
        to_ts = to_ts or utcnow()
        months = iter_months(from_ts, to_ts)
        if len(months) > _PROBE_LIMIT:
            existing = set(await self.list_partitions(user, device))
            months = [m for m in months if f"{m}{REC_SUFFIX}" in existing]

        locations = []
        for month in months:
            key = partition_key(user, device, month)
            content = await self.store.get(key)
            if content is None:
                continue
            for line in content.split("\n"):
                if not line.strip():
                    continue
                report = self._parse_line(key, line, from_ts, to_ts)
                if report is not None:
                    locations.append(report)
        return locations

    @staticmethod
    def _parse_line(key: str, line: str, from_ts: datetime, to_ts: datetime) -> Optional[dict]:
        parts = line.split(" ", 2)
        if len(parts) < 3:
            logger.warning("skipping truncated line in %s: %.80s", key, line)
            return None
        ts_raw, _, json_raw = parts
        try:
            ts = parse_record_ts(ts_raw)
        except ValueError:
            logger.warning("skipping line with bad timestamp in %s: %.80s", key, line)
            return None
        if ts < from_ts or ts > to_ts:
            return None
        try:
            return json.loads(json_raw)
        except ValueError as e:
            logger.error("Error parsing location data in %s: %s", key, e)
            return None

    async def list_partitions(self, user: str, device: str) -> List[str]:
        keys = await self.store.list(f"{ROOT_PREFIX}{user}/{device}/")
        return [k.rsplit("/", 1)[-1] for k in keys if k.endswith(REC_SUFFIX)]

    async def list_devices(self, user: str) -> List[str]:
        keys = await self.store.list(f"{ROOT_PREFIX}{user}/")
        return _unique_segment(keys, 2)

    async def list_users(self) -> List[str]:
        keys = await self.store.list(ROOT_PREFIX)
        return _unique_segment(keys, 1)
