# owntracks_recorder/services/last_location.py
import logging
from typing import Callable, Optional

from ..exceptions import IndexConflict, NotFound
from ..utils.validators import split_topic
from .index_store import IndexStore

logger = logging.getLogger(__name__)

GLOBAL_KEY = "last:all"


def device_key(user: str, device: str) -> str:
    return f"last:{user}:{device}"


def user_key(user: str) -> str:
    return f"last:{user}"


def select_key(user: Optional[str] = None, device: Optional[str] = None) -> str:
    if user and device:
        return device_key(user, device)
    if user:
        return user_key(user)
    return GLOBAL_KEY


class LastLocationIndex:
    """
    Latest report per device, kept at three scopes:

    - ``last:<user>:<device>``: ``[report]``
    - ``last:<user>``: one report per device of the user
    - ``last:all``: one report per (user, device)

    "Latest" means most recently ingested, not highest ``tst``.
    """

    def __init__(self, store: IndexStore, max_attempts: int = 5):
        self.store = store
        self.max_attempts = max(1, max_attempts)

    async def update(self, user: str, device: str, report: dict) -> None:
        await self.store.put(device_key(user, device), [report])

        def other_devices(loc) -> bool:
            parsed = split_topic(loc.get("topic")) if isinstance(loc, dict) else None
            return parsed is None or parsed[1] != device

        def other_pairs(loc) -> bool:
            parsed = split_topic(loc.get("topic")) if isinstance(loc, dict) else None
            return parsed is None or parsed != (user, device)

        await self._replace_entry(user_key(user), other_devices, report)
        await self._replace_entry(GLOBAL_KEY, other_pairs, report)

    async def _replace_entry(self, key: str, keep: Callable[[dict], bool], report: dict) -> None:
        # optimistic read-filter-append-write, repeated while another writer wins the race
        for attempt in range(1, self.max_attempts + 1):
            current, version = await self.store.get_versioned(key)
            entries = [loc for loc in (current or []) if keep(loc)]
            entries.append(report)
            if await self.store.put_if_version(key, entries, version):
                return
            logger.info("version conflict on %s (attempt %d/%d)", key, attempt, self.max_attempts)
        raise IndexConflict(key, self.max_attempts)

    async def get(self, user: Optional[str] = None, device: Optional[str] = None) -> list:
        key = select_key(user, device)
        value = await self.store.get(key)
        if value is None:
            raise NotFound("No location data found")
        return value
