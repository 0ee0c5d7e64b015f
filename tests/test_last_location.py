from __future__ import annotations

import pytest

from conftest import make_report
from owntracks_recorder.exceptions import IndexConflict, NotFound
from owntracks_recorder.services.index_store import MemoryIndexStore
from owntracks_recorder.services.last_location import LastLocationIndex, select_key


class _RacingIndexStore(MemoryIndexStore):
    """Lets another writer slip in between read and compare-and-set."""

    def __init__(self, key: str, intruder: dict, races: int = 1) -> None:
        super().__init__()
        self._key = key
        self._intruder = intruder
        self._races = races

    async def put_if_version(self, key, value, expected_version):
        if key == self._key and self._races > 0:
            self._races -= 1
            current = await self.get(key) or []
            await self.put(key, current + [self._intruder])
        return await super().put_if_version(key, value, expected_version)


def test_select_key() -> None:
    assert select_key("alice", "phone") == "last:alice:phone"
    assert select_key("alice") == "last:alice"
    assert select_key() == "last:all"
    assert select_key(None, "phone") == "last:all"


@pytest.mark.asyncio
async def test_device_view_holds_only_last_report() -> None:
    index = LastLocationIndex(MemoryIndexStore())
    for tst in (100, 200, 300):
        await index.update("alice", "phone", make_report(tst=tst))

    assert await index.get("alice", "phone") == [make_report(tst=300)]


@pytest.mark.asyncio
async def test_user_view_has_one_entry_per_device() -> None:
    index = LastLocationIndex(MemoryIndexStore())
    await index.update("alice", "phone", make_report("alice", "phone", tst=1))
    await index.update("alice", "tablet", make_report("alice", "tablet", tst=2))
    await index.update("alice", "phone", make_report("alice", "phone", tst=3))
    await index.update("alice", "watch", make_report("alice", "watch", tst=4))

    view = await index.get("alice")
    assert len(view) == 3
    latest = {loc["topic"]: loc["tst"] for loc in view}
    assert latest == {"owntracks/alice/tablet": 2, "owntracks/alice/phone": 3, "owntracks/alice/watch": 4}


@pytest.mark.asyncio
async def test_global_view_distinguishes_users_with_same_device_name() -> None:
    index = LastLocationIndex(MemoryIndexStore())
    await index.update("alice", "phone", make_report("alice", "phone", tst=1))
    await index.update("bob", "phone", make_report("bob", "phone", tst=2))
    await index.update("alice", "phone", make_report("alice", "phone", tst=3))

    view = await index.get()
    assert sorted((loc["topic"], loc["tst"]) for loc in view) == [
        ("owntracks/alice/phone", 3),
        ("owntracks/bob/phone", 2),
    ]
    assert [loc["tst"] for loc in await index.get("bob")] == [2]


@pytest.mark.asyncio
async def test_ingestion_order_wins_over_tst() -> None:
    index = LastLocationIndex(MemoryIndexStore())
    await index.update("alice", "phone", make_report(tst=500))
    await index.update("alice", "phone", make_report(tst=100))

    assert (await index.get("alice", "phone"))[0]["tst"] == 100
    assert [loc["tst"] for loc in await index.get("alice")] == [100]


@pytest.mark.asyncio
async def test_entries_without_topic_are_kept() -> None:
    store = MemoryIndexStore()
    await store.put("last:alice", [{"_type": "location", "lat": 1, "lon": 1}])
    index = LastLocationIndex(store)

    await index.update("alice", "phone", make_report())

    assert len(await index.get("alice")) == 2


@pytest.mark.asyncio
async def test_get_unknown_key_raises_not_found() -> None:
    index = LastLocationIndex(MemoryIndexStore())
    with pytest.raises(NotFound):
        await index.get("nobody", "nothing")
    with pytest.raises(NotFound):
        await index.get()


@pytest.mark.asyncio
async def test_version_conflict_is_retried_and_keeps_concurrent_entry() -> None:
    tablet = make_report("alice", "tablet", tst=1)
    store = _RacingIndexStore("last:alice", tablet)
    index = LastLocationIndex(store, max_attempts=3)

    await index.update("alice", "phone", make_report("alice", "phone", tst=2))

    topics = sorted(loc["topic"] for loc in await index.get("alice"))
    assert topics == ["owntracks/alice/phone", "owntracks/alice/tablet"]


@pytest.mark.asyncio
async def test_conflict_gives_up_after_max_attempts() -> None:
    store = _RacingIndexStore("last:all", make_report("bob", "watch"), races=10)
    index = LastLocationIndex(store, max_attempts=2)

    with pytest.raises(IndexConflict) as excinfo:
        await index.update("alice", "phone", make_report())
    assert excinfo.value.key == "last:all"
    assert excinfo.value.attempts == 2


@pytest.mark.asyncio
async def test_memory_store_compare_and_set() -> None:
    store = MemoryIndexStore()
    assert await store.put_if_version("k", [1], None) is True
    assert await store.put_if_version("k", [2], None) is False
    value, version = await store.get_versioned("k")
    assert value == [1]
    assert await store.put_if_version("k", [3], version) is True
    assert await store.put_if_version("k", [4], version) is False
    assert await store.get("k") == [3]
