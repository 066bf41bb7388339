import asyncio
import json

import httpx
import pytest

from miniapp.core.exceptions import (
    DatabaseError,
    PersistenceError,
    SnapshotUnavailableError,
    ValidationError,
)
from miniapp.models.catalog import Snapshot
from miniapp.services.config_store import ConfigStore, LoadSource, SaveOutcome
from miniapp.services.remote_config import RemoteConfigClient, RemoteStatus


class BrokenCache:
    """Cache whose writes always fail"""

    def __init__(self, cache):
        self._cache = cache

    def read(self):
        return self._cache.read()

    def write(self, payload):
        raise DatabaseError("disk full")

    def clear(self):
        self._cache.clear()

    def log_action(self, actor, action, detail):
        self._cache.log_action(actor, action, detail)


class RecordingCache:
    """Cache that records which snapshot each write carried"""

    def __init__(self, cache, events):
        self._cache = cache
        self.events = events

    def read(self):
        return self._cache.read()

    def write(self, payload):
        self.events.append(("cache", json.loads(payload)["restaurant"]["name"]))
        self._cache.write(payload)

    def clear(self):
        self._cache.clear()

    def log_action(self, actor, action, detail):
        self._cache.log_action(actor, action, detail)


class UnclearableCache:
    """Cache holding a malformed payload that cannot be cleared"""

    def read(self):
        return "{broken"

    def clear(self):
        raise DatabaseError("database is locked")


class HeldRemote:
    """Remote endpoint that holds the first push until released"""

    def __init__(self, events):
        self.events = events
        self.pushed = None
        self.release = None

    def arm(self):
        self.pushed = asyncio.Event()
        self.release = asyncio.Event()

    async def handler(self, request):
        name = json.loads(request.content)["restaurant"]["name"]
        self.events.append(("push", name))
        if not self.pushed.is_set():
            self.pushed.set()
            await self.release.wait()
        self.events.append(("pushed", name))
        return httpx.Response(200, json={"success": True, "persisted": True, "message": "Configuration saved"})


def held_store(cache, snapshot, settings):
    events = []
    held = HeldRemote(events)
    remote = RemoteConfigClient(transport=httpx.MockTransport(held.handler), settings=settings)
    store = ConfigStore(RecordingCache(cache, events), remote)
    store.replace(snapshot)
    return store, held


async def save_twice(store, held):
    """Start a second save while the first one is held at the remote push"""
    held.arm()
    first = store.snapshot.model_copy(deep=True)
    first.restaurant["name"] = "first"
    second = store.snapshot.model_copy(deep=True)
    second.restaurant["name"] = "second"

    first_save = asyncio.create_task(store.save(first))
    await asyncio.wait_for(held.pushed.wait(), timeout=5)
    second_save = asyncio.create_task(store.save(second))
    for _ in range(20):
        await asyncio.sleep(0)
    while_held = list(held.events)

    held.release.set()
    results = await asyncio.gather(first_save, second_save)
    return while_held, results


@pytest.mark.asyncio
async def test_load_prefers_remote(store, stored_config, cache, sample_snapshot):
    cache.write(json.dumps({"stale": True}))

    snapshot = await store.load()

    assert store.last_load_source == LoadSource.REMOTE
    assert snapshot.to_json() == sample_snapshot.to_json()


@pytest.mark.asyncio
async def test_load_falls_back_to_cache(cache, offline_remote, sample_snapshot):
    cache.write(sample_snapshot.to_json())
    store = ConfigStore(cache, offline_remote)

    snapshot = await store.load()

    assert store.last_load_source == LoadSource.CACHE
    assert snapshot.to_json() == sample_snapshot.to_json()


@pytest.mark.asyncio
async def test_load_falls_back_when_remote_has_nothing(store, cache, sample_snapshot):
    cache.write(sample_snapshot.to_json())

    await store.load()

    assert store.last_load_source == LoadSource.CACHE


@pytest.mark.asyncio
async def test_load_falls_back_on_invalid_remote_snapshot(cache, sample_config, sample_snapshot, test_settings):
    invalid = dict(sample_config)
    del invalid["admin"]
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=invalid))
    remote = RemoteConfigClient(transport=transport, settings=test_settings)
    cache.write(sample_snapshot.to_json())

    await ConfigStore(cache, remote).load()

    assert cache.read() == sample_snapshot.to_json()


@pytest.mark.asyncio
async def test_load_discards_malformed_cache(cache, offline_remote):
    cache.write("{broken")
    store = ConfigStore(cache, offline_remote)

    with pytest.raises(SnapshotUnavailableError):
        await store.load()
    assert cache.read() is None
    assert not store.is_loaded


@pytest.mark.asyncio
async def test_load_with_no_source(cache):
    with pytest.raises(SnapshotUnavailableError):
        await ConfigStore(cache).load()


def test_snapshot_before_load(cache):
    with pytest.raises(SnapshotUnavailableError):
        ConfigStore(cache).snapshot


@pytest.mark.asyncio
async def test_save_fully_saved(store, stored_config, repository, cache):
    snapshot = await store.load()

    result = await store.save()

    assert result.outcome == SaveOutcome.FULLY_SAVED
    assert result.cache_ok and result.remote_ok
    assert cache.read() == snapshot.to_json()
    assert Snapshot.from_wire(repository.read()).to_json() == snapshot.to_json()


@pytest.mark.asyncio
async def test_save_load_is_byte_stable(store, stored_config, repository):
    before = repository.path.read_text(encoding="utf-8")

    await store.save(await store.load())

    assert repository.path.read_text(encoding="utf-8") == before


@pytest.mark.asyncio
async def test_save_with_remote_down_then_reload_from_cache(cache, offline_remote, sample_snapshot):
    store = ConfigStore(cache, offline_remote)
    edited = sample_snapshot.model_copy(deep=True)
    edited.restaurant["name"] = "Chez Test 2"

    result = await store.save(edited)

    assert result.cache_ok is True
    assert result.remote_ok is False
    assert result.remote_status == RemoteStatus.FAILED
    assert result.outcome == SaveOutcome.SAVED_LOCALLY
    assert result.degraded

    reloaded = await ConfigStore(cache, offline_remote).load()
    assert reloaded.restaurant["name"] == "Chez Test 2"


@pytest.mark.asyncio
async def test_save_read_only_remote(cache, sample_snapshot, test_settings):
    def read_only(request):
        return httpx.Response(503, json={
            "success": False,
            "persisted": False,
            "error_code": "CONFIG_NOT_PERSISTED",
            "message": "Configuration validated but could not be persisted",
        })

    remote = RemoteConfigClient(transport=httpx.MockTransport(read_only), settings=test_settings)

    result = await ConfigStore(cache, remote).save(sample_snapshot)

    assert result.remote_status == RemoteStatus.NOT_PERSISTED
    assert result.outcome == SaveOutcome.SAVED_LOCALLY
    assert "read-only" in result.message


@pytest.mark.asyncio
async def test_save_without_remote(loaded_store):
    result = await loaded_store.save()

    assert result.remote_status == RemoteStatus.DISABLED
    assert result.outcome == SaveOutcome.SAVED_LOCALLY


@pytest.mark.asyncio
async def test_cache_failure_saves_nothing(cache, remote, stored_config, repository, sample_snapshot):
    store = ConfigStore(BrokenCache(cache), remote)
    before = repository.path.read_text(encoding="utf-8")
    edited = sample_snapshot.model_copy(deep=True)
    edited.restaurant["name"] = "Never saved"

    with pytest.raises(PersistenceError) as exc_info:
        await store.save(edited)

    assert exc_info.value.details["outcome"] == SaveOutcome.NOTHING_SAVED.value
    assert repository.path.read_text(encoding="utf-8") == before


@pytest.mark.asyncio
async def test_invalid_snapshot_is_not_saved(loaded_store, cache):
    broken = loaded_store.snapshot.model_copy(deep=True)
    broken.products["pizzas"][1].id = 1

    with pytest.raises(ValidationError):
        await loaded_store.save(broken)
    assert cache.read() is None


@pytest.mark.asyncio
async def test_concurrent_saves_are_serialized(cache, sample_snapshot, test_settings):
    store, held = held_store(cache, sample_snapshot, test_settings)

    while_held, results = await save_twice(store, held)

    assert while_held == [("cache", "first"), ("push", "first")]
    assert held.events == [
        ("cache", "first"),
        ("push", "first"),
        ("pushed", "first"),
        ("cache", "second"),
        ("push", "second"),
        ("pushed", "second"),
    ]
    assert [result.outcome for result in results] == [SaveOutcome.FULLY_SAVED, SaveOutcome.FULLY_SAVED]
    assert store.snapshot.restaurant["name"] == "second"
    assert json.loads(cache.read())["restaurant"]["name"] == "second"


def test_store_built_outside_the_event_loop(cache, sample_snapshot, test_settings):
    store, held = held_store(cache, sample_snapshot, test_settings)

    while_held, _ = asyncio.run(save_twice(store, held))

    assert while_held == [("cache", "first"), ("push", "first")]
    assert held.events[-1] == ("pushed", "second")


@pytest.mark.asyncio
async def test_load_when_malformed_cache_cannot_be_cleared(offline_remote):
    with pytest.raises(SnapshotUnavailableError):
        await ConfigStore(UnclearableCache(), offline_remote).load()


@pytest.mark.asyncio
async def test_remote_timeout_is_a_remote_failure(cache, sample_snapshot, test_settings):
    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    remote = RemoteConfigClient(transport=httpx.MockTransport(slow), settings=test_settings)
    cache.write(sample_snapshot.to_json())
    store = ConfigStore(cache, remote)

    await store.load()
    result = await store.save()

    assert store.last_load_source == LoadSource.CACHE
    assert result.outcome == SaveOutcome.SAVED_LOCALLY
