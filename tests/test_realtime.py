"""Tests for realtime delta reconciliation."""

import asyncio

import pytest

from remote_config.common.exceptions import TransportError
from remote_config.services.config.cache import CACHE_DIR_NAME, CACHE_FILE_NAME, ConfigCache
from remote_config.services.config.realtime import (
    ConfigSubscription,
    ConfigUpdateReconciler,
    channel_for,
)
from remote_config.services.config.store import SnapshotStore
from remote_config.services.config.types import RealtimeEvent
from tests.fakes import FakeClock, FakeFileStore, FakePreferenceStore, FakeRealtimeTransport, document_event


class Recorder:
    """Callback recording its calls and answering with ``result``."""

    def __init__(self, result=True):
        self.result = result
        self.calls = []

    def __call__(self, key, value):
        self.calls.append((key, value))
        return self.result


def _reconciler(tmp_path, initial=None, file_store=None):
    store = SnapshotStore()
    cache = ConfigCache(
        tmp_path,
        file_store=file_store or FakeFileStore(),
        preferences=FakePreferenceStore(),
        clock=FakeClock(),
    )
    if initial is not None:
        store.replace(initial)
        cache.save(initial)
    return store, cache


def _handle(tmp_path, event, callback, initial=None, file_store=None):
    store, cache = _reconciler(tmp_path, initial, file_store)

    async def scenario():
        reconciler = ConfigUpdateReconciler(store, cache, asyncio.Lock(), "key", "value", callback)
        return await reconciler.handle_event(event)

    changed = asyncio.run(scenario())
    return changed, store, cache


class TestUpserts:
    def test_accepted_update_applied_and_persisted(self, tmp_path):
        callback = Recorder(True)
        changed, store, cache = _handle(
            tmp_path, document_event("cdnUrl", "https://new.cdn/"), callback, initial={"cdnUrl": "https://old.cdn/"}
        )

        assert changed is True
        assert callback.calls == [("cdnUrl", "https://new.cdn/")]
        assert store.snapshot == {"cdnUrl": "https://new.cdn/"}
        assert cache.load() == {"cdnUrl": "https://new.cdn/"}

    def test_create_adds_key(self, tmp_path):
        changed, store, cache = _handle(
            tmp_path, document_event("theme", "dark", kind="create"), Recorder(True), initial={"a": "1"}
        )
        assert changed is True
        assert store.snapshot == {"a": "1", "theme": "dark"}
        assert cache.load() == {"a": "1", "theme": "dark"}

    def test_rejected_update_changes_nothing(self, tmp_path):
        files = FakeFileStore()
        store, cache = _reconciler(tmp_path, {"cdnUrl": "https://old.cdn/"}, files)
        before = dict(files.files)
        callback = Recorder(False)

        async def scenario():
            reconciler = ConfigUpdateReconciler(store, cache, asyncio.Lock(), "key", "value", callback)
            return await reconciler.handle_event(document_event("cdnUrl", "https://new.cdn/"))

        assert asyncio.run(scenario()) is False
        assert callback.calls == [("cdnUrl", "https://new.cdn/")]
        assert store.snapshot == {"cdnUrl": "https://old.cdn/"}
        assert files.files == before

    def test_raising_callback_counts_as_reject(self, tmp_path):
        def callback(key, value):
            raise RuntimeError("bad callback")

        changed, store, _ = _handle(tmp_path, document_event("a", "2"), callback, initial={"a": "1"})
        assert changed is False
        assert store.snapshot == {"a": "1"}

    def test_value_coerced_to_text(self, tmp_path):
        callback = Recorder(True)
        _, store, _ = _handle(tmp_path, document_event("beta", True), callback, initial={})
        assert callback.calls == [("beta", "true")]
        assert store.get_bool("beta") is True


class TestDeletes:
    def test_delete_bypasses_callback(self, tmp_path):
        callback = Recorder(False)
        changed, store, cache = _handle(
            tmp_path, document_event("a", "1", kind="delete"), callback, initial={"a": "1", "b": "2"}
        )

        assert changed is True
        assert callback.calls == []
        assert store.snapshot == {"b": "2"}
        assert cache.load() == {"b": "2"}

    def test_delete_unknown_key_is_noop(self, tmp_path):
        files = FakeFileStore()
        store, cache = _reconciler(tmp_path, {"b": "2"}, files)
        before = dict(files.files)

        async def scenario():
            reconciler = ConfigUpdateReconciler(store, cache, asyncio.Lock(), "key", "value", Recorder())
            return await reconciler.handle_event(document_event("a", "1", kind="delete"))

        assert asyncio.run(scenario()) is False
        assert store.snapshot == {"b": "2"}
        assert files.files == before


class TestMalformedEvents:
    @pytest.mark.parametrize(
        "event",
        [
            RealtimeEvent(events=[], payload={"key": "a", "value": "1"}, channels=[]),
            RealtimeEvent(events=["x.update"], payload=None, channels=[]),
            RealtimeEvent(events=["x.update"], payload={"value": "1"}, channels=[]),
            RealtimeEvent(events=["x.update"], payload={"key": "a"}, channels=[]),
            RealtimeEvent(events=["x.delete"], payload={"key": "a", "value": None}, channels=[]),
        ],
    )
    def test_dropped_without_changes(self, tmp_path, event):
        callback = Recorder(True)
        changed, store, _ = _handle(tmp_path, event, callback, initial={"a": "1"})
        assert changed is False
        assert callback.calls == []
        assert store.snapshot == {"a": "1"}


class TestPersistFailure:
    def test_memory_updated_even_if_disk_write_fails(self, tmp_path):
        store = SnapshotStore()
        cache = ConfigCache(
            tmp_path, file_store=FakeFileStore(fail_writes=True), preferences=FakePreferenceStore(), clock=FakeClock()
        )

        async def scenario():
            reconciler = ConfigUpdateReconciler(store, cache, asyncio.Lock(), "key", "value", Recorder(True))
            return await reconciler.handle_event(document_event("a", "1"))

        assert asyncio.run(scenario()) is True
        assert store.snapshot == {"a": "1"}


class TestRun:
    def test_stream_continues_after_malformed_event(self, tmp_path):
        store, cache = _reconciler(tmp_path, {})

        async def scenario():
            transport = FakeRealtimeTransport()
            reconciler = ConfigUpdateReconciler(store, cache, asyncio.Lock(), "key", "value", Recorder(True))
            transport.push(RealtimeEvent(events=[], payload={}, channels=[]))
            transport.push(document_event("a", "1"))
            transport.end()
            await reconciler.run(transport, "chan")
            return transport.subscribed

        assert asyncio.run(scenario()) == [["chan"]]
        assert store.snapshot == {"a": "1"}

    def test_transport_error_ends_run(self, tmp_path):
        store, cache = _reconciler(tmp_path, {})

        async def scenario():
            transport = FakeRealtimeTransport()
            reconciler = ConfigUpdateReconciler(store, cache, asyncio.Lock(), "key", "value", Recorder(True))
            transport.push(document_event("a", "1"))
            transport.push(TransportError("socket closed"))
            await reconciler.run(transport, "chan")

        asyncio.run(scenario())
        assert store.snapshot == {"a": "1"}


    def test_unexpected_stream_error_ends_run_quietly(self, tmp_path):
        store, cache = _reconciler(tmp_path, {})

        async def scenario():
            transport = FakeRealtimeTransport()
            reconciler = ConfigUpdateReconciler(store, cache, asyncio.Lock(), "key", "value", Recorder(True))
            transport.push(document_event("a", "1"))
            transport.push(RuntimeError("frame decoder crashed"))
            await reconciler.run(transport, "chan")

        asyncio.run(scenario())
        assert store.snapshot == {"a": "1"}


class TestSubscription:
    def test_close_cancels_consumer(self):
        async def scenario():
            transport = FakeRealtimeTransport()

            async def consume():
                async for _ in transport.subscribe(["chan"]):
                    pass

            subscription = ConfigSubscription(asyncio.create_task(consume()), "chan")
            await asyncio.sleep(0)
            assert subscription.closed is False
            await subscription.close()
            return subscription.closed

        assert asyncio.run(scenario()) is True


def test_channel_for():
    assert channel_for("db", "coll") == "databases.db.collections.coll.documents"


def test_persisted_file_location(tmp_path):
    files = FakeFileStore()
    _reconciler(tmp_path, {"a": "1"}, files)
    assert list(files.files) == [tmp_path / CACHE_DIR_NAME / CACHE_FILE_NAME]
