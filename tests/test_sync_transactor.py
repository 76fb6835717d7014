"""Tests for index persistence, entry operations and the transactor."""

import json
import threading
from dataclasses import replace

import httpx
import pytest

from journalsync.config import CloudConfig
from journalsync.exceptions import (
    NotFoundError,
    SyncCancelledError,
    SyncInProgressError,
    TransferError,
    ValidationError,
)
from journalsync.models import Entry, IndexRecord
from journalsync.stores import HttpObjectStore, MemoryEntryStore, MemoryObjectStore
from journalsync.sync.codec import IndexCodec
from journalsync.sync.context import SyncContext
from journalsync.sync.engine import SyncPipeline
from journalsync.sync.index_store import IndexStoreAdapter
from journalsync.sync.merger import IndexMerger, MergeAction
from journalsync.sync.operations import EntryOperations
from journalsync.sync.transactor import EntryTransactor, purge_expired_tombstones
from journalsync.utils import now_millis


def make_entry(entry_id="feb.25.2018", content="hello", last_modified=1000):
    return Entry(
        id=entry_id,
        date="Feb 25, 2018 at 10:00:00",
        content=content,
        timestamp=1519552800000,
        last_modified=last_modified,
    )


class FlakyObjectStore(MemoryObjectStore):
    """Object store whose first ``failures`` puts raise TransferError."""

    def __init__(self, failures=0):
        super().__init__()
        self.failures = failures
        self.put_calls = 0

    def put(self, key, data):
        self.put_calls += 1
        if key.startswith("entries/") and self.failures > 0:
            self.failures -= 1
            raise TransferError("simulated outage")
        super().put(key, data)


def remote_entry(remote, entry):
    remote.objects[f"entries/{entry.id}.json"] = entry.to_json()


def remote_index(remote):
    return IndexCodec.decode(remote.objects["masterIndex.json"])


@pytest.fixture
def remote():
    return MemoryObjectStore()


@pytest.fixture
def local_store():
    return MemoryEntryStore()


@pytest.fixture
def config(tmp_path):
    return CloudConfig(
        aws_access="AKIA",
        aws_secret="secret",
        aws_region="eu-west-1",
        aws_bucket="journal",
        data_dir=str(tmp_path),
        retry_delay=0,
    )


@pytest.fixture
def ctx(config, remote, local_store):
    context = SyncContext(config=config, remote=remote, local_store=local_store)
    context.indexes.bootstrap_local()
    return context


class TestIndexStoreAdapter:
    """Tests for loading and saving both index copies."""

    def test_load_local_before_bootstrap(self, tmp_path, remote):
        adapter = IndexStoreAdapter(tmp_path, remote)
        with pytest.raises(NotFoundError, match="journalsync init"):
            adapter.load_local()

    def test_bootstrap_only_once(self, tmp_path, remote):
        adapter = IndexStoreAdapter(tmp_path, remote)
        assert adapter.bootstrap_local() is True
        adapter.save_local({"a": IndexRecord(1)})
        assert adapter.bootstrap_local() is False
        assert adapter.load_local() == {"a": IndexRecord(1)}

    def test_missing_remote_index_is_created_empty(self, tmp_path, remote):
        adapter = IndexStoreAdapter(tmp_path, remote)
        assert adapter.load_remote() == {}
        assert remote.objects["masterIndex.json"] == b"{}"

    def test_malformed_remote_index_is_not_overwritten(self, tmp_path, remote):
        remote.objects["masterIndex.json"] = b"[]"
        adapter = IndexStoreAdapter(tmp_path, remote)
        with pytest.raises(ValidationError):
            adapter.load_remote()
        assert remote.objects["masterIndex.json"] == b"[]"

    def test_local_index_is_readable_json(self, tmp_path, remote):
        adapter = IndexStoreAdapter(tmp_path, remote)
        adapter.save_local({"a": IndexRecord(1, True)})
        data = json.loads((tmp_path / "masterIndex.json").read_text())
        assert data == {"a": {"lastModified": 1, "deleted": True}}


class TestEntryOperations:
    """Tests for single-entry transfers."""

    @pytest.fixture
    def operations(self, local_store, remote):
        return EntryOperations(local_store, remote)

    def test_pull_creates_missing_entry(self, operations, local_store, remote):
        remote_entry(remote, make_entry())
        operations.pull("feb.25.2018")
        assert local_store.get("feb.25.2018") == make_entry()

    def test_pull_replaces_existing_entry(self, operations, local_store, remote):
        local_store.create("feb.25.2018", make_entry(content="old"))
        remote_entry(remote, make_entry(content="new", last_modified=2000))
        operations.pull("feb.25.2018")
        assert local_store.get("feb.25.2018").content == "new"

    def test_pull_missing_remote_entry(self, operations):
        with pytest.raises(NotFoundError, match="Remote entry not found"):
            operations.pull("feb.25.2018")

    def test_fetch_rejects_mismatching_id(self, operations, remote):
        remote.objects["entries/feb.26.2018.json"] = make_entry().to_json()
        with pytest.raises(ValidationError, match="mismatching"):
            operations.fetch_remote("feb.26.2018")

    def test_push(self, operations, local_store, remote):
        local_store.create("feb.25.2018", make_entry())
        operations.push("feb.25.2018")
        assert Entry.from_json(remote.objects["entries/feb.25.2018.json"]) == (
            make_entry()
        )

    def test_push_missing_local_entry(self, operations):
        with pytest.raises(NotFoundError, match="Local entry not found"):
            operations.push("feb.25.2018")

    def test_delete_local_is_idempotent(self, operations, local_store):
        local_store.create("feb.25.2018", make_entry())
        assert operations.delete_local("feb.25.2018") is True
        assert operations.delete_local("feb.25.2018") is False

    def test_delete_remote_is_idempotent(self, operations, remote):
        remote_entry(remote, make_entry())
        operations.delete_remote("feb.25.2018")
        operations.delete_remote("feb.25.2018")
        assert "entries/feb.25.2018.json" not in remote.objects


class TestApply:
    """Tests for EntryTransactor.apply."""

    def plan(self, local, remote):
        return IndexMerger().plan(local, remote).decisions

    def test_executes_every_action(self, ctx, local_store, remote):
        local_store.create("feb.1.2018", make_entry("feb.1.2018"))
        local_store.create("feb.2.2018", make_entry("feb.2.2018"))
        remote_entry(remote, make_entry("feb.3.2018"))
        remote_entry(remote, make_entry("feb.4.2018"))
        local = {
            "feb.1.2018": IndexRecord(1000),
            "feb.2.2018": IndexRecord(1000),
            "feb.4.2018": IndexRecord(5000, deleted=True),
        }
        remote_idx = {
            "feb.2.2018": IndexRecord(3000, deleted=True),
            "feb.3.2018": IndexRecord(1000),
            "feb.4.2018": IndexRecord(1000),
        }

        report = EntryTransactor(ctx).apply(self.plan(local, remote_idx))

        assert report.stats == {
            "pulls": 1,
            "pushes": 1,
            "deletes_local": 1,
            "deletes_remote": 1,
            "skips": 0,
        }
        assert report.failed == []
        assert set(local_store.entries) == {"feb.1.2018", "feb.3.2018"}
        assert set(remote.objects) == {
            "entries/feb.1.2018.json",
            "entries/feb.3.2018.json",
        }

    def test_retries_transient_failures(self, config, local_store):
        remote = FlakyObjectStore(failures=2)
        ctx = SyncContext(config=config, remote=remote, local_store=local_store)
        local_store.create("feb.1.2018", make_entry("feb.1.2018"))

        report = EntryTransactor(ctx).apply(
            self.plan({"feb.1.2018": IndexRecord(1000)}, {})
        )

        assert report.outcomes[0].success is True
        assert report.outcomes[0].attempts == 3
        assert "entries/feb.1.2018.json" in remote.objects

    def test_gives_up_after_retries(self, config, local_store):
        config.transfer_retries = 1
        remote = FlakyObjectStore(failures=5)
        ctx = SyncContext(config=config, remote=remote, local_store=local_store)
        local_store.create("feb.1.2018", make_entry("feb.1.2018"))

        with pytest.raises(TransferError) as exc_info:
            EntryTransactor(ctx).apply(self.plan({"feb.1.2018": IndexRecord(1000)}, {}))

        error = exc_info.value
        assert error.entry_id == "feb.1.2018"
        assert error.action == "push"
        assert error.report.as_dict() == {"feb.1.2018": False}
        assert remote.put_calls == 2

    def test_not_found_is_not_retried(self, ctx):
        with pytest.raises(NotFoundError):
            EntryTransactor(ctx).apply(self.plan({}, {"feb.1.2018": IndexRecord(1)}))

    def test_cancellation_between_entries(self, ctx, local_store):
        for day in (1, 2, 3):
            local_store.create(f"feb.{day}.2018", make_entry(f"feb.{day}.2018"))
        local = {f"feb.{day}.2018": IndexRecord(1000) for day in (1, 2, 3)}
        cancel = threading.Event()

        def progress(done, total):
            if done == 1:
                cancel.set()

        with pytest.raises(SyncCancelledError) as exc_info:
            EntryTransactor(ctx).apply(
                self.plan(local, {}), cancel_event=cancel, progress_callback=progress
            )
        assert exc_info.value.report.as_dict() == {"feb.1.2018": True}

    def test_already_applied_pushes_are_skipped(self, ctx, remote):
        report = EntryTransactor(ctx).apply(
            self.plan({"feb.1.2018": IndexRecord(1000)}, {}),
            already_applied=frozenset({"feb.1.2018"}),
        )
        assert report.stats["pushes"] == 1
        assert remote.objects == {}

    def test_skips_count_as_success(self, ctx):
        record = IndexRecord(1000)
        report = EntryTransactor(ctx).apply(self.plan({"a": record}, {"a": record}))
        assert report.outcomes[0].action == MergeAction.SKIP
        assert report.stats["skips"] == 1


class TestPutEntry:
    """Tests for merge-on-write after an edit."""

    def test_requires_last_modified(self, ctx):
        with pytest.raises(ValidationError, match="lastModified"):
            EntryTransactor(ctx).put_entry(make_entry(last_modified=0))

    def test_pushes_and_records_entry(self, ctx, remote):
        merged = EntryTransactor(ctx).put_entry(make_entry())

        record = IndexRecord(1000, deleted=False)
        assert merged == {"feb.25.2018": record}
        assert ctx.indexes.load_local() == {"feb.25.2018": record}
        assert remote_index(remote) == {"feb.25.2018": record}
        assert Entry.from_json(remote.objects["entries/feb.25.2018.json"]) == (
            make_entry()
        )

    def test_merges_other_remote_changes(self, ctx, local_store, remote):
        other = make_entry("feb.26.2018", content="from phone", last_modified=500)
        remote_entry(remote, other)
        ctx.indexes.save_remote({"feb.26.2018": IndexRecord(500)})

        merged = EntryTransactor(ctx).put_entry(make_entry())

        assert set(merged) == {"feb.25.2018", "feb.26.2018"}
        assert local_store.get("feb.26.2018") == other

    def test_newer_remote_copy_wins(self, ctx, local_store, remote):
        newer = make_entry(content="newer", last_modified=2000)
        remote_entry(remote, newer)
        ctx.indexes.save_remote({"feb.25.2018": IndexRecord(2000)})

        merged = EntryTransactor(ctx).put_entry(make_entry(last_modified=1000))

        assert merged["feb.25.2018"] == IndexRecord(2000)
        assert local_store.get("feb.25.2018").content == "newer"
        assert Entry.from_json(remote.objects["entries/feb.25.2018.json"]) == newer

    def test_uninitialized_local_index(self, config, remote, local_store, tmp_path):
        config.data_dir = str(tmp_path / "fresh")
        ctx = SyncContext(config=config, remote=remote, local_store=local_store)
        with pytest.raises(NotFoundError):
            EntryTransactor(ctx).put_entry(make_entry())


class TestDeleteEntry:
    """Tests for merge-on-write after a delete."""

    def test_deletes_remote_and_tombstones(self, ctx, remote):
        transactor = EntryTransactor(ctx)
        transactor.put_entry(make_entry(last_modified=now_millis()))

        merged = transactor.delete_entry("feb.25.2018")

        assert merged["feb.25.2018"].deleted is True
        assert "entries/feb.25.2018.json" not in remote.objects
        assert remote_index(remote)["feb.25.2018"].deleted is True
        assert ctx.indexes.load_local()["feb.25.2018"].deleted is True

    def test_tombstone_is_newer_than_previous_record(self, ctx):
        future = now_millis() + 10**9
        ctx.indexes.save_local({"feb.25.2018": IndexRecord(future)})

        merged = EntryTransactor(ctx).delete_entry("feb.25.2018")

        assert merged["feb.25.2018"] == IndexRecord(future + 1, deleted=True)

    def test_delete_wins_over_remote_record_from_the_future(self, ctx, remote, config):
        future = now_millis() + 60_000
        remote_entry(remote, make_entry(last_modified=future))
        ctx.indexes.save_remote({"feb.25.2018": IndexRecord(future)})

        merged = EntryTransactor(ctx).delete_entry("feb.25.2018")

        tombstone = IndexRecord(future + 1, deleted=True)
        assert merged["feb.25.2018"] == tombstone
        assert remote_index(remote)["feb.25.2018"] == tombstone
        assert "entries/feb.25.2018.json" not in remote.objects

        # Another device syncs cleanly afterwards
        other_config = replace(config, data_dir=str(config.data_path / "other"))
        other = SyncContext(
            config=other_config, remote=remote, local_store=MemoryEntryStore()
        )
        other.indexes.bootstrap_local()
        assert SyncPipeline(other).run() == {"feb.25.2018": tombstone}

    def test_delete_unknown_entry(self, ctx):
        merged = EntryTransactor(ctx).delete_entry("feb.25.2018")
        assert merged["feb.25.2018"].deleted is True

    def test_rejects_unsafe_id(self, ctx):
        with pytest.raises(ValidationError):
            EntryTransactor(ctx).delete_entry("../masterIndex")

    def test_put_after_delete_resurrects(self, ctx, remote):
        transactor = EntryTransactor(ctx)
        transactor.delete_entry("feb.25.2018")
        tombstone = ctx.indexes.load_local()["feb.25.2018"]

        merged = transactor.put_entry(
            make_entry(last_modified=tombstone.last_modified + 1)
        )

        assert merged["feb.25.2018"].deleted is False
        assert "entries/feb.25.2018.json" in remote.objects


class TestPurgeExpiredTombstones:
    """Tests for purge_expired_tombstones."""

    def test_no_retention_keeps_everything(self):
        index = {"a": IndexRecord(1, deleted=True)}
        assert purge_expired_tombstones(index, None) == (index, [])

    def test_purges_only_old_tombstones(self):
        index = {
            "old": IndexRecord(100, deleted=True),
            "recent": IndexRecord(950, deleted=True),
            "live": IndexRecord(100),
        }
        kept, purged = purge_expired_tombstones(index, retention_ms=500, now=1000)
        assert purged == ["old"]
        assert set(kept) == {"recent", "live"}


class TestSyncContext:
    """Tests for the in-flight guard and resource handling."""

    def test_guard_is_reentrant(self, ctx):
        with ctx.exclusive():
            with ctx.exclusive():
                pass

    def test_lock_timeout(self, ctx):
        ctx.config.lock_timeout = 0.05
        held = threading.Event()
        release = threading.Event()

        def hold():
            with ctx.exclusive():
                held.set()
                release.wait(5)

        worker = threading.Thread(target=hold)
        worker.start()
        try:
            assert held.wait(5)
            with pytest.raises(SyncInProgressError):
                with ctx.exclusive():
                    pass
        finally:
            release.set()
            worker.join()

    def test_indexes_rebuilt_when_cleared(self, ctx, config):
        ctx.index_store = None
        assert ctx.indexes.data_dir == config.data_path
        assert ctx.indexes is ctx.index_store

    def test_close_releases_http_client(self, config, local_store):
        store = HttpObjectStore(
            "https://store.example/journal",
            transport=httpx.MockTransport(lambda request: httpx.Response(404)),
        )
        ctx = SyncContext(config=config, remote=store, local_store=local_store)
        assert store.get("masterIndex.json") is None
        assert store._client is not None

        ctx.close()

        assert store._client is None

    def test_close_without_connections(self, ctx):
        # Memory stores hold nothing to release
        ctx.close()
