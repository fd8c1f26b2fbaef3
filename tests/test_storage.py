"""
Tests for storage backends and the write journal.
"""

import pytest

from lockproxy.storage import (
    JournaledStorage, MemoryBackend, SQLiteBackend, StorageBackend,
    get_storage_backend, register_backend,
)


@pytest.fixture(params=["memory", "sqlite"])
def backend(request, tmp_path):
    if request.param == "memory":
        store = MemoryBackend()
    else:
        store = SQLiteBackend(str(tmp_path / "proxy.db"))
    yield store
    store.close()


class TestBackends:
    def test_put_get_delete(self, backend):
        backend.put("proxy_hash", b"\x02", b"\xaa" * 20)
        assert backend.get("proxy_hash", b"\x02") == b"\xaa" * 20
        assert backend.has("proxy_hash", b"\x02")
        backend.delete("proxy_hash", b"\x02")
        assert backend.get("proxy_hash", b"\x02") is None
        assert not backend.has("proxy_hash", b"\x02")

    def test_namespaces_are_isolated(self, backend):
        backend.put("proxy_hash", b"k", b"1")
        assert backend.get("asset_hash", b"k") is None

    def test_iterate_sorted_by_key(self, backend):
        for key in (b"\x03", b"\x01", b"\x02"):
            backend.put("asset_hash", key, key * 2)
        assert [k for k, _ in backend.iterate("asset_hash")] == [b"\x01", b"\x02", b"\x03"]

    def test_unknown_namespace(self, backend):
        with pytest.raises(KeyError):
            backend.get("balances", b"k")


class TestSQLitePersistence:
    def test_survives_reopen(self, tmp_path):
        path = str(tmp_path / "nested" / "proxy.db")
        store = SQLiteBackend(path)
        store.put("upgrade", b"\x00" * 8, b"{}")
        store.commit()
        store.close()

        reopened = SQLiteBackend(path)
        assert reopened.get("upgrade", b"\x00" * 8) == b"{}"
        reopened.close()


class TestJournaledStorage:
    def test_reads_see_pending_writes(self):
        inner = MemoryBackend()
        journal = JournaledStorage(inner)
        journal.put("proxy_hash", b"\x01", b"p")
        assert journal.get("proxy_hash", b"\x01") == b"p"
        assert inner.get("proxy_hash", b"\x01") is None
        assert journal.dirty

    def test_commit_applies_writes_and_deletes(self):
        inner = MemoryBackend()
        inner.put("proxy_hash", b"\x02", b"old")
        journal = JournaledStorage(inner)
        journal.put("proxy_hash", b"\x01", b"new")
        journal.delete("proxy_hash", b"\x02")
        assert journal.get("proxy_hash", b"\x02") is None
        journal.commit()
        assert inner.get("proxy_hash", b"\x01") == b"new"
        assert inner.get("proxy_hash", b"\x02") is None
        assert not journal.dirty

    def test_rollback_leaves_inner_untouched(self):
        inner = MemoryBackend()
        inner.put("asset_hash", b"a", b"1")
        journal = JournaledStorage(inner)
        journal.put("asset_hash", b"a", b"2")
        journal.put("asset_hash", b"b", b"3")
        journal.rollback()
        assert dict(inner.iterate("asset_hash")) == {b"a": b"1"}
        assert journal.get("asset_hash", b"a") == b"1"

    def test_iterate_merges_pending(self):
        inner = MemoryBackend()
        inner.put("asset_hash", b"a", b"1")
        inner.put("asset_hash", b"c", b"3")
        journal = JournaledStorage(inner)
        journal.put("asset_hash", b"b", b"2")
        journal.delete("asset_hash", b"c")
        assert list(journal.iterate("asset_hash")) == [(b"a", b"1"), (b"b", b"2")]


class TestFactory:
    def test_known_backends(self, tmp_path):
        assert isinstance(get_storage_backend("memory"), MemoryBackend)
        store = get_storage_backend(" SQLite ", db_path=str(tmp_path / "x.db"))
        assert isinstance(store, SQLiteBackend)
        store.close()

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Available"):
            get_storage_backend("rocksdb")

    def test_register_backend(self):
        class Custom(MemoryBackend):
            pass

        register_backend("custom", Custom)
        assert isinstance(get_storage_backend("custom"), Custom)

    def test_register_rejects_non_backend(self):
        with pytest.raises(TypeError):
            register_backend("bad", dict)

    def test_backend_name(self):
        assert MemoryBackend().name == "MemoryBackend"
        assert issubclass(JournaledStorage, StorageBackend)
