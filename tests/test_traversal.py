"""
Tests for recursive directory traversal and cached lookup.
"""

import pytest

from doctreedb import UNLOADED, MemoryBackend, ReadDirOptions, Store
from doctreedb.error_policies import FailFastPolicy
from doctreedb.errors import AccessDeniedError, NotConnectedError, ResourceError


async def collect(iterator):
    return [item async for item in iterator]


def shape(entries):
    return [(entry.path, entry.depth, entry.parent) for entry in entries]


@pytest.fixture
def backend():
    return MemoryBackend({"a/x.txt": "x", "a/y.txt": "yy", "b.txt": "b"})


class TestReadDirOrdering:
    """Test the order and depth annotation of traversal entries."""

    @pytest.mark.asyncio
    async def test_levels_then_recursion(self, backend):
        entries = await collect(Store(backend).read_dir())
        assert shape(entries) == [
            ("a", 0, ""),
            ("b.txt", 0, ""),
            ("a/x.txt", 1, "a"),
            ("a/y.txt", 1, "a"),
        ]

    @pytest.mark.asyncio
    async def test_directories_before_files(self):
        backend = MemoryBackend({"z.txt": 1, "d/f.txt": 2, "e/g.txt": 3})
        entries = await collect(Store(backend).read_dir("."))
        assert [entry.path for entry in entries] == ["d", "e", "z.txt", "d/f.txt", "e/g.txt"]

    @pytest.mark.asyncio
    async def test_deep_tree(self):
        backend = MemoryBackend({"a/b/c/d.txt": 1})
        entries = await collect(Store(backend).read_dir())
        assert shape(entries) == [
            ("a", 0, ""),
            ("a/b", 1, "a"),
            ("a/b/c", 2, "a/b"),
            ("a/b/c/d.txt", 3, "a/b/c"),
        ]

    @pytest.mark.asyncio
    async def test_entry_names_and_stats(self, backend):
        entries = await collect(Store(backend).read_dir())
        by_path = {entry.path: entry for entry in entries}
        assert by_path["a/y.txt"].name == "y.txt"
        assert by_path["a/y.txt"].stat.size == 2
        assert by_path["a"].is_directory

    @pytest.mark.asyncio
    async def test_empty_tree(self):
        assert await collect(Store(MemoryBackend()).read_dir()) == []

    @pytest.mark.asyncio
    async def test_document_as_start(self, backend):
        entries = await collect(Store(backend).read_dir("a/x.txt"))
        assert len(entries) == 1
        assert entries[0].name == "a/x.txt"
        assert entries[0].depth == 0
        assert entries[0].parent == ""

    @pytest.mark.asyncio
    async def test_read_branch(self, backend):
        entries = await collect(Store(backend).read_branch("a"))
        assert shape(entries) == [("a/x.txt", 0, ""), ("a/y.txt", 0, "")]

    @pytest.mark.asyncio
    async def test_start_depth(self, backend):
        entries = await collect(Store(backend).read_dir(depth=3))
        assert [entry.depth for entry in entries] == [3, 3, 4, 4]


class TestReadDirOptions:
    """Test filtering, depth limits and symbolic links."""

    @pytest.mark.asyncio
    async def test_filter(self, backend):
        store = Store(backend)
        entries = await collect(store.read_dir(filter=lambda uri: uri == "." or uri.startswith("a")))
        assert [entry.path for entry in entries] == ["a", "a/x.txt", "a/y.txt"]
        assert "b.txt" not in store.data

    @pytest.mark.asyncio
    async def test_filter_rejecting_start(self, backend):
        entries = await collect(Store(backend).read_dir(filter=lambda uri: uri != "."))
        assert entries == []

    @pytest.mark.asyncio
    async def test_max_depth(self, backend):
        store = Store(backend)
        entries = await collect(store.read_dir(max_depth=0))
        assert [entry.path for entry in entries] == ["a", "b.txt"]
        assert backend.calls['list_dir'] == 1

    @pytest.mark.asyncio
    async def test_skip_symbolic_links(self):
        backend = MemoryBackend({"link/x.txt": 1, "real/y.txt": 2}, links=["link"])
        entries = await collect(Store(backend).read_dir(skip_symbolic_link=True))
        assert [entry.path for entry in entries] == ["link", "real", "real/y.txt"]

    @pytest.mark.asyncio
    async def test_symbolic_links_followed_by_default(self):
        backend = MemoryBackend({"link/x.txt": 1}, links=["link"])
        entries = await collect(Store(backend).read_dir())
        assert [entry.path for entry in entries] == ["link", "link/x.txt"]

    @pytest.mark.asyncio
    async def test_skip_stat(self, backend):
        entries = await collect(Store(backend).read_dir(skip_stat=True))
        assert all(entry.stat.size == 0 for entry in entries)
        assert entries[0].is_directory

    @pytest.mark.asyncio
    async def test_options_object(self, backend):
        options = ReadDirOptions(max_depth=0)
        entries = await collect(Store(backend).read_dir(".", options))
        assert len(entries) == 2

    def test_unknown_option(self, backend):
        with pytest.raises(TypeError, match="Unknown ReadDirOptions"):
            Store(backend).read_dir(colour="red")


class TestReadDirCache:
    """Test what traversal records in the store."""

    @pytest.mark.asyncio
    async def test_populates_caches(self, backend):
        store = Store(backend)
        await collect(store.read_dir())
        assert store.data == {
            "a": UNLOADED,
            "b.txt": UNLOADED,
            "a/x.txt": UNLOADED,
            "a/y.txt": UNLOADED,
        }
        assert store.meta["a/y.txt"].size == 2

    @pytest.mark.asyncio
    async def test_keeps_loaded_documents(self, backend):
        store = Store(backend)
        await store.set("b.txt", "modified")
        modified = store.meta["b.txt"]
        await collect(store.read_dir())
        assert store.data["b.txt"] == "modified"
        assert store.meta["b.txt"] is modified


class TestReadDirErrors:
    """Test access denial and back-end failures during traversal."""

    @pytest.mark.asyncio
    async def test_access_denied_propagates(self, backend):
        backend.access = lambda uri, level: uri != "a"
        seen = []
        with pytest.raises(AccessDeniedError):
            async for entry in Store(backend).read_dir():
                seen.append(entry.path)
        assert seen == ["a", "b.txt"]

    @pytest.mark.asyncio
    async def test_start_access_denied(self, backend):
        backend.access = lambda uri, level: False
        with pytest.raises(AccessDeniedError):
            await collect(Store(backend).read_dir())

    @pytest.mark.asyncio
    async def test_unreadable_directory_is_captured(self, backend):
        backend.broken.add("a")
        store = Store(backend)
        entries = await collect(store.read_dir())
        assert [entry.path for entry in entries] == ["a", "b.txt"]
        assert entries[0].stat.error is not None
        stats = store.error_policy.get_statistics()
        assert stats['list_errors'] == 1
        assert stats['uris'] == ["a"]

    @pytest.mark.asyncio
    async def test_unreadable_document_keeps_going(self, backend):
        backend.broken.add("a/x.txt")
        store = Store(backend)
        entries = await collect(store.read_dir())
        assert len(entries) == 4
        assert isinstance(store.meta["a/x.txt"].error, ResourceError)

    @pytest.mark.asyncio
    async def test_unreadable_start_document(self, backend):
        backend.broken.add("b.txt")
        store = Store(backend)
        entries = await collect(store.read_dir("b.txt"))
        assert len(entries) == 1
        assert isinstance(entries[0].stat.error, ResourceError)
        assert isinstance(entries[0].stat.error.__cause__, OSError)

    @pytest.mark.asyncio
    async def test_fail_fast(self, backend):
        backend.broken.add("a")
        store = Store(backend, error_policy=FailFastPolicy())
        with pytest.raises(OSError):
            await collect(store.read_dir())


class TestFind:
    """Test lookups answered from the enumerated cache."""

    @pytest.mark.asyncio
    async def test_missing_on_empty_store(self):
        backend = MemoryBackend()
        store = Store(backend)
        await store.connect()
        assert await collect(store.find("missing.txt")) == []
        assert store.loaded
        assert backend.calls['list_dir'] == 1

    @pytest.mark.asyncio
    async def test_literal(self, backend):
        store = Store(backend)
        assert await collect(store.find("a/x.txt")) == ["a/x.txt"]
        assert await collect(store.find("a/z.txt")) == []

    @pytest.mark.asyncio
    async def test_enumerates_once(self, backend):
        store = Store(backend)
        await collect(store.find("a/x.txt"))
        calls = backend.calls['list_dir']
        await collect(store.find("b.txt"))
        assert backend.calls['list_dir'] == calls

    @pytest.mark.asyncio
    async def test_reset_loaded_forces_enumeration(self, backend):
        store = Store(backend)
        await collect(store.find("b.txt"))
        await backend.save_document("c.txt", "new")
        assert await collect(store.find("c.txt")) == []
        store.loaded = False
        assert await collect(store.find("c.txt")) == ["c.txt"]

    @pytest.mark.asyncio
    async def test_predicate(self, backend):
        store = Store(backend)
        await collect(store.find("b.txt"))
        await store.get("b.txt")
        found = await collect(store.find(lambda uri, value: uri.endswith(".txt")))
        assert sorted(found) == ["a/x.txt", "a/y.txt", "b.txt"]
        loaded = await collect(store.find(lambda uri, value: value is not UNLOADED))
        assert loaded == ["b.txt"]

    @pytest.mark.asyncio
    async def test_connects_on_demand(self, backend):
        store = Store(backend)
        await collect(store.find("b.txt"))
        assert store.connected

    @pytest.mark.asyncio
    async def test_requires_connection(self):
        store = Store(MemoryBackend(connectable=False))
        with pytest.raises(NotConnectedError):
            await collect(store.find("a"))
