"""Test fixtures for DocTreeDB.

Public helpers for testing code built on DocTreeDB without reaching into
Store internals.
"""

from typing import Any, Dict, Optional

from ..core.stat import UNLOADED, DocumentStat


class StoreTestHelper:
    """Public test fixture for cache verification.

    Provides a stable interface for checking what a Store has learned
    about its tree, for use in test suites of projects that consume
    DocTreeDB.

    Example:
        store = Store(MemoryBackend({"a.txt": "x"}))
        async for _ in store.find("a.txt"):
            pass
        helper = StoreTestHelper(store)
        assert helper.get_summary()['unloaded_count'] == 1
        assert helper.was_discovered("a.txt")
    """

    def __init__(self, store):
        """Initialize with a store.

        Args:
            store: The Store to inspect
        """
        self._store = store

    def get_summary(self) -> Dict[str, Any]:
        """Returns high-level cache state for testing.

        Returns:
            Dictionary containing:
            - total_entries: Number of URIs in the document cache
            - unloaded_count: URIs known to exist but not loaded
            - loaded_count: URIs with loaded content
            - meta_count: URIs with cached metadata
            - error_count: Cached stats carrying an error
            - loaded: Whether the whole tree was enumerated
        """
        data = self._store.data
        meta = self._store.meta
        unloaded = sum(1 for value in data.values() if value is UNLOADED)
        return {
            'total_entries': len(data),
            'unloaded_count': unloaded,
            'loaded_count': len(data) - unloaded,
            'meta_count': len(meta),
            'error_count': sum(1 for stat in meta.values() if stat.error is not None),
            'loaded': self._store.loaded,
        }

    def was_discovered(self, uri: str) -> bool:
        """Check if a URI is known to the store (loaded or not)."""
        return uri in self._store.data

    def is_loaded(self, uri: str) -> bool:
        """Check if the content of a URI has been fetched or set."""
        return self._store.data.get(uri, UNLOADED) is not UNLOADED

    def get_stat(self, uri: str) -> Optional[DocumentStat]:
        return self._store.meta.get(uri)

    def captured_errors(self) -> Dict[str, int]:
        """Count errors captured by the store's error policy per URI.

        Returns:
            URI to number of captured errors; empty when the policy does
            not record errors
        """
        counts: Dict[str, int] = {}
        for record in getattr(self._store.error_policy, 'errors', []):
            counts[record['uri']] = counts.get(record['uri'], 0) + 1
        return counts


__all__ = ['StoreTestHelper']
