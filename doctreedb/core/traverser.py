"""Store tree traversal.

Walks a Store's tree recursively, populating its caches as it goes.
Within one directory, subdirectories are yielded as soon as they are
classified and files afterwards; recursion into the subdirectories
follows once the whole level has been yielded.
"""

import logging
import posixpath
from typing import Any, AsyncIterator

from ..config import AccessLevel, ReadDirOptions
from .entry import DocumentEntry
from .stat import UNLOADED, DocumentStat

logger = logging.getLogger(__name__)


class DocumentTraverser:
    """Depth-annotated traversal over a Store.

    The traverser holds no state of its own between calls; everything it
    learns goes into the store's ``data`` and ``meta`` caches.
    """

    def __init__(self, store: Any):
        """Initialize traverser.

        Args:
            store: Store whose back-end and caches are used
        """
        self.store = store

    def _remember(self, uri: str, stat: DocumentStat) -> None:
        # Loaded content (possibly modified and not pushed yet) is kept as is
        store = self.store
        if store.data.get(uri, UNLOADED) is UNLOADED:
            store.data[uri] = UNLOADED
            store.meta[uri] = stat

    async def read_dir(self, uri: str, options: ReadDirOptions) -> AsyncIterator[DocumentEntry]:
        """Traverse the subtree rooted at uri.

        Args:
            uri: Start URI
            options: Depth, filter and symlink handling

        Yields:
            DocumentEntry for every accepted document below uri, or for uri
            itself when it is not a directory

        Raises:
            AccessDeniedError: If read access to any visited directory is refused
        """
        store = self.store
        await store.ensure_access(uri, AccessLevel.READ)
        if not options.accepts(uri):
            return

        depth = options.depth
        stat = await store.stat_document(uri)

        if not stat.is_directory:
            self._remember(uri, stat)
            yield DocumentEntry(
                name=store.relative(store.root, uri),
                path=uri,
                parent=posixpath.dirname(uri) if depth else "",
                depth=depth,
                stat=stat,
            )
            return

        parent = uri if depth else ""
        children = await store.list_dir(uri, options)
        later = []
        subdirectories = []
        for child in children:
            path = store.resolve(uri, child.name)
            if not options.accepts(path):
                continue
            self._remember(path, child.stat)
            entry = DocumentEntry(name=child.name, path=path, parent=parent, depth=depth, stat=child.stat)
            if child.is_directory:
                subdirectories.append((path, child))
                yield entry
            else:
                later.append(entry)

        for entry in later:
            yield entry

        if not options.should_explore(depth + 1):
            return

        deeper = options.deeper()
        for path, child in subdirectories:
            if options.skip_symbolic_link and child.stat.is_symbolic_link:
                continue
            async for entry in self.read_dir(path, deeper):
                yield entry

    async def find(self, target: Any, depth: int = 0) -> AsyncIterator[str]:
        """Answer a lookup from the cache, enumerating the tree once first.

        Args:
            target: Literal URI, or predicate over (uri, cached value)
            depth: Depth assigned to the root's children

        Yields:
            Matching URIs
        """
        store = self.store
        await store.require_connected()
        if not store.loaded:
            logger.debug("Enumerating %s", store)
            count = 0
            async for _ in self.read_dir(store.root, ReadDirOptions(depth=depth)):
                count += 1
            store.loaded = True
            logger.debug("Enumerated %d document(s) in %s", count, store)

        if callable(target):
            for uri, value in list(store.data.items()):
                if target(uri, value):
                    yield uri
        elif target in store.data:
            yield target
