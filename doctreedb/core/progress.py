"""Progress tracking over a streaming traversal.

The size of the tree is unknown until it has been walked, so progress is
estimated from directory fulfillment: a directory is fulfilled once the
traversal has moved past its children.

The LEGACY estimator is a two-pass computation. For entries below depth
0 it first computes the ratio of fulfilled top-level directories and
then overwrites it with the ratio of fulfilled directories overall.
TOP_LEVEL keeps the first ratio instead.
"""

import logging
from dataclasses import replace
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from ..config import AccessLevel, FindStreamOptions, ProgressEstimator, SortKey, SortOrder
from ..errors import StructuralInconsistencyError
from .entry import DocumentEntry, StreamEntry, TotalSize

logger = logging.getLogger(__name__)

_SORT_KEYS: Dict[SortKey, Callable[[DocumentEntry], Any]] = {
    SortKey.NAME: lambda entry: entry.name,
    SortKey.MTIME: lambda entry: entry.stat.mtime_ms,
    SortKey.SIZE: lambda entry: entry.stat.size,
}


class StreamProgressTracker:
    """Folds traversal entries into cumulative StreamEntry snapshots.

    One tracker serves one stream; create a new one per ``find_stream``.
    """

    def __init__(self, store: Any, options: Optional[FindStreamOptions] = None):
        """Initialize tracker.

        Args:
            store: Store to traverse
            options: Sorting, limit, filter and progress estimator
        """
        self.store = store
        self.options = options or FindStreamOptions()
        self.files: List[DocumentEntry] = []
        self.dirs: Dict[str, DocumentEntry] = {}
        self.top: Dict[str, DocumentEntry] = {}
        self.errors: Dict[str, BaseException] = {}
        self.size_dirs = 0
        self.size_files = 0
        self._previous: Optional[DocumentEntry] = None

    def _sort(self) -> None:
        self.files.sort(
            key=_SORT_KEYS[self.options.sort],
            reverse=self.options.order is SortOrder.DESC,
        )

    def _top_ancestor(self, entry: DocumentEntry) -> Optional[DocumentEntry]:
        current = entry
        while current.parent and current.parent in self.dirs:
            current = self.dirs[current.parent]
        if current.depth != 0:
            return None
        return self.top.get(current.name)

    def _settle(self, top_dir: DocumentEntry) -> None:
        """Mark a top-level directory fulfilled once everything below it is."""
        prefix = top_dir.path + "/"
        nested = [
            d for d in self.dirs.values()
            if d is not top_dir and (d.parent == top_dir.path or d.path.startswith(prefix))
        ]
        if nested and all(d.fulfilled for d in nested):
            top_dir.fulfilled = True

    @staticmethod
    def _ratio(entries: Dict[str, DocumentEntry]) -> float:
        if not entries:
            return 0.0
        return sum(1 for d in entries.values() if d.fulfilled) / len(entries)

    def _progress(self, recent: DocumentEntry) -> float:
        last = self._previous
        if recent.is_directory:
            self.dirs[recent.path] = recent
        elif recent.parent and recent.parent not in self.dirs:
            raise StructuralInconsistencyError("Directory not found", recent.parent)

        # the previous parent's children are exhausted
        if last is not None and last.parent and last.parent != recent.parent and last.parent in self.dirs:
            finished = self.dirs[last.parent]
            finished.fulfilled = True
            ancestor = self._top_ancestor(finished)
            if ancestor is not None and ancestor is not finished:
                self._settle(ancestor)

        progress = 0.0
        if recent.depth > 0:
            ancestor = self._top_ancestor(recent)
            if ancestor is not None:
                self._settle(ancestor)
            progress = self._ratio(self.top)
        elif recent.is_directory:
            self.top[recent.name] = recent

        if self.options.progress is ProgressEstimator.LEGACY:
            # overwrites the top-level ratio computed above
            progress = self._ratio(self.dirs)
        return progress

    def add(self, file: DocumentEntry) -> StreamEntry:
        """Record one traversal entry and build its snapshot.

        Raises:
            StructuralInconsistencyError: If a file's parent directory was
                never seen
        """
        self.files.append(file)
        if file.stat.error is not None:
            self.errors[file.path] = file.stat.error
        if file.is_directory:
            self.dirs[file.path] = file
            self.size_dirs += file.stat.size
        if file.is_file:
            self.size_files += file.stat.size

        progress = self._progress(file)
        self._previous = file
        self._sort()
        return StreamEntry(
            file=file,
            files=self.files,
            dirs=self.dirs,
            top=self.top,
            errors=self.errors,
            progress=progress,
            total_size=TotalSize(dirs=self.size_dirs, files=self.size_files),
        )

    def complete(self, last: StreamEntry) -> StreamEntry:
        """Mark every directory fulfilled after the traversal ran out."""
        for directory in self.dirs.values():
            directory.fulfilled = True
        return replace(last, progress=1.0)

    async def stream(self, uri: str = ".") -> AsyncIterator[StreamEntry]:
        """Traverse from uri and yield one snapshot per entry.

        Snapshots are emitted one step behind the traversal so that the
        last one can report completion. If the traversal raises, the
        snapshot held back is emitted before the error propagates.

        Args:
            uri: Start URI, resolved against the store's cwd

        Yields:
            StreamEntry per traversed document
        """
        store = self.store
        start = store.resolve(store.cwd, uri)
        await store.ensure_access(uri, AccessLevel.READ)

        limit = self.options.limit
        pending: Optional[StreamEntry] = None
        exhausted = True
        try:
            async for file in store.read_dir(start, self.options.read_dir_options()):
                held, pending = pending, self.add(file)
                if held is not None:
                    yield held
                if limit > 0 and len(self.files) >= limit:
                    exhausted = False
                    break
        except Exception:
            # hand out what was traversed before the failure
            if pending is not None:
                held, pending = pending, None
                yield held
            raise

        if pending is None:
            return
        if exhausted:
            pending = self.complete(pending)
        logger.debug("Stream from %s emitted %d entries", start, len(self.files))
        yield pending
