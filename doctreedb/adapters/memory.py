"""In-memory back-end.

Keeps documents in a dict keyed by URI. Directories are implied by the
path prefixes of the documents and may also be declared explicitly so
that empty directories exist. Every primitive call is counted in
``calls``, which makes the back-end suitable as a test double.
"""

import json
import logging
import posixpath
import time
from collections import Counter
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from ..config import AccessLevel
from ..core.backend import Backend
from ..core.stat import DirEntryInfo, DocumentStat
from ..errors import ResourceError

logger = logging.getLogger(__name__)

AccessPredicate = Callable[[str, AccessLevel], bool]

BLOCK_SIZE = 4096


def _normalize(uri: str) -> str:
    path = posixpath.normpath(uri or ".")
    if path.startswith("/"):
        path = path.lstrip("/") or "."
    return path


def _size_of(value: Any, encoding: str) -> int:
    if isinstance(value, bytes):
        return len(value)
    if isinstance(value, str):
        return len(value.encode(encoding))
    return len(json.dumps(value, default=str).encode(encoding))


class MemoryBackend(Backend):
    """Back-end storing the whole tree in memory.

    Attributes:
        documents: URI to document value
        stats: URI to DocumentStat (documents and directories)
        links: URIs reported as symbolic links
        broken: URIs that cannot be read; parent listings report them with
            an error attached
        calls: Counter of primitive invocations by method name
    """

    def __init__(
        self,
        documents: Optional[Mapping[str, Any]] = None,
        directories: Iterable[str] = (),
        links: Iterable[str] = (),
        broken: Iterable[str] = (),
        mtime_ms: Optional[int] = None,
        access: Optional[AccessPredicate] = None,
        connectable: bool = True,
        encoding: str = "utf-8",
    ):
        """Initialize in-memory back-end.

        Args:
            documents: Initial documents by URI
            directories: Directories to create even when empty
            links: URIs to flag as symbolic links
            broken: URIs whose listing, loading and (for documents) stat fail
            mtime_ms: Modification time for the initial tree (now if None)
            access: Predicate (uri, level) -> bool; everything allowed if None
            connectable: What ``connect`` reports
            encoding: Encoding used to compute document sizes
        """
        super().__init__()
        self.documents: Dict[str, Any] = {}
        self.stats: Dict[str, DocumentStat] = {}
        self.links: Set[str] = {_normalize(uri) for uri in links}
        self.broken: Set[str] = {_normalize(uri) for uri in broken}
        self.access = access
        self.connectable = connectable
        self.encoding = encoding
        self.calls: Counter = Counter()
        self._children: Dict[str, Dict[str, None]] = {}

        seeded = mtime_ms if mtime_ms is not None else self._now()
        self._add_directory(".", seeded)
        for uri in directories:
            self._add_directory(_normalize(uri), seeded)
        for uri, value in (documents or {}).items():
            self._put(_normalize(uri), value, seeded)

    @staticmethod
    def _now() -> int:
        return int(time.time() * 1000)

    def _link(self, uri: str, mtime_ms: int) -> None:
        parent = posixpath.dirname(uri) or "."
        if uri == ".":
            return
        self._add_directory(parent, mtime_ms)
        self._children[parent][posixpath.basename(uri)] = None

    def _add_directory(self, uri: str, mtime_ms: int) -> None:
        if uri in self._children:
            return
        self._children[uri] = {}
        self.stats[uri] = DocumentStat(
            mtime_ms=mtime_ms,
            ctime_ms=mtime_ms,
            btime_ms=mtime_ms,
            blksize=BLOCK_SIZE,
            is_directory=True,
            is_symbolic_link=uri in self.links,
        )
        self._link(uri, mtime_ms)

    def _put(self, uri: str, value: Any, mtime_ms: int) -> None:
        self._link(uri, mtime_ms)
        self.documents[uri] = value
        self.stats[uri] = DocumentStat(
            mtime_ms=mtime_ms,
            ctime_ms=mtime_ms,
            btime_ms=self.stats[uri].btime_ms if uri in self.stats else mtime_ms,
            blksize=BLOCK_SIZE,
            size=_size_of(value, self.encoding),
            is_file=True,
            is_symbolic_link=uri in self.links,
        )

    def is_directory(self, uri: str) -> bool:
        return _normalize(uri) in self._children

    # Primitives

    async def list_dir(
        self,
        uri: str,
        depth: int = 0,
        skip_stat: bool = False,
        skip_symbolic_link: bool = False
    ) -> List[DirEntryInfo]:
        self.calls['list_dir'] += 1
        uri = _normalize(uri)
        if uri in self.broken:
            raise OSError(f"cannot list {uri}")
        if uri not in self._children:
            raise NotADirectoryError(uri)

        entries = []
        for name in self._children[uri]:
            path = self.resolve(uri, name)
            is_directory = path in self._children
            stat = self.stats[path]
            if path in self.broken:
                stat = DocumentStat(
                    is_directory=is_directory,
                    is_file=not is_directory,
                    error=ResourceError(path, 'stat_document', 'unreadable entry'),
                )
            elif skip_stat:
                stat = DocumentStat(
                    is_directory=stat.is_directory,
                    is_file=stat.is_file,
                    is_symbolic_link=stat.is_symbolic_link,
                )
            entries.append(DirEntryInfo(name=name, stat=stat, is_directory=is_directory))
        return entries

    async def load_document(self, uri: str) -> Any:
        self.calls['load_document'] += 1
        uri = _normalize(uri)
        if uri in self.broken:
            raise ResourceError(uri, 'load_document', 'unreadable entry')
        if uri not in self.documents:
            raise ResourceError(uri, 'load_document', 'not found')
        return self.documents[uri]

    async def save_document(self, uri: str, document: Any) -> bool:
        self.calls['save_document'] += 1
        uri = _normalize(uri)
        if uri in self._children:
            raise IsADirectoryError(uri)
        self._put(uri, document, self._now())
        logger.debug("Saved %s (%d bytes)", uri, self.stats[uri].size)
        return True

    async def drop_document(self, uri: str) -> bool:
        self.calls['drop_document'] += 1
        uri = _normalize(uri)
        if uri not in self.documents:
            return False
        del self.documents[uri]
        del self.stats[uri]
        parent = posixpath.dirname(uri) or "."
        self._children[parent].pop(posixpath.basename(uri), None)
        return True

    async def write_document(self, uri: str, chunk: Any) -> bool:
        self.calls['write_document'] += 1
        uri = _normalize(uri)
        current = self.documents.get(uri, chunk[:0])
        self._put(uri, current + chunk, self._now())
        return True

    async def stat_document(self, uri: str) -> DocumentStat:
        self.calls['stat_document'] += 1
        uri = _normalize(uri)
        if uri in self.broken and uri not in self._children:
            raise OSError(f"cannot stat {uri}")
        return self.stats.get(uri, DocumentStat())

    def resolve(self, *segments: str) -> str:
        return _normalize(posixpath.join(*segments)) if segments else "."

    async def ensure_access(self, uri: str, level: AccessLevel) -> bool:
        self.calls['ensure_access'] += 1
        if self.access is None:
            return True
        return bool(self.access(uri, level))

    async def connect(self) -> bool:
        self.calls['connect'] += 1
        return self.connectable

    def _define_capabilities(self) -> Set[str]:
        return super()._define_capabilities() | {
            'save',
            'drop',
            'write',
        }

    def __repr__(self) -> str:
        return f"MemoryBackend({len(self.documents)} documents, {len(self._children)} directories)"
