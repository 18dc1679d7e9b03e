"""Document store.

The Store owns the cached view of a document tree: the known documents
(``data``), their metadata (``meta``), the attached branch stores and the
connection state. Every storage operation is delegated to a Backend
after the back-end's access predicate has approved it.
"""

import logging
import posixpath
import time
from dataclasses import replace
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, Optional, Union

from ..config import AccessLevel, FindStreamOptions, ReadDirOptions, build_options
from ..error_policies import CaptureErrorsPolicy, ErrorPolicy
from ..errors import (
    AccessDeniedError,
    BackendNotImplementedError,
    DocTreeError,
    NotConnectedError,
    ResourceError,
)
from .backend import Backend
from .entry import DocumentEntry, StreamEntry
from .progress import StreamProgressTracker
from .stat import UNLOADED, DirEntryInfo, DocumentStat
from .traverser import DocumentTraverser

logger = logging.getLogger(__name__)

FindTarget = Union[str, Callable[[str, Any], bool]]


def _now_ms() -> int:
    return int(time.time() * 1000)


class Store:
    """Cached, back-end agnostic document tree.

    Attributes:
        backend: Storage primitives
        root: Logical base URI of this store
        cwd: Working directory used to resolve relative URIs
        encoding: Text encoding of the documents
        connected: Whether the back-end connection is open
        loaded: Whether the whole tree under root was enumerated once
        data: URI to document value, or UNLOADED when only existence is known
        meta: URI to DocumentStat
        dbs: Attached branch stores (not owned, not copied)
        error_policy: Decides the outcome of back-end failures during traversal
    """

    def __init__(
        self,
        backend: Backend,
        root: str = ".",
        cwd: str = ".",
        encoding: str = "utf-8",
        data: Optional[Mapping[str, Any]] = None,
        meta: Optional[Mapping[str, Any]] = None,
        connected: bool = False,
        loaded: bool = False,
        dbs: Optional[List["Store"]] = None,
        error_policy: Optional[ErrorPolicy] = None,
    ):
        """Initialize store.

        Args:
            backend: Back-end implementing the storage primitives
            root: Logical base URI
            cwd: Working directory for relative resolution
            encoding: Document text encoding
            data: Seed for the document cache
            meta: Seed for the metadata cache (DocumentStat or mappings)
            connected: Initial connection state
            loaded: Mark the tree as already enumerated
            dbs: Initially attached stores
            error_policy: Policy for traversal failures (captures by default)
        """
        if not isinstance(backend, Backend):
            raise TypeError(f"backend must be a Backend, got {type(backend).__name__}")
        self.backend = backend
        self.root = root
        self.cwd = cwd
        self.encoding = encoding
        self.data: Dict[str, Any] = dict(data or {})
        self.meta: Dict[str, DocumentStat] = {
            uri: DocumentStat.coerce(stat) for uri, stat in (meta or {}).items()
        }
        self.connected = connected
        self.loaded = loaded
        self.dbs: List[Store] = list(dbs or [])
        self.error_policy = error_policy or CaptureErrorsPolicy()
        self._traverser = DocumentTraverser(self)

    @classmethod
    def coerce(cls, value: Union["Store", Mapping[str, Any]]) -> "Store":
        """Return a Store unchanged or build one from constructor keywords."""
        if isinstance(value, Store):
            return value
        return cls(**dict(value))

    def __str__(self) -> str:
        return f"{type(self).__name__} {self.root} [{self.encoding}]"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(root={self.root!r}, cwd={self.cwd!r}, backend={self.backend!r})"

    # Connection

    async def connect(self) -> None:
        """Open the back-end connection (idempotent).

        A back-end that cannot connect leaves ``connected`` False.
        """
        if self.connected:
            return
        self.connected = bool(await self.backend.connect())
        if self.connected:
            logger.info("Connected %s", self)
        else:
            logger.warning("Back-end refused connection for %s", self)

    async def disconnect(self) -> None:
        if self.connected:
            await self.backend.disconnect()
        self.connected = False
        logger.info("Disconnected %s", self)

    async def require_connected(self) -> None:
        """Connect if needed.

        Raises:
            NotConnectedError: If the store is still disconnected afterwards
        """
        if not self.connected:
            await self.connect()
        if not self.connected:
            raise NotConnectedError(f"{self} is not connected")

    async def __aenter__(self) -> "Store":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    # Access and back-end calls

    async def ensure_access(self, uri: str, level: Union[AccessLevel, str] = AccessLevel.READ) -> bool:
        """Ask the back-end whether uri may be used at level.

        Args:
            uri: Document URI
            level: AccessLevel or one of "r", "w", "d"

        Returns:
            True when access is granted

        Raises:
            AccessDeniedError: If the back-end rejects the request
        """
        level = AccessLevel.parse(level)
        if not await self.backend.ensure_access(uri, level):
            raise AccessDeniedError(uri, level.value)
        return True

    def _require_capability(self, capability: str, operation: str) -> None:
        if not self.backend.supports_capability(capability):
            raise BackendNotImplementedError(operation, self.backend)

    async def _guarded(self, method_name: str, uri: str, call: Callable[[], Any]) -> Any:
        try:
            return await call()
        except ResourceError as exc:
            return await self.error_policy.handle(exc, method_name, uri)
        except DocTreeError:
            raise
        except Exception as exc:
            return await self.error_policy.handle(exc, method_name, uri)

    async def stat_document(self, uri: str) -> DocumentStat:
        """Stat through the error policy (used by traversal)."""
        stat = await self._guarded('stat_document', uri, lambda: self.backend.stat_document(uri))
        return DocumentStat.coerce(stat)

    async def list_dir(self, uri: str, options: ReadDirOptions) -> List[DirEntryInfo]:
        """List children through the error policy (used by traversal)."""
        logger.debug("Listing %s at depth %d", uri, options.depth)
        children = await self._guarded('list_dir', uri, lambda: self.backend.list_dir(
            uri,
            depth=options.depth,
            skip_stat=options.skip_stat,
            skip_symbolic_link=options.skip_symbolic_link,
        ))
        return list(children or [])

    def resolve(self, *segments: str) -> str:
        return self.backend.resolve(*segments)

    def relative(self, base: str, target: str) -> str:
        return self.backend.relative(base, target)

    def absolute(self, *segments: str) -> str:
        return self.backend.absolute(*segments)

    @staticmethod
    def extname(uri: str) -> str:
        """Extension of the last segment including the dot, or empty string."""
        name = posixpath.basename(uri)
        return "." + name.rsplit(".", 1)[1] if "." in name else ""

    # Documents

    async def get(self, uri: str) -> Any:
        """Return a document, loading it from the back-end if not cached."""
        await self.ensure_access(uri, AccessLevel.READ)
        if self.data.get(uri, UNLOADED) is UNLOADED:
            logger.debug("Loading %s", uri)
            self.data[uri] = await self.backend.load_document(uri)
        return self.data[uri]

    async def set(self, uri: str, value: Any) -> Any:
        """Cache a document value and stamp its modification time.

        The value stays in the cache until ``push`` persists it.
        """
        await self.ensure_access(uri, AccessLevel.WRITE)
        self.data[uri] = value
        existing = self.meta.get(uri)
        if existing is None:
            self.meta[uri] = DocumentStat(mtime_ms=_now_ms())
        else:
            self.meta[uri] = replace(existing, mtime_ms=_now_ms())
        return value

    async def stat(self, uri: str) -> DocumentStat:
        """Return cached metadata or fetch and cache it."""
        await self.ensure_access(uri, AccessLevel.READ)
        if uri not in self.meta:
            self.meta[uri] = DocumentStat.coerce(await self.backend.stat_document(uri))
        return self.meta[uri]

    async def push(self, uri: Optional[str] = None) -> List[str]:
        """Persist cached documents that are newer than the back-end copy.

        Write access is checked for every considered URI before anything
        is saved.

        Args:
            uri: Only consider this URI (all cached documents when None)

        Returns:
            URIs that were saved
        """
        keys = [uri] if uri is not None else list(self.data)
        for key in keys:
            await self.ensure_access(key, AccessLevel.WRITE)
        self._require_capability('save', 'save_document')

        changed = []
        for key in keys:
            value = self.data.get(key, UNLOADED)
            cached = self.meta.get(key)
            if value is UNLOADED or cached is None:
                continue
            current = DocumentStat.coerce(await self.backend.stat_document(key))
            if cached.mtime_ms > current.mtime_ms:
                logger.debug("Saving %s", key)
                await self.backend.save_document(key, value)
                changed.append(key)
        if changed:
            logger.info("Pushed %d document(s) from %s", len(changed), self)
        return changed

    async def move_document(self, from_uri: str, to_uri: str) -> bool:
        """Copy a document to a new URI. The source is left in place."""
        await self.ensure_access(to_uri, AccessLevel.WRITE)
        await self.ensure_access(from_uri, AccessLevel.READ)
        self._require_capability('save', 'save_document')
        document = await self.get(from_uri)
        return await self.backend.save_document(to_uri, document)

    async def drop(self, uri: str) -> bool:
        """Delete a document from the back-end and forget it."""
        await self.ensure_access(uri, AccessLevel.DELETE)
        dropped = await self.backend.drop_document(uri)
        if dropped:
            self.data.pop(uri, None)
            self.meta.pop(uri, None)
        return dropped

    async def write_document(self, uri: str, chunk: Any) -> bool:
        """Append a chunk through the back-end, if it supports streaming writes."""
        await self.ensure_access(uri, AccessLevel.WRITE)
        return await self.backend.write_document(uri, chunk)

    # Branches

    def attach(self, db: "Store") -> None:
        if not isinstance(db, Store):
            raise TypeError("It is possible to attach only Store or extended stores")
        self.dbs.append(db)

    def detach(self, db: "Store") -> Union[List["Store"], bool]:
        """Remove the first attached store with the same root and cwd.

        Returns:
            Single-element list with the removed store, or False
        """
        for index, attached in enumerate(self.dbs):
            if attached.root == db.root and attached.cwd == db.cwd:
                return [self.dbs.pop(index)]
        return False

    def extract(self, prefix: str) -> "Store":
        """Create a store over the subset of the caches below prefix.

        Keys are kept when they start with ``prefix + "/"`` and are stored
        without that part. The source store is not changed.

        Args:
            prefix: URI of the branch to extract

        Returns:
            New store of the same type sharing the back-end
        """
        prefix = prefix.rstrip("/")
        marker = prefix + "/"
        root = prefix if self.root in (".", "") else f"{self.root}/{prefix}"
        return type(self)(
            self.backend,
            root=root,
            encoding=self.encoding,
            data={key[len(marker):]: value for key, value in self.data.items() if key.startswith(marker)},
            meta={key[len(marker):]: value for key, value in self.meta.items() if key.startswith(marker)},
            error_policy=self.error_policy,
        )

    # Traversal

    def read_dir(
        self,
        uri: str = ".",
        options: Optional[ReadDirOptions] = None,
        **kwargs: Any
    ) -> AsyncIterator[DocumentEntry]:
        """Walk the tree under uri, directories before files on each level.

        Args:
            uri: Start URI
            options: Traversal options
            **kwargs: Overrides for ReadDirOptions fields

        Returns:
            Async iterator of DocumentEntry
        """
        return self._traverser.read_dir(uri, build_options(ReadDirOptions, options, **kwargs))

    def read_branch(self, uri: str, depth: int = 0) -> AsyncIterator[DocumentEntry]:
        return self.read_dir(uri, depth=depth)

    def find(self, target: FindTarget, depth: int = 0) -> AsyncIterator[str]:
        """Find cached URIs, enumerating the whole tree on first use.

        Args:
            target: Literal URI, or predicate over (uri, cached value)
            depth: Depth assigned to the root's children

        Returns:
            Async iterator of matching URIs
        """
        return self._traverser.find(target, depth)

    def find_stream(
        self,
        uri: str = ".",
        options: Optional[FindStreamOptions] = None,
        **kwargs: Any
    ) -> AsyncIterator[StreamEntry]:
        """Walk the tree under uri reporting cumulative progress.

        Args:
            uri: Start URI, resolved against cwd
            options: Stream options
            **kwargs: Overrides for FindStreamOptions fields

        Returns:
            Async iterator of StreamEntry, one per traversed document
        """
        options = build_options(FindStreamOptions, options, **kwargs)
        problems = options.validate()
        if problems:
            raise ValueError("; ".join(problems))
        return StreamProgressTracker(self, options).stream(uri)
