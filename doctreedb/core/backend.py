"""Storage back-end abstraction.

Defines how different storage media (local filesystem, HTTP index,
in-memory mock) are adapted to the document store. A Store never touches
storage directly; it calls these primitives.
"""

import posixpath
from abc import ABC, abstractmethod
from typing import Any, List, Set

from ..config import AccessLevel
from ..errors import BackendNotImplementedError
from .stat import DirEntryInfo, DocumentStat


class Backend(ABC):
    """Abstract base class for storage back-ends.

    Required primitives are abstract. Optional primitives have defaults:
    write operations raise BackendNotImplementedError, access is always
    granted and connecting always succeeds.
    """

    def __init__(self):
        self._capabilities = self._define_capabilities()

    @abstractmethod
    async def list_dir(
        self,
        uri: str,
        depth: int = 0,
        skip_stat: bool = False,
        skip_symbolic_link: bool = False
    ) -> List[DirEntryInfo]:
        """List the immediate children of a directory.

        Args:
            uri: Directory URI
            depth: Depth the children will be reported at
            skip_stat: Full stat is not required, kind flags are enough
            skip_symbolic_link: Caller will not descend into symlinks

        Returns:
            Children in the order the medium reports them
        """
        pass

    @abstractmethod
    async def load_document(self, uri: str) -> Any:
        """Read the content of a document."""
        pass

    @abstractmethod
    async def stat_document(self, uri: str) -> DocumentStat:
        """Read metadata of a document.

        Missing documents should produce an empty DocumentStat rather than
        raise, so that ``exists`` can tell them apart.
        """
        pass

    @abstractmethod
    def resolve(self, *segments: str) -> str:
        """Join segments into a URI relative to the medium root."""
        pass

    # Optional methods with default implementations

    def relative(self, base: str, target: str) -> str:
        """Express target relative to base.

        Default implementation uses POSIX path semantics.
        """
        return posixpath.relpath(target, base or ".")

    def absolute(self, *segments: str) -> str:
        """Return an absolute URI. Defaults to ``resolve``."""
        return self.resolve(*segments)

    async def save_document(self, uri: str, document: Any) -> bool:
        """Persist a document. Must be overridden by writable back-ends."""
        raise BackendNotImplementedError("save_document", self)

    async def drop_document(self, uri: str) -> bool:
        """Delete a document. Must be overridden by writable back-ends."""
        raise BackendNotImplementedError("drop_document", self)

    async def write_document(self, uri: str, chunk: Any) -> bool:
        """Append a chunk to a document.

        Returns:
            False unless the back-end supports streaming writes
        """
        return False

    async def ensure_access(self, uri: str, level: AccessLevel) -> bool:
        """Access predicate; the default grants everything."""
        return True

    async def connect(self) -> bool:
        """Open the medium.

        Returns:
            True if connected. Back-ends that cannot connect return False
            instead of raising.
        """
        return True

    async def disconnect(self) -> None:
        pass

    def supports_capability(self, capability: str) -> bool:
        """Check if back-end supports a specific capability.

        Args:
            capability: Capability name

        Returns:
            True if capability is supported
        """
        return capability in self._capabilities

    def _define_capabilities(self) -> Set[str]:
        """Define back-end capabilities.

        Override in subclasses to declare supported features.

        Returns:
            Set of capability names
        """
        return {
            'list_dir',
            'load',
            'stat',
        }

    async def close(self):
        """Clean up back-end resources.

        Override if the back-end holds handles (sessions, files, etc.)
        """
        pass

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
