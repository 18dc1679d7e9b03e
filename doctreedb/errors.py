"""Exception taxonomy for DocTreeDB.

Access denials, misconfigured back-ends and structural inconsistencies
abort the operation in flight. Resource errors raised by a back-end are
handed to an error policy, which by default captures them per entry so
one bad document does not stop the enumeration of the rest of the tree.
"""

from typing import Optional


class DocTreeError(Exception):
    """Base class for all DocTreeDB errors."""


class AccessDeniedError(DocTreeError, PermissionError):
    """The back-end access predicate rejected a URI at a given level."""

    def __init__(self, uri: str, level: str):
        self.uri = uri
        self.level = level
        super().__init__(f"Access denied [{level}]: {uri}")


class BackendNotImplementedError(DocTreeError, NotImplementedError):
    """A storage operation was invoked that the back-end does not provide."""

    def __init__(self, operation: str, backend: Optional[object] = None):
        self.operation = operation
        self.backend = backend
        owner = type(backend).__name__ if backend is not None else "Backend"
        super().__init__(f"{owner} does not implement {operation}")


class StructuralInconsistencyError(DocTreeError, ValueError):
    """Traversal or reconstruction met data that cannot be placed in the tree."""

    def __init__(self, message: str, path: str = ""):
        self.path = path
        super().__init__(f"{message}: {path}" if path else message)


class ResourceError(DocTreeError, OSError):
    """A back-end primitive failed for one URI."""

    def __init__(self, uri: str, operation: str, reason: str = ""):
        self.uri = uri
        self.operation = operation
        self.reason = reason
        detail = f" ({reason})" if reason else ""
        super().__init__(f"{operation} failed for {uri}{detail}")


class NotConnectedError(DocTreeError, ConnectionError):
    """The store could not establish its back-end connection."""


__all__ = [
    'DocTreeError',
    'AccessDeniedError',
    'BackendNotImplementedError',
    'StructuralInconsistencyError',
    'ResourceError',
    'NotConnectedError',
]
