"""DocTreeDB - storage-agnostic document tree.

DocTreeDB presents a hierarchical set of named documents through one
cached model, whatever medium holds them: local filesystem, HTTP index
or memory. A Store walks the tree with async generators and can stream
it with incremental progress.

    from doctreedb import Store, MemoryBackend

    store = Store(MemoryBackend({"a/x.txt": "x", "b.txt": "b"}))
    async for step in store.find_stream():
        print(step.file, step.progress)
"""

__version__ = "0.1.0"

# Core must be imported before the error policies it depends on
from .core import (
    UNLOADED,
    Backend,
    DirEntryInfo,
    DocumentEntry,
    DocumentStat,
    DocumentTraverser,
    Store,
    StreamEntry,
    StreamProgressTracker,
    TotalSize,
)
from .adapters import MemoryBackend
from .config import (
    AccessLevel,
    FindStreamOptions,
    ProgressEstimator,
    ReadDirOptions,
    SortKey,
    SortOrder,
)
from .data import (
    DEFAULT_CODEC,
    PathCodec,
    PathCodecConfig,
    find,
    find_value,
    flatten,
    merge,
    unflatten,
)
from .error_policies import (
    CaptureErrorsPolicy,
    ErrorPolicy,
    FailFastPolicy,
    ThresholdPolicy,
)
from .errors import (
    AccessDeniedError,
    BackendNotImplementedError,
    DocTreeError,
    NotConnectedError,
    ResourceError,
    StructuralInconsistencyError,
)

__all__ = [
    "__version__",
    # Store and model
    "Store",
    "Backend",
    "MemoryBackend",
    "DocumentStat",
    "DirEntryInfo",
    "DocumentEntry",
    "StreamEntry",
    "TotalSize",
    "UNLOADED",
    "DocumentTraverser",
    "StreamProgressTracker",
    # Configuration
    "AccessLevel",
    "SortKey",
    "SortOrder",
    "ProgressEstimator",
    "ReadDirOptions",
    "FindStreamOptions",
    # Path data
    "PathCodec",
    "PathCodecConfig",
    "DEFAULT_CODEC",
    "flatten",
    "unflatten",
    "find",
    "find_value",
    "merge",
    # Errors
    "DocTreeError",
    "AccessDeniedError",
    "BackendNotImplementedError",
    "StructuralInconsistencyError",
    "ResourceError",
    "NotConnectedError",
    "ErrorPolicy",
    "FailFastPolicy",
    "CaptureErrorsPolicy",
    "ThresholdPolicy",
]
