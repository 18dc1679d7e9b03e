"""Traversal entries.

``DocumentEntry`` is one tree node produced by ``Store.read_dir``;
``StreamEntry`` is the cumulative snapshot produced by
``Store.find_stream`` after each entry.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from .stat import DocumentStat


@dataclass
class DocumentEntry:
    """A node seen during traversal.

    Attributes:
        name: Leaf name (derived from path when empty)
        path: Full URI
        parent: URI of the containing directory, empty at depth 0
        depth: 0 for the start URI's direct children
        stat: Metadata of the document
        fulfilled: Set by the progress tracker once all children were seen
    """

    name: str = ""
    path: str = ""
    parent: str = ""
    depth: int = 0
    stat: DocumentStat = field(default_factory=DocumentStat)
    fulfilled: bool = False

    def __post_init__(self):
        self.name = str(self.name)
        self.path = str(self.path)
        self.parent = str(self.parent)
        self.depth = int(self.depth)
        self.stat = DocumentStat.coerce(self.stat)
        self.fulfilled = bool(self.fulfilled)
        if not self.name and self.path:
            self.name = self.path.split("/")[-1]

    @property
    def is_directory(self) -> bool:
        return self.stat.is_directory

    @property
    def is_file(self) -> bool:
        return self.stat.is_file

    @property
    def is_symbolic_link(self) -> bool:
        return self.stat.is_symbolic_link

    def __str__(self) -> str:
        if self.is_directory:
            kind = "D"
        elif self.is_file:
            kind = "F"
        elif self.is_symbolic_link:
            kind = "L"
        else:
            kind = "?"
        return " ".join(part for part in (kind, self.path or self.name) if part)

    @classmethod
    def coerce(cls, value: Any) -> "DocumentEntry":
        """Return value if it is an entry, otherwise build one from a mapping."""
        if isinstance(value, cls):
            return value
        return cls(**dict(value or {}))


@dataclass(frozen=True)
class TotalSize:
    """Running byte totals of a stream."""

    dirs: int = 0
    files: int = 0


@dataclass(frozen=True)
class StreamEntry:
    """Snapshot emitted by ``find_stream`` after one traversal step.

    The collections are copied per step; the DocumentEntry objects inside
    them are shared, so fulfillment marked later shows through earlier
    snapshots.
    """

    file: DocumentEntry = field(default_factory=DocumentEntry)
    files: List[DocumentEntry] = field(default_factory=list)
    dirs: Dict[str, DocumentEntry] = field(default_factory=dict)
    top: Dict[str, DocumentEntry] = field(default_factory=dict)
    errors: Dict[str, BaseException] = field(default_factory=dict)
    progress: float = 0.0
    total_size: TotalSize = field(default_factory=TotalSize)

    def __post_init__(self):
        object.__setattr__(self, 'file', DocumentEntry.coerce(self.file))
        object.__setattr__(self, 'files', [DocumentEntry.coerce(f) for f in self.files])
        object.__setattr__(self, 'dirs', dict(self.dirs))
        object.__setattr__(self, 'top', dict(self.top))
        object.__setattr__(self, 'errors', dict(self.errors))
        object.__setattr__(self, 'progress', float(self.progress))
        if isinstance(self.total_size, Mapping):
            object.__setattr__(self, 'total_size', TotalSize(**self.total_size))
