"""Configuration system for DocTreeDB.

This module defines how callers specify their traversal and streaming
requirements: access levels, sort keys, progress estimation and the
option objects accepted by ``Store.read_dir`` and ``Store.find_stream``.
"""

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Callable, List, Optional, Union


class AccessLevel(Enum):
    """Access level requested from a back-end before touching storage."""
    READ = "r"
    WRITE = "w"
    DELETE = "d"

    @classmethod
    def parse(cls, level: Union["AccessLevel", str]) -> "AccessLevel":
        """Convert a level given as enum member or short code.

        Args:
            level: ``AccessLevel`` or one of ``"r"``, ``"w"``, ``"d"``

        Returns:
            The matching AccessLevel

        Raises:
            TypeError: If level is neither a string nor an AccessLevel
            ValueError: If the string is not a known level
        """
        if isinstance(level, cls):
            return level
        if not isinstance(level, str):
            raise TypeError(f"Access level must be a string or AccessLevel, got {type(level).__name__}")
        try:
            return cls(level)
        except ValueError:
            raise ValueError(
                "Access level must be one of [r, w, d]\n"
                "r = read\n"
                "w = write\n"
                "d = delete"
            ) from None


class SortKey(Enum):
    """Key used to order the running file list of a stream."""
    NAME = "name"
    MTIME = "mtime"
    SIZE = "size"


class SortOrder(Enum):
    """Direction of the stream ordering."""
    ASC = "asc"
    DESC = "desc"


class ProgressEstimator(Enum):
    """How ``find_stream`` turns fulfillment into a progress value.

    LEGACY computes the top-level ratio and then overwrites it with the
    ratio of fulfilled directories overall. TOP_LEVEL keeps the first
    ratio for entries below depth 0.
    """
    LEGACY = "legacy"
    TOP_LEVEL = "top_level"


UriFilter = Callable[[str], bool]


def _accept_all(uri: str) -> bool:
    return True


@dataclass
class ReadDirOptions:
    """Options for a recursive directory traversal."""

    depth: int = 0                               # Depth assigned to the start URI's children
    skip_stat: bool = False                      # Back-end may skip full stat of children
    skip_symbolic_link: bool = False             # Do not recurse into symlinked directories
    filter: Optional[UriFilter] = None           # Predicate over resolved URIs
    max_depth: Optional[int] = None              # Deepest depth to yield

    def accepts(self, uri: str) -> bool:
        """Check if a URI passes the caller filter.

        Args:
            uri: Resolved URI

        Returns:
            True if no filter is set or the filter accepts the URI
        """
        return (self.filter or _accept_all)(uri)

    def should_explore(self, depth: int) -> bool:
        """Check if directories at this depth should be listed.

        Args:
            depth: Depth of the entries the listing would produce

        Returns:
            True if within max_depth or no limit is set
        """
        if self.max_depth is None:
            return True
        return depth <= self.max_depth

    def deeper(self) -> "ReadDirOptions":
        """Copy of these options one level further down."""
        return replace(self, depth=self.depth + 1)


@dataclass
class FindStreamOptions:
    """Options for the progress-tracking stream."""

    filter: Optional[UriFilter] = None
    limit: int = -1                              # Stop after this many entries when > 0
    sort: SortKey = SortKey.NAME
    order: SortOrder = SortOrder.ASC
    skip_stat: bool = False
    skip_symbolic_link: bool = False
    progress: ProgressEstimator = ProgressEstimator.LEGACY

    def __post_init__(self):
        # Plain strings such as "mtime" or "desc" are accepted
        self.sort = SortKey(self.sort)
        self.order = SortOrder(self.order)
        self.progress = ProgressEstimator(self.progress)

    def read_dir_options(self) -> ReadDirOptions:
        """Build the traversal options this stream drives."""
        return ReadDirOptions(
            skip_stat=self.skip_stat,
            skip_symbolic_link=self.skip_symbolic_link,
            filter=self.filter,
        )

    def validate(self) -> List[str]:
        """Validate configuration for consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        if not isinstance(self.limit, int):
            errors.append("limit must be an integer")
        if self.filter is not None and not callable(self.filter):
            errors.append("filter must be callable")
        return errors


def build_options(cls: Any, options: Any = None, **overrides: Any) -> Any:
    """Merge an options object with keyword overrides.

    Args:
        cls: Options dataclass to build
        options: Existing instance or None for defaults
        **overrides: Field values that take precedence

    Returns:
        New options instance

    Raises:
        TypeError: If an override does not name a field of cls
    """
    known = {f.name for f in fields(cls)}
    unknown = set(overrides) - known
    if unknown:
        raise TypeError(f"Unknown {cls.__name__} option(s): {', '.join(sorted(unknown))}")
    base = options if options is not None else cls()
    if not overrides:
        return base
    return replace(base, **overrides)


__all__ = [
    'AccessLevel',
    'SortKey',
    'SortOrder',
    'ProgressEstimator',
    'UriFilter',
    'ReadDirOptions',
    'FindStreamOptions',
    'build_options',
]
