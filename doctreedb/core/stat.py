"""Document metadata snapshot.

``DocumentStat`` mirrors the fields of a POSIX stat result so that any
back-end (filesystem, HTTP index, in-memory mock) can describe a
document the same way. Timestamps are epoch milliseconds.
"""

import os
import stat as stat_module
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

_KIND_FLAGS = (
    'is_block_device',
    'is_directory',
    'is_file',
    'is_fifo',
    'is_socket',
    'is_symbolic_link',
)

# Keys used by JavaScript-style stat objects (fs.Stats and friends)
_CAMEL_CASE = {
    'atimeMs': 'atime_ms',
    'btimeMs': 'btime_ms',
    'birthtimeMs': 'btime_ms',
    'ctimeMs': 'ctime_ms',
    'mtimeMs': 'mtime_ms',
    'isBlockDevice': 'is_block_device',
    'isDirectory': 'is_directory',
    'isFile': 'is_file',
    'isFIFO': 'is_fifo',
    'isSocket': 'is_socket',
    'isSymbolicLink': 'is_symbolic_link',
}


def _to_datetime(ms: float) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


@dataclass(frozen=True)
class DocumentStat:
    """Immutable metadata for one URI.

    Kind flags may be given as zero-argument callables (a lazy stat from
    a back-end); they are resolved once at construction.
    """

    atime_ms: float = 0
    btime_ms: float = 0
    ctime_ms: float = 0
    mtime_ms: float = 0
    blksize: int = 0
    blocks: int = 0
    dev: int = 0
    gid: int = 0
    ino: int = 0
    mode: int = 0
    nlink: int = 0
    rdev: int = 0
    size: int = 0
    uid: int = 0
    is_block_device: bool = False
    is_directory: bool = False
    is_file: bool = False
    is_fifo: bool = False
    is_socket: bool = False
    is_symbolic_link: bool = False
    error: Optional[BaseException] = None

    def __post_init__(self):
        for name in _KIND_FLAGS:
            value = getattr(self, name)
            if callable(value):
                value = value()
            object.__setattr__(self, name, bool(value))

    @property
    def atime(self) -> datetime:
        """Access time as UTC datetime."""
        return _to_datetime(self.atime_ms)

    @property
    def btime(self) -> datetime:
        """Birth time as UTC datetime."""
        return _to_datetime(self.btime_ms)

    @property
    def ctime(self) -> datetime:
        """Change time as UTC datetime."""
        return _to_datetime(self.ctime_ms)

    @property
    def mtime(self) -> datetime:
        """Modification time as UTC datetime."""
        return _to_datetime(self.mtime_ms)

    @property
    def exists(self) -> bool:
        """Loose existence check.

        True when a block size or a modification time was observed, so an
        empty stat ("not found" or "not yet read") stays distinguishable
        from an empty document that is present.
        """
        return bool(self.blksize or self.mtime_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def coerce(cls, value: Any) -> "DocumentStat":
        """Build a DocumentStat from an instance, mapping or None.

        Args:
            value: Existing DocumentStat, mapping of field values (snake_case
                or camelCase keys) or None for an empty stat

        Returns:
            DocumentStat instance (the same object if one was given)
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return cls()
        if not isinstance(value, Mapping):
            raise TypeError(f"Cannot build DocumentStat from {type(value).__name__}")
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, item in value.items():
            name = _CAMEL_CASE.get(key, key)
            if name in known:
                kwargs[name] = item
        return cls(**kwargs)

    @classmethod
    def from_os_stat(cls, st: os.stat_result, error: Optional[BaseException] = None) -> "DocumentStat":
        """Build a DocumentStat from an ``os.stat``/``os.lstat`` result.

        Args:
            st: Stat result from the operating system
            error: Optional error to attach

        Returns:
            DocumentStat with times converted to milliseconds
        """
        mode = st.st_mode
        birth = getattr(st, 'st_birthtime', st.st_ctime)
        return cls(
            atime_ms=st.st_atime * 1000,
            btime_ms=birth * 1000,
            ctime_ms=st.st_ctime * 1000,
            mtime_ms=st.st_mtime * 1000,
            blksize=getattr(st, 'st_blksize', 0),
            blocks=getattr(st, 'st_blocks', 0),
            dev=st.st_dev,
            gid=st.st_gid,
            ino=st.st_ino,
            mode=mode,
            nlink=st.st_nlink,
            rdev=getattr(st, 'st_rdev', 0),
            size=st.st_size,
            uid=st.st_uid,
            is_block_device=stat_module.S_ISBLK(mode),
            is_directory=stat_module.S_ISDIR(mode),
            is_file=stat_module.S_ISREG(mode),
            is_fifo=stat_module.S_ISFIFO(mode),
            is_socket=stat_module.S_ISSOCK(mode),
            is_symbolic_link=stat_module.S_ISLNK(mode),
            error=error,
        )


class _Unloaded:
    """Cache marker: the document exists but its content was not fetched."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNLOADED"

    def __reduce__(self):
        return (_Unloaded, ())


UNLOADED = _Unloaded()


@dataclass
class DirEntryInfo:
    """One child reported by ``Backend.list_dir``."""

    name: str
    stat: DocumentStat
    is_directory: bool = False

    def __post_init__(self):
        self.stat = DocumentStat.coerce(self.stat)
        if self.is_directory and not self.stat.is_directory:
            # listings made without a full stat still know the kind
            self.stat = replace(self.stat, is_directory=True)
        self.is_directory = self.stat.is_directory
