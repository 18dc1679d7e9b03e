"""Core abstractions for DocTreeDB.

This module defines the document model, the back-end interface and the
store with its traversal and streaming engines.
"""

from .stat import DocumentStat, DirEntryInfo, UNLOADED
from .entry import DocumentEntry, StreamEntry, TotalSize
from .backend import Backend
from .traverser import DocumentTraverser
from .progress import StreamProgressTracker
from .store import Store

__all__ = [
    # Model
    'DocumentStat',
    'DirEntryInfo',
    'UNLOADED',
    'DocumentEntry',
    'StreamEntry',
    'TotalSize',
    # Back-end
    'Backend',
    # Engines
    'DocumentTraverser',
    'StreamProgressTracker',
    # Store
    'Store',
]
