"""Back-ends shipped with DocTreeDB.

Concrete media (filesystem, HTTP) live outside this package; the
in-memory back-end serves as reference implementation and test double.
"""

from .memory import MemoryBackend

__all__ = [
    'MemoryBackend',
]
