"""
Construct OS Persistence Backends

Embedded storage backends for the local snapshot store:
- SQLite (file or in-memory)
"""

from constructos.persistence.backends.base import BaseBackend
from constructos.persistence.backends.sqlite import SQLiteBackend

__all__ = [
    "BaseBackend",
    "SQLiteBackend",
]
