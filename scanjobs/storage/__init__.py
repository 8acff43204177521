"""Job stores for persisting scan state.

This module provides:
- JobStore: Abstract get / patch / insert record store
- MemoryJobStore: Dictionary-backed store
- FileJobStore: JSON file store
"""

from scanjobs.storage.base import JobStore
from scanjobs.storage.file_store import FileJobStore
from scanjobs.storage.memory_store import MemoryJobStore

__all__ = [
    "FileJobStore",
    "JobStore",
    "MemoryJobStore",
]
