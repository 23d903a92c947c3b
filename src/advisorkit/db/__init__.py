from .storage import (
    KeyValueStore,
    MemoryStore,
    SqliteStore,
    StorageError,
    StorageQuotaExceeded,
    StorageUnavailable,
)

__all__ = ['KeyValueStore', 'MemoryStore', 'SqliteStore', 'StorageError', 'StorageQuotaExceeded', 'StorageUnavailable']
