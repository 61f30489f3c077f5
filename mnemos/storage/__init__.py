"""mnemos.storage — Storage contract, in-memory backend and encryption decorator."""

from mnemos.storage.base import MemoryStore, QueryOptions, SortKey
from mnemos.storage.encrypted import Base64Cipher, Cipher, EncryptedStore
from mnemos.storage.memory import InMemoryStore

__all__ = [
    "Base64Cipher",
    "Cipher",
    "EncryptedStore",
    "InMemoryStore",
    "MemoryStore",
    "QueryOptions",
    "SortKey",
]
