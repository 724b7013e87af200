"""
Interfaces - Protocols for dependency injection.

- cache_protocol.py: async key-value cache backend
- catalog_protocol.py: catalog store and listening-history provider
"""

from .cache_protocol import CacheProtocol
from .catalog_protocol import CatalogStore, ListeningHistoryProvider

__all__ = [
    "CacheProtocol",
    "CatalogStore",
    "ListeningHistoryProvider",
]
