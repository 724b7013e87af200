"""
Connectors - Backend implementations.

- redis_cache.py: Redis-based cache (production, distributed)
- inmemory_cache.py: In-memory cache (unit tests, local runs)
- sqlite_catalog.py: SQLite catalog + listening history (CLI, local worker)
- inmemory_catalog.py: Dict-backed catalog + history (unit tests)
"""

from .redis_cache import RedisCache
from .inmemory_cache import InMemoryCache
from .sqlite_catalog import SQLiteCatalog
from .inmemory_catalog import InMemoryCatalog, InMemoryHistory

__all__ = [
    "RedisCache",
    "InMemoryCache",
    "SQLiteCatalog",
    "InMemoryCatalog",
    "InMemoryHistory",
]
