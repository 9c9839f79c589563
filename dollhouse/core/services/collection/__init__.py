"""Collection index services.

Stale-while-revalidate cache over the published collection index, plus
read-only browsing on top of it.
"""

from dollhouse.core.services.collection.browser import CollectionIndexBrowser
from dollhouse.core.services.collection.circuit_breaker import CircuitBreaker
from dollhouse.core.services.collection.index_manager import CollectionIndexManager

__all__ = [
    "CollectionIndexManager",
    "CollectionIndexBrowser",
    "CircuitBreaker",
]
