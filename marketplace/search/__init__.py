"""
Search Module
Extension search with an Elasticsearch-backed index and an in-memory database fallback.
"""

from .models import (
    ExtensionSnapshot,
    SearchableExtension,
    QueryOptions,
    PageRequest,
    SearchResult,
    InvalidSearchOptionsError,
)
from .relevance import (
    RelevanceConfig,
    RelevanceStats,
    RelevanceScorer,
    RelevanceService,
    count_saturation,
)
from .rwlock import ReadWriteLock
from .index_manager import SearchIndex, SearchIndexError
from .fallback import DatabaseSearch
from .search_service import (
    SearchService,
    create_search_service,
    get_search_service,
    reset_search_service,
)

__all__ = [
    "ExtensionSnapshot",
    "SearchableExtension",
    "QueryOptions",
    "PageRequest",
    "SearchResult",
    "InvalidSearchOptionsError",
    "RelevanceConfig",
    "RelevanceStats",
    "RelevanceScorer",
    "RelevanceService",
    "count_saturation",
    "ReadWriteLock",
    "SearchIndex",
    "SearchIndexError",
    "DatabaseSearch",
    "SearchService",
    "create_search_service",
    "get_search_service",
    "reset_search_service",
]
