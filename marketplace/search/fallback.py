"""
Database Search
In-memory search over live repository data, used when no search engine
is configured.
"""

import logging
import time
from typing import List, Optional

from .models import (
    ExtensionSnapshot,
    PageRequest,
    QueryOptions,
    SearchResult,
    SearchableExtension,
)
from .relevance import RelevanceService

logger = logging.getLogger(__name__)


def matches_category(extension: SearchableExtension, category: Optional[str]) -> bool:
    if not category:
        return True
    return category in extension.categories


def matches_query(extension: SearchableExtension, query_string: Optional[str]) -> bool:
    """Case-insensitive substring match on namespace, name, display name and description."""
    if not query_string:
        return True
    needle = query_string.lower()
    for value in (
        extension.namespace,
        extension.name,
        extension.display_name,
        extension.description,
    ):
        if value and needle in value.lower():
            return True
    return False


def sort_entries(
    entries: List[SearchableExtension], sort_by: str, sort_order: str
) -> List[SearchableExtension]:
    """
    Sort entries by the requested field.

    Entries with equal sort values keep ascending id order in either
    direction, so pages are reproducible across calls.
    """
    ordered = sorted(entries, key=lambda entry: entry.id)
    ordered.sort(key=lambda entry: entry.sort_value(sort_by), reverse=sort_order == "desc")
    return ordered


class DatabaseSearch:
    """
    Fallback search backend.

    Every query re-reads the active extensions, recomputes relevance with
    statistics for that call, then filters, sorts and paginates in memory.
    Text matching is a plain substring match; there is no fuzzy or prefix
    scoring. Holds no mutable shared state, so it needs no locking and the
    index lifecycle operations are no-ops.
    """

    def __init__(self, relevance: RelevanceService):
        """
        Initialize database search.

        Args:
            relevance: Converts snapshots into scored entries
        """
        self.relevance = relevance
        self.repository = relevance.repository
        logger.info("Database search initialized")

    def search(self, options: QueryOptions, page: PageRequest) -> SearchResult:
        """
        Query one page of matching extensions.

        Args:
            options: Query options (validated here)
            page: Requested page

        Returns:
            Ordered extension ids of the page and the total match count
        """
        options.validate()
        start_time = time.time()

        extensions = list(self.repository.list_active_extensions())
        stats = self.relevance.compute_stats()

        entries = [self.relevance.to_search_entry(extension, stats) for extension in extensions]
        matched = [
            entry
            for entry in entries
            if matches_category(entry, options.category)
            and matches_query(entry, options.query_string)
        ]

        ordered = sort_entries(matched, options.sort_by, options.normalized_sort_order)
        page_entries = ordered[page.offset : page.offset + page.page_size]

        elapsed_ms = (time.time() - start_time) * 1000
        logger.debug(
            f"Database search: {len(ordered)} of {len(extensions)} extensions matched "
            f"in {elapsed_ms:.2f}ms"
        )

        return SearchResult(
            extension_ids=[entry.id for entry in page_entries],
            total_count=len(ordered),
        )

    def ensure_index(self, clear: bool = False) -> bool:
        return False

    def rebuild_all(self, clear: bool = False) -> int:
        return 0

    def upsert_one(self, extension: ExtensionSnapshot) -> None:
        return None

    def delete_one(self, extension_id: int) -> bool:
        return False

    def get_stats(self) -> dict:
        return {"backend": "database"}
