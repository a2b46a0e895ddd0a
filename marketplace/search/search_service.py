"""
Search Service
Single entry point for extension search, index maintenance and mutation events.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Optional, Protocol, Union

from ..config import SearchSettings, get_settings
from .fallback import DatabaseSearch
from .index_manager import SearchIndex
from .models import ExtensionSnapshot, PageRequest, QueryOptions, SearchResult
from .relevance import RelevanceConfig, RelevanceScorer, RelevanceService

if TYPE_CHECKING:
    from elasticsearch import Elasticsearch

    from ..db.repository import ExtensionRepository

logger = logging.getLogger(__name__)

# Below this weight recency does not move the ranking enough to justify a rebuild
MIN_TIMESTAMP_WEIGHT = 0.01


class SearchBackend(Protocol):
    """Contract shared by the engine-backed index and the database fallback."""

    def search(self, options: QueryOptions, page: PageRequest) -> SearchResult:
        ...

    def ensure_index(self, clear: bool = False) -> bool:
        ...

    def rebuild_all(self, clear: bool = False) -> int:
        ...

    def upsert_one(self, extension: ExtensionSnapshot):
        ...

    def delete_one(self, extension_id: int) -> bool:
        ...

    def get_stats(self) -> dict:
        ...


class SearchService:
    """
    Search facade.

    The backend is selected once, at construction:
    - SearchIndex when an Elasticsearch engine is configured
    - DatabaseSearch otherwise

    Mutation events are forwarded to the engine-backed index; the database
    fallback always reads live data and ignores them.
    """

    def __init__(
        self,
        backend: Union[SearchIndex, DatabaseSearch],
        repository: "ExtensionRepository",
        settings: Optional[SearchSettings] = None,
    ):
        """
        Initialize search service.

        Args:
            backend: Selected search backend
            repository: Authoritative store, used to resolve mutation events
            settings: Search settings
        """
        self.backend: SearchBackend = backend
        self.repository = repository
        self.settings = settings or get_settings()
        self.engine_backed = isinstance(backend, SearchIndex)

        # Guards against overlapping maintenance runs
        self._maintenance_lock = threading.Lock()

        logger.info(
            f"Search service initialized: backend={'elasticsearch' if self.engine_backed else 'database'}"
        )

    def is_enabled(self) -> bool:
        """Whether an external search engine is configured."""
        return self.engine_backed

    def search(self, options: QueryOptions, page: Optional[PageRequest] = None) -> SearchResult:
        """
        Execute a search request.

        Args:
            options: Query options
            page: Requested page (default: derived from the options' size/offset)

        Returns:
            Ordered page of extension ids and the total match count

        Raises:
            InvalidSearchOptionsError: If sort or paging parameters are invalid
        """
        start_time = time.time()
        options.validate()
        if page is None:
            page = PageRequest.from_options(options)

        result = self.backend.search(options, page)

        total_time_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Search completed: query='{options.query_string}', category='{options.category}', "
            f"{result.total_count} results in {total_time_ms:.2f}ms"
        )
        return result

    # Lifecycle

    def initialize(self) -> bool:
        """
        Prepare the index on application start.

        With ELASTICSEARCH_CLEAR_ON_START the index is rebuilt from scratch,
        otherwise it is only created when missing.

        Returns:
            True if the index was (re)built
        """
        if not self.engine_backed:
            return False

        start_time = time.time()
        built = self.backend.ensure_index(clear=self.settings.clear_on_start)
        if built:
            elapsed_ms = (time.time() - start_time) * 1000
            logger.info(f"Initialized search index in {elapsed_ms:.0f} ms")
        return built

    def update_search_index(self) -> bool:
        """
        Scheduled soft rebuild.

        Relevance depends on publishing timestamps relative to the current
        time, so entries are refreshed once per day. Skipped when recency
        has no weight.

        Returns:
            True if the index was rebuilt
        """
        if not self.engine_backed:
            return False
        if abs(self.settings.relevance_timestamp) <= MIN_TIMESTAMP_WEIGHT:
            logger.info("Timestamp relevance is negligible, skipping search index update")
            return False

        if not self._maintenance_lock.acquire(blocking=False):
            logger.warning("Search index update already running, skipping")
            return False
        try:
            start_time = time.time()
            self.backend.rebuild_all(clear=False)
            elapsed_ms = (time.time() - start_time) * 1000
            logger.info(f"Updated search index in {elapsed_ms:.0f} ms")
            return True
        finally:
            self._maintenance_lock.release()

    def rebuild_search_index(self, clear: bool = False) -> int:
        """
        Explicit rebuild, e.g. triggered by an administrator.

        Args:
            clear: Hard rebuild (publish a fresh index even when the catalog is empty)

        Returns:
            Number of entries written
        """
        if not self.engine_backed:
            return 0
        logger.info(f"Rebuilding search index (clear={clear})")
        return self.backend.rebuild_all(clear=clear)

    # Mutation events

    def on_extension_changed(self, extension: ExtensionSnapshot) -> None:
        """Re-index an extension after it was created or changed."""
        if not self.engine_backed:
            return
        self.backend.upsert_one(extension)

    def on_extension_removed(self, extension_id: int) -> None:
        """Remove a deactivated or deleted extension from the index."""
        if not self.engine_backed:
            return
        self.backend.delete_one(extension_id)

    def notify_changed(self, extension_id: int) -> None:
        """
        Handle a change event for an extension id.

        Covers version, rating, download and membership changes. An
        extension that is no longer active is removed instead.
        """
        if not self.engine_backed:
            return
        extension = self.repository.find_active_extension(extension_id)
        if extension is None:
            logger.info(f"Extension {extension_id} is not active, removing from search index")
            self.on_extension_removed(extension_id)
        else:
            self.on_extension_changed(extension)

    def notify_removed(self, extension_id: int) -> None:
        self.on_extension_removed(extension_id)

    def notify_namespace_changed(self, namespace: str) -> int:
        """
        Re-index every active extension of a namespace.

        Membership edits change the verification status of all of them.

        Returns:
            Number of re-indexed extensions
        """
        if not self.engine_backed:
            return 0
        extensions = self.repository.list_active_extensions(namespace=namespace)
        for extension in extensions:
            self.on_extension_changed(extension)
        logger.info(f"Re-indexed {len(extensions)} extensions of namespace '{namespace}'")
        return len(extensions)

    def get_stats(self) -> dict:
        stats = self.backend.get_stats()
        stats["enabled"] = self.engine_backed
        return stats


def create_search_service(
    settings: SearchSettings,
    repository: "ExtensionRepository",
    client: Optional["Elasticsearch"] = None,
) -> SearchService:
    """
    Build the search service with the backend selected by configuration.

    Args:
        settings: Search settings
        repository: Authoritative store
        client: Elasticsearch client (default: connect using the settings)

    Raises:
        SearchConfigurationError: If the configuration is contradictory
    """
    settings.validate_backend()

    scorer = RelevanceScorer(RelevanceConfig.from_settings(settings))
    relevance = RelevanceService(repository, scorer)

    if settings.elasticsearch_enabled:
        if client is None:
            from .elastic_client import ElasticSearchClient

            client = ElasticSearchClient(settings).connect()
        backend = SearchIndex(
            client,
            relevance,
            index_name=settings.elasticsearch_index,
            bulk_chunk_size=settings.bulk_chunk_size,
        )
    else:
        backend = DatabaseSearch(relevance)

    return SearchService(backend, repository, settings=settings)


# Global instance accessor
_service_instance: Optional[SearchService] = None
_service_lock = threading.Lock()


def get_search_service() -> SearchService:
    """Get the process-wide search service, creating it on first use."""
    global _service_instance
    if _service_instance is None:
        with _service_lock:
            if _service_instance is None:
                # Import here to avoid circular imports with the db package
                from ..db.repository import SqlExtensionRepository
                from ..db.session import get_session_factory

                repository = SqlExtensionRepository(get_session_factory())
                _service_instance = create_search_service(get_settings(), repository)
    return _service_instance


def reset_search_service() -> None:
    """Reset the global search service (useful for testing)."""
    global _service_instance
    _service_instance = None
