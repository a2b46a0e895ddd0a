"""
Search Index Manager
Manages the Elasticsearch extension index lifecycle: creating, rebuilding,
incremental updates and serving queries.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING, List, Optional

from elasticsearch import ApiError, NotFoundError, TransportError, helpers

from .models import (
    ExtensionSnapshot,
    PageRequest,
    QueryOptions,
    SearchResult,
    SearchableExtension,
    utc_now,
)
from .queries import build_search_body, get_index_mappings
from .relevance import RelevanceService
from .rwlock import ReadWriteLock

if TYPE_CHECKING:
    from elasticsearch import Elasticsearch

logger = logging.getLogger(__name__)

ENGINE_ERRORS = (ApiError, TransportError)


class SearchIndexError(Exception):
    """Exception raised when the search engine rejects or fails an operation."""

    pass


class SearchIndex:
    """
    Engine-backed extension index.

    This class:
    - Creates the index when it is absent (or recreates it on a hard rebuild)
    - Bulk-writes scored entries for every active extension
    - Applies incremental upserts and deletes
    - Serves paginated queries

    ``index_name`` is an alias. Each rebuild fills a fresh generation index
    (``<alias>-<timestamp>-<suffix>``) and then repoints the alias with a
    single ``update_aliases`` call, so queries from any process see either
    the previous generation or the complete new one. Upserts, deletes and
    queries all go through the alias.

    A reader/writer lock additionally serializes operations within this
    process: mutating operations hold the write lock for their entire
    duration, queries hold the read lock.
    """

    def __init__(
        self,
        client: "Elasticsearch",
        relevance: RelevanceService,
        index_name: str = "extensions",
        bulk_chunk_size: int = 500,
        lock: Optional[ReadWriteLock] = None,
    ):
        """
        Initialize search index.

        Args:
            client: Elasticsearch client
            relevance: Converts snapshots into scored entries
            index_name: Alias the generations are published under
            bulk_chunk_size: Number of entries per bulk request
            lock: Reader/writer lock guarding the index
        """
        self.client = client
        self.relevance = relevance
        self.repository = relevance.repository
        self.index_name = index_name
        self.bulk_chunk_size = bulk_chunk_size
        self.lock = lock or ReadWriteLock()

        logger.info(f"Search index initialized: [{self.index_name}]")

    # Lifecycle

    def ensure_index(self, clear: bool = False) -> bool:
        """
        Make sure the index exists and is populated.

        Hard mode (clear=True) replaces the index with a freshly populated
        generation. Soft mode does nothing when the index already exists.

        Args:
            clear: Replace the existing index

        Returns:
            True if the index was (re)built
        """
        with self.lock.write():
            if not clear and self._exists():
                logger.info(f"Search index [{self.index_name}] already exists")
                return False
            self._rebuild(clear)
            return True

    def rebuild_all(self, clear: bool = False) -> int:
        """
        Re-index every active extension.

        Entries are written to a new generation which replaces the current
        one once it is complete. All entries share one set of relevance
        statistics so their ranking is consistent with each other.

        Args:
            clear: Publish an empty generation even when no extension is active

        Returns:
            Number of entries written
        """
        with self.lock.write():
            return self._rebuild(clear)

    def upsert_one(self, extension: ExtensionSnapshot) -> SearchableExtension:
        """
        Index a single extension.

        Statistics are computed for this call only, so the score may drift
        slightly from the last full rebuild until the next one.

        Args:
            extension: Active extension to index

        Returns:
            The written entry
        """
        with self.lock.write():
            stats = self.relevance.compute_stats()
            entry = self.relevance.to_search_entry(extension, stats)
            try:
                self.client.index(
                    index=self.index_name,
                    id=str(entry.id),
                    document=entry.to_document(),
                    refresh=True,
                )
            except ENGINE_ERRORS as e:
                logger.error(f"Failed to index extension {entry.extension_id}: {e}")
                raise SearchIndexError(f"Indexing {entry.extension_id} failed: {e}") from e

        logger.debug(f"Indexed {entry.extension_id} with relevance {entry.relevance:.4f}")
        return entry

    def delete_one(self, extension_id: int) -> bool:
        """
        Remove an extension from the index.

        Args:
            extension_id: Database id of the extension

        Returns:
            True if an entry was deleted, False if there was none
        """
        with self.lock.write():
            try:
                self.client.delete(index=self.index_name, id=str(extension_id), refresh=True)
            except NotFoundError:
                logger.debug(f"Extension {extension_id} not in search index")
                return False
            except ENGINE_ERRORS as e:
                logger.error(f"Failed to remove extension {extension_id}: {e}")
                raise SearchIndexError(f"Removing {extension_id} failed: {e}") from e

        logger.debug(f"Removed extension {extension_id} from search index")
        return True

    # Queries

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
        body = build_search_body(options, page)

        with self.lock.read():
            try:
                response = self.client.search(index=self.index_name, body=body)
            except ENGINE_ERRORS as e:
                logger.error(f"Search query failed: {e}")
                raise SearchIndexError(f"Search query failed: {e}") from e

        hits = response["hits"]
        total = hits["total"]
        total_count = total["value"] if isinstance(total, dict) else int(total)
        extension_ids = [int(hit["_source"]["id"]) for hit in hits["hits"]]
        return SearchResult(extension_ids=extension_ids, total_count=total_count)

    def get_stats(self) -> dict:
        """
        Get index statistics.

        Returns:
            Dictionary with index stats
        """
        with self.lock.read():
            try:
                exists = self._exists()
                documents = None
                generations = []
                if exists:
                    documents = self.client.count(index=self.index_name)["count"]
                    generations = self._generations()
            except (SearchIndexError, ApiError, TransportError) as e:
                logger.error(f"Failed to read search index stats: {e}")
                return {"backend": "elasticsearch", "index": self.index_name, "status": "error"}

        return {
            "backend": "elasticsearch",
            "index": self.index_name,
            "exists": exists,
            "documents": documents,
            "generations": generations,
        }

    # Internals; the caller holds the write lock

    def _exists(self) -> bool:
        try:
            return bool(self.client.indices.exists(index=self.index_name))
        except ENGINE_ERRORS as e:
            logger.error(f"Failed to check search index [{self.index_name}]: {e}")
            raise SearchIndexError(f"Index existence check failed: {e}") from e

    def _generations(self) -> List[str]:
        """Concrete indices the alias currently points to."""
        try:
            if not self.client.indices.exists_alias(name=self.index_name):
                return []
            return sorted(self.client.indices.get_alias(name=self.index_name))
        except ENGINE_ERRORS as e:
            raise SearchIndexError(f"Alias lookup failed: {e}") from e

    def _create_generation(self) -> str:
        generation = f"{self.index_name}-{utc_now():%Y%m%d%H%M%S}-{uuid.uuid4().hex[:8]}"
        logger.info(f"Creating search index generation [{generation}]")
        try:
            self.client.indices.create(index=generation, mappings=get_index_mappings())
        except ENGINE_ERRORS as e:
            raise SearchIndexError(f"Index creation failed: {e}") from e
        return generation

    def _drop(self, index: str) -> None:
        logger.info(f"Deleting search index generation [{index}]")
        try:
            self.client.indices.delete(index=index, ignore_unavailable=True)
        except ENGINE_ERRORS as e:
            # The alias no longer points here; an orphaned generation is only disk space
            logger.warning(f"Failed to delete search index generation [{index}]: {e}")

    def _rebuild(self, clear: bool) -> int:
        start_time = time.time()

        extensions = list(self.repository.list_active_extensions())
        if not extensions and not clear and self._exists():
            # Keep whatever the index holds rather than wiping it on an empty read
            logger.warning(
                f"No active extensions found, search index [{self.index_name}] left unchanged"
            )
            return 0

        entries = []
        if extensions:
            stats = self.relevance.compute_stats()
            entries = [self.relevance.to_search_entry(extension, stats) for extension in extensions]
        else:
            logger.warning(f"No active extensions found, search index [{self.index_name}] is empty")

        generation = self._create_generation()
        try:
            self._bulk_index(generation, entries)
            previous = self._publish(generation)
        except SearchIndexError:
            self._drop(generation)
            raise

        for index in previous:
            self._drop(index)

        elapsed_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Search index [{self.index_name}] rebuilt into [{generation}]: "
            f"{len(entries)} extensions in {elapsed_ms:.0f} ms"
        )
        return len(entries)

    def _bulk_index(self, index: str, entries: List[SearchableExtension]) -> None:
        actions = (
            {"_index": index, "_id": str(entry.id), "_source": entry.to_document()}
            for entry in entries
        )
        try:
            helpers.bulk(self.client, actions, chunk_size=self.bulk_chunk_size)
            self.client.indices.refresh(index=index)
        except helpers.BulkIndexError as e:
            logger.error(f"Bulk indexing rejected {len(e.errors)} entries: {e.errors[:3]}")
            raise SearchIndexError(f"Bulk indexing rejected {len(e.errors)} entries") from e
        except ENGINE_ERRORS as e:
            logger.error(f"Bulk indexing failed: {e}")
            raise SearchIndexError(f"Bulk indexing failed: {e}") from e

    def _publish(self, generation: str) -> List[str]:
        """
        Point the alias at the generation in one atomic alias update.

        Returns:
            The generations the alias pointed to before
        """
        previous = self._generations()
        actions = [{"remove": {"index": index, "alias": self.index_name}} for index in previous]
        if not previous and self._exists():
            # A concrete index still occupies the alias name
            logger.info(f"Replacing concrete search index [{self.index_name}] with an alias")
            actions.append({"remove_index": {"index": self.index_name}})
        actions.append({"add": {"index": generation, "alias": self.index_name}})

        try:
            self.client.indices.update_aliases(actions=actions)
        except ENGINE_ERRORS as e:
            logger.error(f"Failed to publish search index generation [{generation}]: {e}")
            raise SearchIndexError(f"Alias update failed: {e}") from e
        return previous
