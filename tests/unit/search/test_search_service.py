"""
Tests for the search service facade.
"""

from unittest.mock import Mock

import pytest

from conftest import FakeElasticsearch, make_extension
from marketplace.config import SearchConfigurationError, SearchSettings
from marketplace.search import (
    DatabaseSearch,
    InvalidSearchOptionsError,
    PageRequest,
    QueryOptions,
    SearchIndex,
    create_search_service,
)


@pytest.fixture
def catalog(repository):
    repository.add(make_extension(1, "yaml", download_count=100))
    repository.add(make_extension(2, "java", download_count=1000))
    repository.add(make_extension(3, "openshift", namespace="ocp", download_count=300))
    repository.add(make_extension(4, "tools", namespace="ocp", download_count=50))
    return repository


@pytest.fixture
def engine_service(engine_settings, catalog, fake_es):
    return create_search_service(engine_settings, catalog, client=fake_es)


@pytest.fixture
def database_service(database_settings, catalog):
    return create_search_service(database_settings, catalog)


def indexed_ids(fake_es):
    return sorted(int(doc_id) for doc_id in fake_es.documents("test-extensions"))


class TestBackendSelection:
    def test_engine_backend(self, engine_service):
        assert isinstance(engine_service.backend, SearchIndex)
        assert engine_service.is_enabled() is True
        assert engine_service.backend.index_name == "test-extensions"

    def test_database_backend(self, database_service):
        assert isinstance(database_service.backend, DatabaseSearch)
        assert database_service.is_enabled() is False

    def test_nothing_enabled_falls_back_to_database(self, catalog):
        settings = SearchSettings(elasticsearch_enabled=False, database_search_enabled=False)

        service = create_search_service(settings, catalog)

        assert isinstance(service.backend, DatabaseSearch)

    def test_both_enabled_is_rejected(self, catalog):
        settings = SearchSettings(
            elasticsearch_enabled=True,
            database_search_enabled=True,
            elasticsearch_host="http://localhost:9200",
        )

        with pytest.raises(SearchConfigurationError):
            create_search_service(settings, catalog, client=FakeElasticsearch())

    def test_engine_without_host_is_rejected(self, catalog):
        settings = SearchSettings(elasticsearch_enabled=True, elasticsearch_host=None)

        with pytest.raises(SearchConfigurationError, match="ELASTICSEARCH_HOST"):
            create_search_service(settings, catalog)

    def test_relevance_weights_from_settings(self, catalog):
        settings = SearchSettings(
            elasticsearch_enabled=False,
            relevance_rating=2.0,
            relevance_downloads=0.5,
            relevance_timestamp=0.0,
            relevance_unverified=0.25,
        )

        service = create_search_service(settings, catalog)

        config = service.backend.relevance.config
        assert (config.rating_weight, config.downloads_weight) == (2.0, 0.5)
        assert config.timestamp_weight == 0.0
        assert config.unverified_penalty == 0.25


class TestSearch:
    def test_page_derived_from_options(self, database_service):
        options = QueryOptions(sort_by="downloadCount", requested_size=2, requested_offset=2)

        result = database_service.search(options)

        # Downloads: java 1000, openshift 300, yaml 100, tools 50
        assert result.total_count == 4
        assert result.extension_ids == [1, 4]

    def test_explicit_page(self, engine_service):
        engine_service.initialize()

        result = engine_service.search(QueryOptions(sort_by="downloadCount"), PageRequest.of(0, 2))

        assert result.extension_ids == [2, 3]

    def test_invalid_options(self, database_service):
        with pytest.raises(InvalidSearchOptionsError):
            database_service.search(QueryOptions(sort_by="name"))


class TestLifecycle:
    def test_initialize_creates_missing_index(self, engine_service, fake_es):
        assert engine_service.initialize() is True
        assert indexed_ids(fake_es) == [1, 2, 3, 4]

        # Second start keeps the existing index
        assert engine_service.initialize() is False

    def test_initialize_clear_on_start(self, engine_settings, catalog, fake_es):
        engine_settings.clear_on_start = True
        service = create_search_service(engine_settings, catalog, client=fake_es)
        service.initialize()
        (previous,) = fake_es.aliases["test-extensions"]
        fake_es.calls.clear()

        assert service.initialize() is True
        assert ("indices.delete", previous) in fake_es.calls
        assert previous not in fake_es.aliases["test-extensions"]

    def test_initialize_noop_on_database(self, database_service):
        assert database_service.initialize() is False

    def test_rebuild(self, engine_service, fake_es):
        assert engine_service.rebuild_search_index(clear=True) == 4
        assert indexed_ids(fake_es) == [1, 2, 3, 4]

    def test_stats(self, engine_service, database_service):
        engine_service.initialize()

        assert engine_service.get_stats()["enabled"] is True
        assert engine_service.get_stats()["documents"] == 4
        assert database_service.get_stats() == {"backend": "database", "enabled": False}


class TestScheduledUpdate:
    def test_update_rebuilds(self, engine_service, fake_es):
        assert engine_service.update_search_index() is True
        assert indexed_ids(fake_es) == [1, 2, 3, 4]

    @pytest.mark.parametrize("weight", [0.0, 0.005, 0.01])
    def test_skipped_when_recency_negligible(self, engine_settings, catalog, fake_es, weight):
        engine_settings.relevance_timestamp = weight
        service = create_search_service(engine_settings, catalog, client=fake_es)

        assert service.update_search_index() is False
        assert fake_es.calls == []

    def test_skipped_on_database(self, database_service):
        assert database_service.update_search_index() is False

    def test_overlapping_run_skipped(self, engine_service, fake_es):
        engine_service._maintenance_lock.acquire()
        try:
            assert engine_service.update_search_index() is False
        finally:
            engine_service._maintenance_lock.release()
        assert fake_es.calls == []

    def test_lock_released_after_failure(self, engine_service):
        engine_service.backend.rebuild_all = Mock(side_effect=RuntimeError("engine down"))

        with pytest.raises(RuntimeError):
            engine_service.update_search_index()

        assert engine_service._maintenance_lock.acquire(blocking=False)


class TestMutationEvents:
    def test_changed_extension_is_reindexed(self, engine_service, catalog, fake_es):
        engine_service.initialize()
        catalog.add(make_extension(5, "newcomer"))

        engine_service.notify_changed(5)

        assert 5 in indexed_ids(fake_es)

    def test_inactive_extension_is_removed(self, engine_service, catalog, fake_es):
        engine_service.initialize()
        catalog.deactivate(2)

        engine_service.notify_changed(2)

        assert indexed_ids(fake_es) == [1, 3, 4]

    def test_removed_extension(self, engine_service, fake_es):
        engine_service.initialize()

        engine_service.notify_removed(1)
        engine_service.notify_removed(1)

        assert indexed_ids(fake_es) == [2, 3, 4]

    def test_namespace_change_reindexes_members(self, engine_service, fake_es):
        engine_service.initialize()
        fake_es.calls.clear()

        assert engine_service.notify_namespace_changed("ocp") == 2

        assert sorted(doc_id for call, doc_id in fake_es.calls if call == "index") == ["3", "4"]

    def test_membership_change_affects_relevance(self, engine_service, catalog, fake_es):
        engine_service.initialize()
        before = fake_es.documents("test-extensions")["3"]["relevance"]

        catalog.memberships["ocp"] = {}
        engine_service.notify_namespace_changed("ocp")

        after = fake_es.documents("test-extensions")["3"]["relevance"]
        assert after == pytest.approx(before * 0.5, rel=1e-3)

    def test_events_ignored_by_database_backend(self, database_service, catalog):
        catalog.find_active_extension = Mock()
        catalog.list_active_extensions = Mock()

        database_service.notify_changed(1)
        database_service.notify_removed(1)
        database_service.on_extension_changed(make_extension(9, "x"))
        assert database_service.notify_namespace_changed("ocp") == 0

        catalog.find_active_extension.assert_not_called()
        catalog.list_active_extensions.assert_not_called()
