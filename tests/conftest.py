"""
Pytest configuration and shared fixtures
"""

import copy
import sys
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Set
from unittest.mock import Mock

import pytest
from elasticsearch import BadRequestError, NotFoundError, helpers

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from marketplace.config import SearchSettings
from marketplace.search import (
    DatabaseSearch,
    ExtensionSnapshot,
    RelevanceScorer,
    RelevanceService,
    SearchIndex,
)

FIXED_NOW = datetime(2021, 10, 20, 12, 0, 0)


class InMemoryExtensionRepository:
    """ExtensionRepository over plain lists, for tests."""

    def __init__(self, extensions: Optional[List[ExtensionSnapshot]] = None):
        self.extensions: Dict[int, ExtensionSnapshot] = {}
        self.inactive = set()
        self.review_counts: Dict[int, int] = {}
        # namespace -> {user_id: role}
        self.memberships: Dict[str, Dict[int, str]] = {}
        for extension in extensions or []:
            self.add(extension)

    def add(self, extension: ExtensionSnapshot, reviews: int = 0, verified: bool = True):
        self.extensions[extension.id] = extension
        self.inactive.discard(extension.id)
        self.review_counts[extension.id] = reviews
        if verified and extension.latest_version_publisher_user_id is not None:
            members = self.memberships.setdefault(extension.namespace, {})
            members.setdefault(extension.latest_version_publisher_user_id, "owner")
        return extension

    def deactivate(self, extension_id: int):
        self.inactive.add(extension_id)

    def _active(self) -> List[ExtensionSnapshot]:
        return [
            extension
            for extension_id, extension in sorted(self.extensions.items())
            if extension_id not in self.inactive
        ]

    def list_active_extensions(self, namespace: Optional[str] = None) -> List[ExtensionSnapshot]:
        return [
            copy.deepcopy(extension)
            for extension in self._active()
            if namespace is None or extension.namespace == namespace
        ]

    def find_active_extension(self, extension_id: int) -> Optional[ExtensionSnapshot]:
        if extension_id in self.inactive or extension_id not in self.extensions:
            return None
        return copy.deepcopy(self.extensions[extension_id])

    def count_active_reviews(self, extension_id: int) -> int:
        return self.review_counts.get(extension_id, 0)

    def count_owner_memberships(self, namespace: str) -> int:
        members = self.memberships.get(namespace, {})
        return sum(1 for role in members.values() if role == "owner")

    def count_memberships(self, user_id: int, namespace: str) -> int:
        return 1 if user_id in self.memberships.get(namespace, {}) else 0

    def max_active_download_count(self) -> int:
        return max((extension.download_count for extension in self._active()), default=0)

    def oldest_active_timestamp(self) -> Optional[datetime]:
        return min(
            (extension.latest_version_timestamp for extension in self._active()), default=None
        )


class FakeIndices:
    def __init__(self, engine: "FakeElasticsearch"):
        self.engine = engine

    def exists(self, index):
        self.engine.calls.append(("indices.exists", index))
        with self.engine._mutex:
            return index in self.engine.indices_data or index in self.engine.aliases

    def exists_alias(self, name, **kwargs):
        with self.engine._mutex:
            return name in self.engine.aliases

    def get_alias(self, name, **kwargs):
        with self.engine._mutex:
            if name not in self.engine.aliases:
                raise self.engine.not_found(name)
            return {index: {"aliases": {name: {}}} for index in self.engine.aliases[name]}

    def create(self, index, mappings=None, **kwargs):
        self.engine.calls.append(("indices.create", index))
        with self.engine._mutex:
            if index in self.engine.indices_data or index in self.engine.aliases:
                raise self.engine.bad_request("resource_already_exists_exception")
            self.engine.indices_data[index] = {}
            self.engine.mappings[index] = mappings
        return {"acknowledged": True, "index": index}

    def delete(self, index, ignore_unavailable=False, **kwargs):
        self.engine.calls.append(("indices.delete", index))
        with self.engine._mutex:
            if index not in self.engine.indices_data:
                if ignore_unavailable:
                    return {"acknowledged": True}
                raise self.engine.not_found(index)
            self.engine._drop_index(index)
        return {"acknowledged": True}

    def update_aliases(self, actions, **kwargs):
        """Applies every action or none of them."""
        self.engine.calls.append(("indices.update_aliases", len(actions)))
        with self.engine._mutex:
            indices = {name: docs for name, docs in self.engine.indices_data.items()}
            aliases = {name: set(targets) for name, targets in self.engine.aliases.items()}
            for action in actions:
                ((kind, spec),) = action.items()
                index = spec["index"]
                if index not in indices:
                    raise self.engine.not_found(index)
                if kind == "add":
                    aliases.setdefault(spec["alias"], set()).add(index)
                elif kind == "remove":
                    if index not in aliases.get(spec["alias"], set()):
                        raise self.engine.not_found(spec["alias"])
                    aliases[spec["alias"]].discard(index)
                    if not aliases[spec["alias"]]:
                        del aliases[spec["alias"]]
                elif kind == "remove_index":
                    del indices[index]
                else:
                    raise NotImplementedError(f"Unsupported alias action: {kind}")
            for alias in aliases:
                if alias in indices:
                    raise self.engine.bad_request("invalid_alias_name_exception")

            for index in set(self.engine.indices_data) - set(indices):
                self.engine._drop_index(index)
            self.engine.aliases = aliases
        return {"acknowledged": True}

    def refresh(self, index=None, **kwargs):
        self.engine.calls.append(("indices.refresh", index))
        return {"_shards": {"failed": 0}}


class FakeElasticsearch:
    """
    In-process stand-in for the Elasticsearch client.

    Evaluates the part of the query DSL the query builder emits. Text
    matching is a case-insensitive substring test, so fuzzy matching
    is not modeled. Aliases resolve to their indices on reads and,
    when they point to exactly one index, on writes.
    """

    def __init__(self, write_delay: float = 0.0):
        self.indices_data: Dict[str, Dict[str, dict]] = {}
        self.mappings: Dict[str, dict] = {}
        self.aliases: Dict[str, Set[str]] = {}
        self.indices = FakeIndices(self)
        self.calls = []
        self.last_search_body = None
        self.rejected_ids: Set[str] = set()
        self.write_delay = write_delay
        self._mutex = threading.Lock()

    @staticmethod
    def not_found(what):
        return NotFoundError(f"{what} not found", meta=Mock(status=404), body={})

    @staticmethod
    def bad_request(error):
        return BadRequestError(error, meta=Mock(status=400), body={"error": {"type": error}})

    def documents(self, name) -> Dict[str, dict]:
        """Documents of an index, or of the indices behind an alias."""
        with self._mutex:
            return {
                doc_id: document
                for index in self._read_targets(name)
                for doc_id, document in self.indices_data.get(index, {}).items()
            }

    def _drop_index(self, index):
        self.indices_data.pop(index, None)
        self.mappings.pop(index, None)
        for alias in list(self.aliases):
            self.aliases[alias].discard(index)
            if not self.aliases[alias]:
                del self.aliases[alias]

    def _read_targets(self, name) -> List[str]:
        if name in self.aliases:
            return sorted(self.aliases[name])
        return [name]

    def _write_target(self, name) -> str:
        targets = self._read_targets(name)
        if len(targets) != 1:
            raise self.bad_request("illegal_argument_exception")
        return targets[0]

    def _docs(self, index) -> Dict[str, dict]:
        if index not in self.indices_data:
            raise self.not_found(index)
        return self.indices_data[index]

    def index(self, index, id, document, refresh=None, **kwargs):
        self.calls.append(("index", id))
        with self._mutex:
            target = self._write_target(index)
            self.indices_data.setdefault(target, {})[id] = copy.deepcopy(document)
        return {"result": "created", "_id": id}

    def delete(self, index, id, refresh=None, **kwargs):
        self.calls.append(("delete", id))
        with self._mutex:
            docs = self._docs(self._write_target(index))
            if id not in docs:
                raise self.not_found(id)
            del docs[id]
        return {"result": "deleted", "_id": id}

    def bulk(self, operations, **kwargs):
        self.calls.append(("bulk", len(operations) // 2))
        items = []
        for action, document in zip(operations[::2], operations[1::2]):
            meta = action["index"]
            if meta["_id"] in self.rejected_ids:
                error = {"type": "mapper_parsing_exception", "reason": "failed to parse"}
                items.append({"index": {"_id": meta["_id"], "status": 400, "error": error}})
                continue
            if self.write_delay:
                time.sleep(self.write_delay)
            with self._mutex:
                target = self._write_target(meta["_index"])
                self.indices_data.setdefault(target, {})[meta["_id"]] = copy.deepcopy(document)
            items.append({"index": {"_id": meta["_id"], "status": 201}})
        errors = any(item["index"]["status"] >= 300 for item in items)
        return {"errors": errors, "items": items}

    def count(self, index, **kwargs):
        with self._mutex:
            return {"count": sum(len(self._docs(name)) for name in self._read_targets(index))}

    def search(self, index, body, **kwargs):
        self.calls.append(("search", index))
        self.last_search_body = copy.deepcopy(body)
        with self._mutex:
            documents = [
                document
                for name in self._read_targets(index)
                for document in self._docs(name).values()
            ]

        scored = []
        for document in documents:
            score = _evaluate(body.get("query", {"match_all": {}}), document)
            if score is not None:
                scored.append((score, document))

        for clause in reversed(body.get("sort", [])):
            ((field, spec),) = clause.items()
            reverse = spec.get("order", "asc") == "desc"
            if field == "_score":
                scored.sort(key=lambda item: item[0], reverse=reverse)
            else:
                missing = spec.get("missing", 0)
                scored.sort(
                    key=lambda item: _sort_value(item[1].get(field), missing), reverse=reverse
                )

        start = body.get("from", 0)
        page = scored[start : start + body.get("size", 10)]
        return {
            "hits": {
                "total": {"value": len(scored), "relation": "eq"},
                "hits": [
                    {"_id": str(document["id"]), "_score": score, "_source": {"id": document["id"]}}
                    for score, document in page
                ],
            }
        }


def bulk_into_fake(client, actions, chunk_size=500, **kwargs):
    """
    Stands in for elasticsearch.helpers.bulk against FakeElasticsearch.

    Expands actions with the library's own expand_action, sends them in
    chunks and raises BulkIndexError for rejected documents.
    """
    expanded = [helpers.expand_action(action) for action in actions]
    success, errors = 0, []
    for start in range(0, len(expanded), chunk_size):
        operations = []
        for header, source in expanded[start : start + chunk_size]:
            operations.extend([header, source])
        response = client.bulk(operations=operations)
        for item in response["items"]:
            ((_, info),) = item.items()
            if 200 <= info["status"] < 300:
                success += 1
            else:
                errors.append(item)
    if errors:
        raise helpers.BulkIndexError(f"{len(errors)} document(s) failed to index.", errors)
    return success, errors


def _sort_value(value, missing):
    return missing if value is None else value


def _field_values(document, field):
    name = field.split("^")[0]
    if name.endswith(".keyword"):
        name = name[: -len(".keyword")]
    value = document.get(name)
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _evaluate(query, document) -> Optional[float]:
    """Score of the document for the query, or None when it does not match."""
    ((kind, spec),) = query.items()

    if kind == "match_all":
        return 1.0

    if kind == "term":
        ((field, term),) = spec.items()
        value = term["value"] if isinstance(term, dict) else term
        boost = term.get("boost", 1.0) if isinstance(term, dict) else 1.0
        return boost if value in _field_values(document, field) else None

    if kind == "prefix":
        ((field, term),) = spec.items()
        prefix = term["value"].lower()
        for value in _field_values(document, field):
            if str(value).lower().startswith(prefix):
                return term.get("boost", 1.0)
        return None

    if kind == "multi_match":
        needle = spec["query"].lower()
        for field in spec["fields"]:
            for value in _field_values(document, field):
                if needle in str(value).lower():
                    return spec.get("boost", 1.0)
        return None

    if kind == "bool":
        score = 0.0
        for clause in spec.get("filter", []):
            if _evaluate(clause, document) is None:
                return None
        for clause in spec.get("must", []):
            clause_score = _evaluate(clause, document)
            if clause_score is None:
                return None
            score += clause_score
        should = spec.get("should", [])
        if should:
            matched = [s for s in (_evaluate(clause, document) for clause in should) if s is not None]
            if len(matched) < spec.get("minimum_should_match", 0):
                return None
            score += sum(matched)
        return score

    raise NotImplementedError(f"Unsupported query clause: {kind}")


def make_extension(
    extension_id: int,
    name: str,
    namespace: str = "redhat",
    average_rating: Optional[float] = 3.0,
    download_count: int = 0,
    categories: Optional[List[str]] = None,
    timestamp: Optional[datetime] = None,
    display_name: Optional[str] = None,
    description: Optional[str] = None,
    tags: Optional[List[str]] = None,
    publisher_id: Optional[int] = 1,
) -> ExtensionSnapshot:
    """Build an extension snapshot with test defaults."""
    return ExtensionSnapshot(
        id=extension_id,
        namespace=namespace,
        name=name,
        latest_version_timestamp=timestamp or datetime(2021, 10, 1),
        display_name=display_name,
        description=description,
        tags=tags or [],
        categories=categories if categories is not None else ["Snippets", "Programming Languages"],
        average_rating=average_rating,
        download_count=download_count,
        latest_version_publisher_user_id=publisher_id,
    )


@pytest.fixture
def frozen_now(monkeypatch):
    """Pin the clock used by relevance statistics."""
    monkeypatch.setattr("marketplace.search.relevance.utc_now", lambda: FIXED_NOW)
    return FIXED_NOW


@pytest.fixture
def repository():
    return InMemoryExtensionRepository()


@pytest.fixture
def relevance(repository):
    return RelevanceService(repository, RelevanceScorer())


@pytest.fixture
def bulk_helper(monkeypatch):
    """Route elasticsearch.helpers.bulk to the fake engine."""
    monkeypatch.setattr(helpers, "bulk", bulk_into_fake)
    return bulk_into_fake


@pytest.fixture
def fake_es(bulk_helper):
    return FakeElasticsearch()


@pytest.fixture
def search_index(fake_es, relevance):
    return SearchIndex(fake_es, relevance, index_name="test-extensions", bulk_chunk_size=2)


@pytest.fixture
def database_search(relevance):
    return DatabaseSearch(relevance)


@pytest.fixture
def engine_settings():
    return SearchSettings(
        elasticsearch_enabled=True,
        database_search_enabled=False,
        elasticsearch_host="http://localhost:9200",
        elasticsearch_index="test-extensions",
    )


@pytest.fixture
def database_settings():
    return SearchSettings(elasticsearch_enabled=False, database_search_enabled=True)
