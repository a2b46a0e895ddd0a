"""
Search Query Construction
Index settings, mappings and request bodies for the extension index.
"""

from copy import deepcopy
from typing import List, Optional

from .models import SORT_FIELDS, PageRequest, QueryOptions

EXTENSIONS_INDEX_MAPPINGS = {
    "properties": {
        "id": {"type": "long"},
        "extension_id": {
            "type": "text",
            "fields": {"keyword": {"type": "keyword"}},
        },
        "namespace": {"type": "text"},
        "name": {"type": "text"},
        "display_name": {"type": "text"},
        "description": {"type": "text"},
        "tags": {
            "type": "text",
            "fields": {"keyword": {"type": "keyword"}},
        },
        "categories": {
            "type": "text",
            "fields": {"keyword": {"type": "keyword"}},
        },
        "average_rating": {"type": "float"},
        "download_count": {"type": "long"},
        "timestamp": {"type": "long"},
        "relevance": {"type": "double"},
    }
}

# Exact extension id match ranks above everything else
EXACT_ID_BOOST = 10
FUZZY_MATCH_BOOST = 5
DISPLAY_NAME_PREFIX_BOOST = 2
NAMESPACE_PREFIX_BOOST = 1

SEARCH_MATCH_FIELDS = ["name", "display_name", "tags", "namespace", "description"]
SEARCH_BOOSTED_FIELDS = {
    "name": 5,
    "display_name": 5,
    "tags": 3,
    "namespace": 2,
}

# Edit distance grows with term length; the first characters must match
FUZZINESS = "AUTO"
FUZZY_PREFIX_LENGTH = 2


def boost_fields(match_fields: List[str], boosted_fields: dict) -> List[str]:
    return [
        f"{field}^{boosted_fields[field]}" if field in boosted_fields else field
        for field in match_fields
    ]


def construct_text_query(query_string: str) -> dict:
    prefix_string = query_string.strip().lower()
    return {
        "bool": {
            "should": [
                {
                    "term": {
                        "extension_id.keyword": {
                            "value": query_string,
                            "boost": EXACT_ID_BOOST,
                        }
                    }
                },
                {
                    "multi_match": {
                        "query": query_string,
                        "fields": boost_fields(SEARCH_MATCH_FIELDS, SEARCH_BOOSTED_FIELDS),
                        "fuzziness": FUZZINESS,
                        "prefix_length": FUZZY_PREFIX_LENGTH,
                        "boost": FUZZY_MATCH_BOOST,
                    }
                },
                {
                    "prefix": {
                        "display_name": {
                            "value": prefix_string,
                            "boost": DISPLAY_NAME_PREFIX_BOOST,
                        }
                    }
                },
                {
                    "prefix": {
                        "namespace": {
                            "value": prefix_string,
                            "boost": NAMESPACE_PREFIX_BOOST,
                        }
                    }
                },
            ],
            "minimum_should_match": 1,
        }
    }


def construct_category_filter(category: str) -> dict:
    # Whole-category match; does not contribute to the score
    return {"term": {"categories.keyword": category}}


def construct_query(options: QueryOptions) -> dict:
    if options.query_string:
        query = construct_text_query(options.query_string)
    else:
        query = {"match_all": {}}

    if options.category:
        if "bool" not in query:
            query = {"bool": {"must": [query]}}
        query["bool"]["filter"] = [construct_category_filter(options.category)]

    return query


def construct_sort(sort_by: str, sort_order: str) -> List[dict]:
    field, unmapped_type = SORT_FIELDS[sort_by]
    sort = []
    if sort_by == "relevance":
        sort.append({"_score": {"order": "desc"}})
    sort.append(
        {
            field: {
                "order": sort_order,
                "missing": 0,
                "unmapped_type": unmapped_type,
            }
        }
    )
    # Deterministic order among equal sort values
    sort.append({"id": {"order": "asc"}})
    return sort


def build_search_body(options: QueryOptions, page: PageRequest) -> dict:
    """
    Build the request body for one page of search results.

    Args:
        options: Validated query options
        page: Requested page

    Returns:
        Elasticsearch search request body
    """
    return {
        "query": construct_query(options),
        "sort": construct_sort(options.sort_by, options.normalized_sort_order),
        "from": page.offset,
        "size": page.page_size,
        "track_total_hits": True,
        "_source": ["id"],
    }


def get_index_mappings(mappings: Optional[dict] = None) -> dict:
    return deepcopy(mappings or EXTENSIONS_INDEX_MAPPINGS)
