"""
Search Models
Value objects shared by both search backends.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

SORT_ORDERS = ("asc", "desc")

# sortBy value -> (stored field, engine type used when the field is unmapped)
SORT_FIELDS: Dict[str, tuple] = {
    "relevance": ("relevance", "double"),
    "timestamp": ("timestamp", "long"),
    "averageRating": ("average_rating", "float"),
    "downloadCount": ("download_count", "long"),
}


class InvalidSearchOptionsError(ValueError):
    """Exception raised when search options fail validation."""

    pass


def utc_now() -> datetime:
    """Current time as a naive UTC datetime (matches database timestamps)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_epoch_seconds(value: Optional[datetime]) -> int:
    """Convert a naive UTC datetime to epoch seconds."""
    if value is None:
        return 0
    return int(value.replace(tzinfo=timezone.utc).timestamp())


@dataclass
class ExtensionSnapshot:
    """
    Metadata of one active extension, as yielded by the repository.

    Not an authoritative record: a read-only view of the extension and its
    latest active version at the time of the read.
    """

    id: int
    namespace: str
    name: str
    latest_version_timestamp: datetime
    display_name: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    average_rating: Optional[float] = None
    download_count: int = 0
    latest_version_publisher_user_id: Optional[int] = None

    @property
    def extension_id(self) -> str:
        """Public identifier, "namespace.name"."""
        return f"{self.namespace}.{self.name}"


@dataclass
class SearchableExtension:
    """
    Search entry derived from an ExtensionSnapshot.

    The relevance is recomputed every time the entry is written or queried.
    """

    id: int
    extension_id: str
    namespace: str
    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    average_rating: Optional[float] = None
    download_count: int = 0
    timestamp: int = 0
    relevance: float = 0.0

    @classmethod
    def from_snapshot(cls, extension: ExtensionSnapshot) -> "SearchableExtension":
        return cls(
            id=extension.id,
            extension_id=extension.extension_id,
            namespace=extension.namespace,
            name=extension.name,
            display_name=extension.display_name,
            description=extension.description,
            tags=list(extension.tags or []),
            categories=list(extension.categories or []),
            average_rating=extension.average_rating,
            download_count=extension.download_count or 0,
            timestamp=to_epoch_seconds(extension.latest_version_timestamp),
        )

    def to_document(self) -> Dict[str, Any]:
        """Convert to an engine document."""
        return {
            "id": self.id,
            "extension_id": self.extension_id,
            "namespace": self.namespace,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "tags": self.tags,
            "categories": self.categories,
            "average_rating": self.average_rating,
            "download_count": self.download_count,
            "timestamp": self.timestamp,
            "relevance": self.relevance,
        }

    def sort_value(self, sort_by: str) -> float:
        """Value of the sort field; missing values sort as zero."""
        field_name, _ = SORT_FIELDS[sort_by]
        value = getattr(self, field_name)
        return 0 if value is None else value


@dataclass(frozen=True)
class QueryOptions:
    """
    Search query options.

    Compared by value; created per request and discarded afterwards.
    Validation happens when the query runs, not on construction.
    """

    query_string: Optional[str] = None
    category: Optional[str] = None
    requested_size: int = 20
    requested_offset: int = 0
    sort_order: str = "desc"
    sort_by: str = "relevance"
    include_all_versions: bool = False

    @property
    def normalized_sort_order(self) -> str:
        return (self.sort_order or "").lower()

    def validate(self) -> None:
        """
        Validate sort and paging parameters.

        Raises:
            InvalidSearchOptionsError: If any parameter is invalid
        """
        if self.normalized_sort_order not in SORT_ORDERS:
            raise InvalidSearchOptionsError(
                "sortOrder parameter must be either 'asc' or 'desc'."
            )
        if self.sort_by not in SORT_FIELDS:
            raise InvalidSearchOptionsError(
                "sortBy parameter must be 'relevance', 'timestamp', "
                "'averageRating' or 'downloadCount'"
            )
        if self.requested_size <= 0:
            raise InvalidSearchOptionsError("size parameter must be positive")
        if self.requested_offset < 0:
            raise InvalidSearchOptionsError("offset parameter must not be negative")


@dataclass(frozen=True)
class PageRequest:
    """A 0-based page of results."""

    page_number: int = 0
    page_size: int = 20

    def __post_init__(self):
        if self.page_number < 0:
            raise InvalidSearchOptionsError("Page number must not be negative")
        if self.page_size <= 0:
            raise InvalidSearchOptionsError("Page size must be positive")

    @classmethod
    def of(cls, page_number: int, page_size: int) -> "PageRequest":
        return cls(page_number=page_number, page_size=page_size)

    @classmethod
    def from_options(cls, options: QueryOptions) -> "PageRequest":
        """Derive the page containing the requested offset."""
        options.validate()
        return cls(
            page_number=options.requested_offset // options.requested_size,
            page_size=options.requested_size,
        )

    @property
    def offset(self) -> int:
        return self.page_number * self.page_size


@dataclass
class SearchResult:
    """Ordered page of extension ids plus the total match count."""

    extension_ids: List[int] = field(default_factory=list)
    total_count: int = 0

    def __len__(self) -> int:
        return len(self.extension_ids)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "extension_ids": list(self.extension_ids),
            "total_count": self.total_count,
        }
