"""
Relevance Scoring
Composite relevance combining rating confidence, download popularity and recency,
discounted for unverified publishers.

Relevance Formula:
relevance = w_rating × limit(rating) + w_downloads × limit(downloads) + w_timestamp × limit(recency)
(multiplied by the unverified penalty when the publisher is not a verified namespace member)
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from .models import ExtensionSnapshot, SearchableExtension, utc_now

if TYPE_CHECKING:
    from ..config import SearchSettings
    from ..db.repository import ExtensionRepository

logger = logging.getLogger(__name__)

# Review count at which the rating confidence reaches one half is 1 / factor
REVIEW_SATURATION_FACTOR = 0.25


@dataclass
class RelevanceConfig:
    """Weights of the relevance components."""

    rating_weight: float = 1.0
    downloads_weight: float = 1.0
    timestamp_weight: float = 1.0

    # Multiplier applied to unverified extensions
    unverified_penalty: float = 0.5

    @classmethod
    def from_settings(cls, settings: "SearchSettings") -> "RelevanceConfig":
        return cls(
            rating_weight=settings.relevance_rating,
            downloads_weight=settings.relevance_downloads,
            timestamp_weight=settings.relevance_timestamp,
            unverified_penalty=settings.relevance_unverified,
        )


@dataclass(frozen=True)
class RelevanceStats:
    """
    Normalization references for one batch of extensions.

    Computed once per rebuild, upsert or query and never persisted.
    """

    download_ref: float
    timestamp_ref: float
    oldest: datetime

    @classmethod
    def compute(
        cls, repository: "ExtensionRepository", now: Optional[datetime] = None
    ) -> "RelevanceStats":
        now = now or utc_now()
        max_downloads = repository.max_active_download_count() or 0
        oldest = repository.oldest_active_timestamp() or now
        return cls(
            download_ref=max_downloads * 1.5 + 100,
            timestamp_ref=(now - oldest).total_seconds() + 60,
            oldest=oldest,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["oldest"] = self.oldest.isoformat()
        return data


def count_saturation(count: float, factor: float = REVIEW_SATURATION_FACTOR) -> float:
    """
    Confidence in [0, 1) that grows with the number of reviews.

    Equals 0 for no reviews and approaches 1 as the count grows.
    """
    return 1 - 1.0 / (count * factor + 1)


def limit(value: float) -> float:
    """Clamp to [0, 1]. NaN is passed through."""
    if value < 0.0:
        return 0.0
    elif value > 1.0:
        return 1.0
    else:
        return value


def _ratio(numerator: float, denominator: float) -> float:
    """Division with IEEE semantics for a zero denominator."""
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator)
    return numerator / denominator


class RelevanceScorer:
    """
    Computes the relevance of a single extension.

    Pure: no state besides the configured weights, no I/O.
    """

    def __init__(self, config: Optional[RelevanceConfig] = None):
        """
        Initialize relevance scorer.

        Args:
            config: Relevance weights
        """
        self.config = config or RelevanceConfig()

        logger.info(
            f"Relevance scorer initialized with weights: "
            f"rating={self.config.rating_weight}, "
            f"downloads={self.config.downloads_weight}, "
            f"timestamp={self.config.timestamp_weight}, "
            f"unverified={self.config.unverified_penalty}"
        )

    def rating_component(self, average_rating: Optional[float], review_count: int) -> float:
        if average_rating is None:
            return 0.0
        # Few reviews mean low confidence in the average
        return (average_rating / 5.0) * count_saturation(review_count)

    def downloads_component(self, download_count: int, stats: RelevanceStats) -> float:
        return _ratio(download_count or 0, stats.download_ref)

    def timestamp_component(self, timestamp: datetime, stats: RelevanceStats) -> float:
        return _ratio((timestamp - stats.oldest).total_seconds(), stats.timestamp_ref)

    def score(
        self,
        extension: ExtensionSnapshot,
        stats: RelevanceStats,
        review_count: int = 0,
        verified: bool = True,
    ) -> float:
        """
        Calculate the relevance of an extension.

        Args:
            extension: Extension metadata
            stats: Normalization references of the current batch
            review_count: Number of active reviews of the extension
            verified: Whether the latest version's publisher is verified

        Returns:
            Finite relevance score (0.0 when the computation degenerates)
        """
        rating = self.rating_component(extension.average_rating, review_count)
        downloads = self.downloads_component(extension.download_count, stats)
        recency = self.timestamp_component(extension.latest_version_timestamp, stats)

        relevance = (
            self.config.rating_weight * limit(rating)
            + self.config.downloads_weight * limit(downloads)
            + self.config.timestamp_weight * limit(recency)
        )

        if not verified:
            relevance *= self.config.unverified_penalty

        if math.isnan(relevance) or math.isinf(relevance):
            logger.error(
                f"Invalid relevance for entry {extension.extension_id} {stats.to_dict()}"
            )
            relevance = 0.0

        return relevance


class RelevanceService:
    """
    Turns extension snapshots into scored search entries.

    Looks up review counts and namespace memberships through the repository
    and delegates the arithmetic to RelevanceScorer.
    """

    def __init__(
        self, repository: "ExtensionRepository", scorer: Optional[RelevanceScorer] = None
    ):
        self.repository = repository
        self.scorer = scorer or RelevanceScorer()

    @property
    def config(self) -> RelevanceConfig:
        return self.scorer.config

    def compute_stats(self, now: Optional[datetime] = None) -> RelevanceStats:
        return RelevanceStats.compute(self.repository, now=now)

    def is_verified(self, extension: ExtensionSnapshot) -> bool:
        """
        Verified: the namespace has an owner and the publisher of the latest
        version is a member of the namespace.
        """
        user_id = extension.latest_version_publisher_user_id
        if user_id is None:
            return False
        return (
            self.repository.count_owner_memberships(extension.namespace) > 0
            and self.repository.count_memberships(user_id, extension.namespace) > 0
        )

    def to_search_entry(
        self, extension: ExtensionSnapshot, stats: RelevanceStats
    ) -> SearchableExtension:
        entry = SearchableExtension.from_snapshot(extension)
        review_count = 0
        if extension.average_rating is not None:
            review_count = self.repository.count_active_reviews(extension.id)
        entry.relevance = self.scorer.score(
            extension,
            stats,
            review_count=review_count,
            verified=self.is_verified(extension),
        )
        return entry
