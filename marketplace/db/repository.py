"""
Extension Repository
Read access to the authoritative store for the search subsystem.
"""

import logging
from datetime import datetime
from typing import List, Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import contains_eager, selectinload, sessionmaker

from ..search.models import ExtensionSnapshot
from .models import ROLE_OWNER, Extension, ExtensionReview, ExtensionVersion, Namespace, NamespaceMembership

logger = logging.getLogger(__name__)


class ExtensionRepository(Protocol):
    """Queries the search subsystem needs from the authoritative store."""

    def list_active_extensions(self, namespace: Optional[str] = None) -> List[ExtensionSnapshot]:
        ...

    def find_active_extension(self, extension_id: int) -> Optional[ExtensionSnapshot]:
        ...

    def count_active_reviews(self, extension_id: int) -> int:
        ...

    def count_owner_memberships(self, namespace: str) -> int:
        ...

    def count_memberships(self, user_id: int, namespace: str) -> int:
        ...

    def max_active_download_count(self) -> int:
        ...

    def oldest_active_timestamp(self) -> Optional[datetime]:
        ...


def _has_active_version():
    return Extension.versions.any(ExtensionVersion.active.is_(True))


def to_snapshot(extension: Extension) -> Optional[ExtensionSnapshot]:
    """
    Project an extension onto its latest active version.

    Returns:
        Snapshot, or None if the extension has no active version
    """
    active_versions = [version for version in extension.versions if version.active]
    if not active_versions:
        return None
    latest = max(active_versions, key=lambda version: (version.timestamp, version.id))
    return ExtensionSnapshot(
        id=extension.id,
        namespace=extension.namespace.name,
        name=extension.name,
        display_name=latest.display_name,
        description=latest.description,
        tags=list(latest.tags or []),
        categories=list(latest.categories or []),
        average_rating=extension.average_rating,
        download_count=extension.download_count or 0,
        latest_version_timestamp=latest.timestamp,
        latest_version_publisher_user_id=latest.published_by_id,
    )


class SqlExtensionRepository:
    """
    SQLAlchemy implementation of ExtensionRepository.

    Opens a short-lived session per call; snapshots are detached plain
    dataclasses and stay valid after the session closes.
    """

    def __init__(self, session_factory: sessionmaker):
        """
        Args:
            session_factory: Factory function to create database sessions
        """
        self.session_factory = session_factory

    def _active_extensions_query(self):
        return (
            select(Extension)
            .join(Extension.namespace)
            .where(Extension.active.is_(True))
            .options(contains_eager(Extension.namespace), selectinload(Extension.versions))
            .order_by(Extension.id)
        )

    def list_active_extensions(self, namespace: Optional[str] = None) -> List[ExtensionSnapshot]:
        query = self._active_extensions_query()
        if namespace is not None:
            query = query.where(Namespace.name == namespace)

        with self.session_factory() as session:
            extensions = session.execute(query).scalars().all()
            snapshots = [to_snapshot(extension) for extension in extensions]

        snapshots = [snapshot for snapshot in snapshots if snapshot is not None]
        logger.debug(f"Loaded {len(snapshots)} active extensions")
        return snapshots

    def find_active_extension(self, extension_id: int) -> Optional[ExtensionSnapshot]:
        query = self._active_extensions_query().where(Extension.id == extension_id)
        with self.session_factory() as session:
            extension = session.execute(query).scalars().first()
            return to_snapshot(extension) if extension is not None else None

    def count_active_reviews(self, extension_id: int) -> int:
        query = select(func.count(ExtensionReview.id)).where(
            ExtensionReview.extension_id == extension_id,
            ExtensionReview.active.is_(True),
        )
        with self.session_factory() as session:
            return session.execute(query).scalar() or 0

    def count_owner_memberships(self, namespace: str) -> int:
        query = (
            select(func.count(NamespaceMembership.id))
            .join(NamespaceMembership.namespace)
            .where(Namespace.name == namespace, NamespaceMembership.role == ROLE_OWNER)
        )
        with self.session_factory() as session:
            return session.execute(query).scalar() or 0

    def count_memberships(self, user_id: int, namespace: str) -> int:
        query = (
            select(func.count(NamespaceMembership.id))
            .join(NamespaceMembership.namespace)
            .where(Namespace.name == namespace, NamespaceMembership.user_id == user_id)
        )
        with self.session_factory() as session:
            return session.execute(query).scalar() or 0

    def max_active_download_count(self) -> int:
        query = select(func.max(Extension.download_count)).where(
            Extension.active.is_(True), _has_active_version()
        )
        with self.session_factory() as session:
            return session.execute(query).scalar() or 0

    def oldest_active_timestamp(self) -> Optional[datetime]:
        """Timestamp of the oldest latest-version among active extensions."""
        latest = (
            select(
                ExtensionVersion.extension_id,
                func.max(ExtensionVersion.timestamp).label("latest_timestamp"),
            )
            .join(ExtensionVersion.extension)
            .where(Extension.active.is_(True), ExtensionVersion.active.is_(True))
            .group_by(ExtensionVersion.extension_id)
            .subquery()
        )
        query = select(func.min(latest.c.latest_timestamp))
        with self.session_factory() as session:
            return session.execute(query).scalar()
