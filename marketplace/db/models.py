"""
SQLAlchemy ORM Models
Database tables read by the search subsystem.
"""

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Boolean,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

ROLE_OWNER = "owner"
ROLE_CONTRIBUTOR = "contributor"


class UserAccount(Base):
    """Publisher account."""

    __tablename__ = "user_accounts"

    id = Column(Integer, primary_key=True)
    login_name = Column(String(255), unique=True, nullable=False)
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())

    memberships = relationship("NamespaceMembership", back_populates="user")

    def __repr__(self):
        return f"<UserAccount(id={self.id}, login_name='{self.login_name}')>"


class Namespace(Base):
    """Publisher namespace owning extensions."""

    __tablename__ = "namespaces"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), unique=True, index=True, nullable=False)

    extensions = relationship("Extension", back_populates="namespace")
    memberships = relationship(
        "NamespaceMembership", back_populates="namespace", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Namespace(id={self.id}, name='{self.name}')>"


class NamespaceMembership(Base):
    """Role of a user within a namespace."""

    __tablename__ = "namespace_memberships"
    __table_args__ = (UniqueConstraint("namespace_id", "user_id", name="uq_namespace_member"),)

    id = Column(Integer, primary_key=True)
    namespace_id = Column(Integer, ForeignKey("namespaces.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("user_accounts.id"), nullable=False, index=True)
    role = Column(String(32), nullable=False, comment="'owner' or 'contributor'")

    namespace = relationship("Namespace", back_populates="memberships")
    user = relationship("UserAccount", back_populates="memberships")


class Extension(Base):
    """
    Extension model.

    Aggregated counters (rating, downloads) are maintained by the
    authoritative store; search only reads them.
    """

    __tablename__ = "extensions"
    __table_args__ = (UniqueConstraint("namespace_id", "name", name="uq_extension_name"),)

    id = Column(Integer, primary_key=True)
    namespace_id = Column(Integer, ForeignKey("namespaces.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    average_rating = Column(Float, nullable=True)
    download_count = Column(Integer, nullable=False, default=0)

    namespace = relationship("Namespace", back_populates="extensions")
    versions = relationship(
        "ExtensionVersion", back_populates="extension", cascade="all, delete-orphan"
    )
    reviews = relationship(
        "ExtensionReview", back_populates="extension", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Extension(id={self.id}, name='{self.name}', active={self.active})>"


class ExtensionVersion(Base):
    """Published version of an extension."""

    __tablename__ = "extension_versions"

    id = Column(Integer, primary_key=True)
    extension_id = Column(Integer, ForeignKey("extensions.id"), nullable=False, index=True)
    version = Column(String(100), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    display_name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    categories = Column(JSON, nullable=False, default=list)
    timestamp = Column(TIMESTAMP, nullable=False, server_default=func.now())
    published_by_id = Column(Integer, ForeignKey("user_accounts.id"), nullable=True)

    extension = relationship("Extension", back_populates="versions")
    published_by = relationship("UserAccount")


class ExtensionReview(Base):
    """User review of an extension."""

    __tablename__ = "extension_reviews"

    id = Column(Integer, primary_key=True)
    extension_id = Column(Integer, ForeignKey("extensions.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("user_accounts.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    timestamp = Column(TIMESTAMP, nullable=False, server_default=func.now())

    extension = relationship("Extension", back_populates="reviews")
