"""
Database Module
ORM models and the repository the search subsystem reads from.
"""

from .models import (
    Base,
    UserAccount,
    Namespace,
    NamespaceMembership,
    Extension,
    ExtensionVersion,
    ExtensionReview,
    ROLE_OWNER,
    ROLE_CONTRIBUTOR,
)
from .repository import ExtensionRepository, SqlExtensionRepository

__all__ = [
    "Base",
    "UserAccount",
    "Namespace",
    "NamespaceMembership",
    "Extension",
    "ExtensionVersion",
    "ExtensionReview",
    "ROLE_OWNER",
    "ROLE_CONTRIBUTOR",
    "ExtensionRepository",
    "SqlExtensionRepository",
]
