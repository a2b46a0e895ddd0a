"""
Search Index Tasks
Background tasks for index maintenance and fire-and-forget mutation events.
"""

import logging
from typing import Any, Dict

from .celery_app import app

logger = logging.getLogger(__name__)


def _get_service():
    # Import here to avoid creating the search service at worker import time
    from ..search import get_search_service

    return get_search_service()


@app.task(bind=True, name="tasks.update_search_index")
def update_search_index(self) -> Dict[str, Any]:
    """
    Daily soft rebuild of the search index.

    Failures are not retried here; the next scheduled run starts over.

    Returns:
        Dictionary with the update result
    """
    try:
        updated = _get_service().update_search_index()
        return {"status": "success", "updated": updated}
    except Exception as e:
        logger.error(f"Search index update failed: {e}", exc_info=True)
        raise


@app.task(bind=True, name="tasks.rebuild_search_index")
def rebuild_search_index(self, clear: bool = False) -> Dict[str, Any]:
    """
    Rebuild the search index on request.

    Args:
        clear: Publish a fresh index even when no extension is active

    Returns:
        Dictionary with rebuild results
    """
    try:
        logger.info(f"Starting search index rebuild (clear={clear})")
        indexed = _get_service().rebuild_search_index(clear=clear)
        return {"status": "success", "indexed": indexed, "clear": clear}
    except Exception as e:
        logger.error(f"Search index rebuild failed: {e}", exc_info=True)
        raise


@app.task(bind=True, name="tasks.update_search_entry")
def update_search_entry(self, extension_id: int) -> Dict[str, Any]:
    """Re-index one extension after it was created or changed."""
    try:
        _get_service().notify_changed(extension_id)
        return {"status": "success", "extension_id": extension_id}
    except Exception as e:
        logger.error(f"Failed to update search entry {extension_id}: {e}", exc_info=True)
        raise


@app.task(bind=True, name="tasks.remove_search_entry")
def remove_search_entry(self, extension_id: int) -> Dict[str, Any]:
    """Remove one extension from the index."""
    try:
        _get_service().notify_removed(extension_id)
        return {"status": "success", "extension_id": extension_id}
    except Exception as e:
        logger.error(f"Failed to remove search entry {extension_id}: {e}", exc_info=True)
        raise


@app.task(bind=True, name="tasks.update_namespace_entries")
def update_namespace_entries(self, namespace: str) -> Dict[str, Any]:
    """Re-index all extensions of a namespace after membership changes."""
    try:
        updated = _get_service().notify_namespace_changed(namespace)
        return {"status": "success", "namespace": namespace, "updated": updated}
    except Exception as e:
        logger.error(f"Failed to update namespace '{namespace}' entries: {e}", exc_info=True)
        raise
