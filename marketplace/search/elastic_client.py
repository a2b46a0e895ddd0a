"""
Elasticsearch Client
Builds the Elasticsearch client used by the search index.
"""

import logging
from typing import Optional

from elasticsearch import Elasticsearch

from ..config import SearchSettings, get_settings

logger = logging.getLogger(__name__)


class ElasticSearchClient:
    def __init__(self, settings: Optional[SearchSettings] = None):
        self.settings = settings or get_settings()
        self.client: Optional[Elasticsearch] = None

    def connect(self) -> Elasticsearch:
        """Connect to the cluster with API key or basic authentication.

        API key takes precedence when both are configured. Request timeouts
        are enforced by the client; this subsystem adds none of its own.
        """
        settings = self.settings
        logger.info(f"Connecting to Elasticsearch: [{settings.elasticsearch_host}]")

        kwargs = {
            "hosts": settings.elasticsearch_host,
            "request_timeout": settings.elasticsearch_timeout,
        }
        if settings.elasticsearch_ca_certs:
            kwargs["ca_certs"] = settings.elasticsearch_ca_certs
        if settings.elasticsearch_api_key:
            kwargs["api_key"] = settings.elasticsearch_api_key
        elif settings.elasticsearch_username:
            kwargs["basic_auth"] = (
                settings.elasticsearch_username,
                settings.elasticsearch_password or "",
            )

        self.client = Elasticsearch(**kwargs)
        return self.client
