"""
Elasticsearch client construction from options.
"""

import logging
from typing import Any, Dict, Optional

from elasticsearch import AsyncElasticsearch

from elastic_wrapper.core.errors import ElasticConfigurationError
from elastic_wrapper.core.options import ElasticOptions

logger = logging.getLogger(__name__)


class ElasticClientProvider:
    """
    Creates and caches the async client of a repository.

    Cloud deployments are addressed by ``cloud_id`` with basic
    authentication; self-hosted clusters by ``uri`` with optional basic
    authentication.
    """

    REQUEST_TIMEOUT_SECONDS = 120

    def __init__(self, options: ElasticOptions):
        """
        Initialize client provider.

        Args:
            options: Connection options

        Raises:
            ElasticConfigurationError: If neither ``uri`` nor ``cloud_id`` is set
        """
        if not options.cloud_id and not options.uri:
            raise ElasticConfigurationError("Either 'uri' or 'cloud_id' must be configured")
        if options.cloud_id and not (options.user_name and options.password):
            raise ElasticConfigurationError("'cloud_id' requires 'user_name' and 'password'")

        self.options = options
        self._client: Optional[AsyncElasticsearch] = None

    def get_client(self) -> AsyncElasticsearch:
        if self._client is None:
            self._client = AsyncElasticsearch(**self._client_settings())
        return self._client

    def _client_settings(self) -> Dict[str, Any]:
        settings: Dict[str, Any] = {"request_timeout": self.REQUEST_TIMEOUT_SECONDS}

        if self.options.cloud_id:
            settings["cloud_id"] = self.options.cloud_id
            settings["basic_auth"] = (self.options.user_name, self.options.password)
            logger.info("Connecting to Elastic Cloud deployment for index '%s'", self.options.index)
        else:
            settings["hosts"] = [self.options.uri]
            if self.options.user_name and self.options.password:
                settings["basic_auth"] = (self.options.user_name, self.options.password)
            logger.info("Connecting to %s for index '%s'", self.options.uri, self.options.index)

        return settings
