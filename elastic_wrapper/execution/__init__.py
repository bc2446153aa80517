"""
Execution layer: client construction, retries and the repository.
"""

from elastic_wrapper.execution.client_provider import ElasticClientProvider
from elastic_wrapper.execution.repository import ElasticBaseRepository
from elastic_wrapper.execution.retry import RetryExecutor

__all__ = ["ElasticClientProvider", "ElasticBaseRepository", "RetryExecutor"]
