"""
Error types raised by the elastic wrapper.
"""

from typing import Any, Iterable, List, Optional


class ElasticWrapperError(Exception):
    """Base class for every error raised by this package."""


class ElasticConfigurationError(ElasticWrapperError):
    """Raised at construction time when options or schema configuration are invalid."""


class ElasticOperationError(ElasticWrapperError):
    """
    A call to the engine did not succeed.

    The message is the engine-provided reason when one is available, so it
    can be matched against engine-side logs.
    """

    def __init__(self, reason: str, status: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.status = status


class ElasticBulkError(ElasticOperationError):
    """Some items of a bulk request were rejected."""

    def __init__(
        self,
        reason: str,
        failed_ids: Iterable[str],
        status: Optional[int] = None,
    ):
        super().__init__(reason, status)
        self.failed_ids: List[str] = list(failed_ids)


class ElasticAggregateError(ElasticWrapperError):
    """One or more bulk chunks still failed once retries were exhausted."""

    SEPARATOR = "; \r\n"

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("\r\n" + self.SEPARATOR.join(self.errors))


def error_reason(body: Any, fallback: str) -> str:
    """
    Extract the engine's diagnostic reason from an error response body.

    Args:
        body: Decoded response body (usually ``{"error": {"reason": ...}}``)
        fallback: Debug string used when no structured reason is present

    Returns:
        The most specific reason available
    """
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            reason = error.get("reason")
            if reason:
                return str(reason)
            root_causes = error.get("root_cause") or []
            if root_causes and isinstance(root_causes[0], dict) and root_causes[0].get("reason"):
                return str(root_causes[0]["reason"])
        elif isinstance(error, str) and error:
            return error
    return fallback
