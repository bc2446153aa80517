"""
Connection and index configuration.

Options are consumed by the client provider and the repository; values can
be given explicitly or read from the environment (and a ``.env`` file).
"""

import os
from typing import Any, ClassVar, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ElasticOptions(BaseModel):
    """Configuration for an index-bound repository."""

    uri: Optional[str] = None
    cloud_id: Optional[str] = None
    user_name: Optional[str] = None
    password: Optional[str] = None

    index: str = Field(..., min_length=1, description="Index name, or alias name when rolling over")
    use_roll_over_alias: bool = False
    pattern: Optional[str] = Field(None, description="Physical index name prefix for rollover")
    max_size_gb: int = 10
    max_documents: Optional[int] = None
    max_inner_result_window: int = 1000

    ENV_FIELDS: ClassVar[Dict[str, str]] = {
        "URI": "uri",
        "CLOUD_ID": "cloud_id",
        "USER_NAME": "user_name",
        "PASSWORD": "password",
        "INDEX": "index",
        "USE_ROLL_OVER_ALIAS": "use_roll_over_alias",
        "PATTERN": "pattern",
        "MAX_SIZE_GB": "max_size_gb",
        "MAX_DOCUMENTS": "max_documents",
        "MAX_INNER_RESULT_WINDOW": "max_inner_result_window",
    }

    @classmethod
    def from_env(cls, prefix: str = "ELASTIC_", **overrides: Any) -> "ElasticOptions":
        """
        Build options from environment variables.

        A ``.env`` file in the working directory is loaded first; variables
        already set in the environment take precedence over it.

        Args:
            prefix: Prefix of the variable names (``ELASTIC_URI``, ``ELASTIC_INDEX``...)
            **overrides: Explicit values that win over the environment

        Returns:
            Validated options
        """
        load_dotenv()

        values: Dict[str, Any] = {}
        for suffix, field_name in cls.ENV_FIELDS.items():
            raw = os.getenv(f"{prefix}{suffix}")
            if raw is not None and raw != "":
                values[field_name] = raw

        values.update(overrides)
        return cls(**values)
