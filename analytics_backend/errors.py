"""Error taxonomy for the chat pipeline.

Every error knows the HTTP status it maps to and renders the JSON body the
client receives: an ``error`` message plus, where useful for debugging,
``details`` and the ``generatedQuery`` that triggered the failure.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class AnalyticsError(Exception):
    """Base class for all pipeline errors."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[str] = None,
        generated_query: Optional[str] = None,
    ) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        self.details = details
        self.generated_query = generated_query

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        if self.generated_query is not None:
            body["generatedQuery"] = self.generated_query
        return body


class ConfigurationError(AnalyticsError):
    """A required setting is missing or invalid."""

    default_message = "Service is not configured"


class InvalidInput(AnalyticsError):
    status_code = 400
    default_message = "Message is required and must be a non-empty string"


class UnsafeQuery(AnalyticsError):
    """Generated SQL failed the read-only check. Carries the rejected SQL."""

    status_code = 400
    default_message = "Only SELECT queries are allowed for security reasons"


class SchemaUnavailable(AnalyticsError):
    """Warehouse metadata could not be listed.

    Recovered by the chat pipeline (it proceeds without schema context); only
    surfaced on the schema inspection route.
    """

    status_code = 503
    default_message = "Failed to load table schemas"


class GenerationFailed(AnalyticsError):
    default_message = "Failed to generate SQL query"


class EmptyGeneration(AnalyticsError):
    default_message = "Generated SQL query is empty"


class ExecutionFailed(AnalyticsError):
    default_message = "Failed to execute query on the data warehouse"


class ExplanationFailed(AnalyticsError):
    """Never reaches the client; replaced by a templated explanation."""

    default_message = "Failed to explain query results"
