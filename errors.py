from __future__ import annotations


class QueryError(Exception):
    """Base class for failures that end a query request."""

    status_code = 500
    kind = "query_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def public_message(self) -> str:
        return f"Failed to process your query: {self.message}"


class BadRequest(QueryError):
    status_code = 400
    kind = "bad_request"

    def public_message(self) -> str:
        return self.message


class SchemaUnavailable(QueryError):
    kind = "schema_unavailable"


class GenerationFailed(QueryError):
    kind = "generation_failed"


class ExecutionFailed(QueryError):
    kind = "execution_failed"
