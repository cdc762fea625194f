"""Domain error taxonomy.

Every error carries the HTTP status it maps to so the global error handler
can render it without a lookup table. Client-caused errors (NotFound,
ValidationError) are raised before any state is mutated.
"""

from __future__ import annotations


class SkillPathError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFound(SkillPathError):
    """Unknown user or achievement reference."""

    status_code = 404
    code = "not_found"


class ValidationError(SkillPathError):
    """Malformed action kind or action metadata."""

    status_code = 422
    code = "validation_error"


class StorageUnavailable(SkillPathError):
    """Persistence layer unreachable or transaction aborted."""

    status_code = 503
    code = "storage_unavailable"


class Conflict(SkillPathError):
    """Optimistic concurrency retries exhausted."""

    status_code = 409
    code = "conflict"


class UpstreamUnavailable(SkillPathError):
    """The language-model server could not be reached or answered badly."""

    status_code = 502
    code = "upstream_unavailable"
