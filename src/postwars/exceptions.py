"""Domain error taxonomy.

Every error carries the HTTP status the API layer answers with, so route
handlers can let them propagate to the global error handler.
"""

from __future__ import annotations


class PostWarsError(Exception):
    """Base class for expected, reportable failures."""

    status_code: int = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(PostWarsError):
    """Missing or malformed input. No state was changed."""

    status_code = 400


class DuplicatePostError(ValidationError):
    """The user already tracks a post with this URL."""

    status_code = 409


class PermissionDeniedError(PostWarsError):
    status_code = 403


class NotFoundError(PostWarsError):
    """Referenced user, post or team does not exist."""

    status_code = 404


class NotApplicableError(PostWarsError):
    """The request makes no sense for this user (e.g. team board without a team)."""

    status_code = 404


class ConflictError(PostWarsError):
    """Unique-constraint race. Callers that insert-if-absent treat it as a no-op."""

    status_code = 409


class StoreError(PostWarsError):
    """Transient persistence failure. Propagated so the caller can retry."""

    status_code = 503
