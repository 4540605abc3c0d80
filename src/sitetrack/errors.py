"""Error taxonomy for SiteTrack workflow operations.

Every mutating operation reports failure by raising one of these typed
errors; the web layer maps each class to an HTTP status code.

- ValidationError: malformed or missing input; fix the input, never retry.
- NotFoundError: the entity does not exist or is not visible to the actor.
- AuthorizationError: the actor's role or ownership forbids the mutation.
- ConflictError: a state precondition no longer holds (usually a race).
- DependencyError: an external collaborator (blob store, identity) failed.
"""

from __future__ import annotations

from typing import Any


class SiteTrackError(Exception):
    """Base class for all SiteTrack workflow errors.

    Attributes:
        message: Human-readable, actionable description.
        details: Optional structured context for API responses and logs.
    """

    status_code: int = 500
    code: str = "sitetrack_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(SiteTrackError):
    """Raised when required input is missing or malformed."""

    status_code = 422
    code = "validation_error"


class NotFoundError(SiteTrackError):
    """Raised when a referenced entity does not exist or is not visible."""

    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} {entity_id} not found",
            {"entity": entity, "id": str(entity_id)},
        )


class AuthorizationError(SiteTrackError):
    """Raised when the actor may not perform the requested mutation."""

    status_code = 403
    code = "forbidden"


class ConflictError(SiteTrackError):
    """Raised when a state precondition was violated, e.g. by a concurrent write."""

    status_code = 409
    code = "conflict"


class DependencyError(SiteTrackError):
    """Raised when an external collaborator fails or times out.

    Attributes:
        dependency: Name of the failing collaborator.
        retryable: Whether the failed call is safe to retry.
    """

    status_code = 503
    code = "dependency_error"

    def __init__(self, dependency: str, message: str, retryable: bool = True) -> None:
        self.dependency = dependency
        self.retryable = retryable
        super().__init__(message, {"dependency": dependency, "retryable": retryable})
