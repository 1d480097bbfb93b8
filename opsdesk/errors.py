"""
Domain errors.

Services raise these instead of bare ValueErrors so the API layer
can map each kind to a status code. Messages are meant for end
users: they name the entity and the rule, never SQL or internals.
"""

from typing import Any


class OpsDeskError(Exception):
    """Base class for every error the services raise on purpose."""

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(OpsDeskError):
    """An id does not resolve to a live entity."""
    status_code = 404


class AlreadyExistsError(OpsDeskError):
    """A uniqueness rule (name, email, resource/action) was violated."""
    status_code = 409


class ConflictError(OpsDeskError):
    """A referential rule blocks the operation, e.g. deleting a role in use."""
    status_code = 409


class BadRequestError(OpsDeskError):
    """Malformed or empty input the schema layer could not reject."""
    status_code = 400


class UnauthorizedError(OpsDeskError):
    """Missing or invalid credentials."""
    status_code = 401


class ForbiddenError(OpsDeskError):
    """The caller is authenticated but not allowed to do this."""
    status_code = 403


class InternalError(OpsDeskError):
    status_code = 500
