"""
Domain error taxonomy.

Every workflow failure is an HTTPException subclass so routers can let them
propagate untouched while managers stay usable (and testable) without HTTP.
"""

from typing import Any

from fastapi import HTTPException, status


class WorkflowError(HTTPException):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Workflow error"

    def __init__(self, detail: Any = None) -> None:
        super().__init__(
            status_code=self.status_code, detail=detail or self.default_detail
        )


class ValidationError(WorkflowError):
    """Malformed or missing input. Never reaches the repository."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input"


class Forbidden(WorkflowError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Unauthorized access"


class NotFound(WorkflowError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class InvalidTransition(WorkflowError):
    """The requested edge is not in the state machine, or the row moved under us."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Invalid status transition"


class InvalidState(InvalidTransition):
    """The entity is not in the state the operation requires."""

    default_detail = "Operation not allowed in the current state"


class InfrastructureError(WorkflowError):
    default_detail = "Repository unavailable"
