"""Typed failures raised by the rotation engine.

Each error carries the HTTP status the API layer should answer with.
"""

from fastapi import HTTPException


class RotationError(RuntimeError):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ProjectNotFoundError(RotationError):
    status_code = 404


class CandidateNotFoundError(RotationError):
    status_code = 404


class DeveloperNotFoundError(RotationError):
    status_code = 404


class NotCandidateOwnerError(RotationError):
    status_code = 403


class InvalidSelectionError(RotationError):
    pass


class InvalidProjectStateError(RotationError):
    pass


class InvalidCandidateStateError(RotationError):
    pass


class InvalidInviteError(RotationError):
    pass


class AssignmentConflictError(RotationError):
    """Another developer already claimed the project, or the batch moved on."""


class QuotaExceededError(RotationError):
    status_code = 402


def as_http_exception(exc: RotationError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)
