"""Error taxonomy and the structured outcome handed to the notification layer."""
from __future__ import annotations

import enum

from pydantic import BaseModel


class OutcomeKind(str, enum.Enum):
    VALIDATION = "validation"
    UPLOAD = "upload"
    DUPLICATE = "duplicate"
    NETWORK = "network"
    NOT_ELIGIBLE = "not_eligible"


class Outcome(BaseModel):
    ok: bool
    kind: OutcomeKind | None = None
    message: str | None = None

    @classmethod
    def success(cls, message: str | None = None) -> Outcome:
        return cls(ok=True, message=message)

    @classmethod
    def failure(cls, kind: OutcomeKind, message: str) -> Outcome:
        return cls(ok=False, kind=kind, message=message)


class WorkflowError(Exception):
    """Base class for failures that surface to the candidate."""

    kind: OutcomeKind = OutcomeKind.NETWORK

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_outcome(self) -> Outcome:
        return Outcome.failure(self.kind, self.message)


class ValidationError(WorkflowError):
    kind = OutcomeKind.VALIDATION


class UploadError(WorkflowError):
    kind = OutcomeKind.UPLOAD

    def __init__(self, message: str, *, filename: str | None = None) -> None:
        super().__init__(message)
        self.filename = filename


class DuplicateSubmissionError(WorkflowError):
    kind = OutcomeKind.DUPLICATE

    def __init__(self, message: str = "You have already applied to this opportunity.") -> None:
        super().__init__(message)


class EligibilityError(WorkflowError):
    kind = OutcomeKind.NOT_ELIGIBLE


class ProfileNotFoundError(EligibilityError):
    def __init__(
        self,
        message: str = "Student profile not found. Please complete your profile before applying.",
    ) -> None:
        super().__init__(message)


class NetworkError(WorkflowError):
    kind = OutcomeKind.NETWORK
