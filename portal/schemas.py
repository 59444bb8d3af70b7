"""Pydantic schemas shared across services."""
from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, Field


class QuestionType(str, enum.Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    SELECT = "select"
    RADIO = "radio"


class CustomQuestion(BaseModel):
    id: str
    question: str = ""
    type: QuestionType = QuestionType.TEXT
    required: bool = False
    options: list[str] = Field(default_factory=list)


def parse_questions(raw: list[dict[str, Any]] | None) -> list[CustomQuestion]:
    return [CustomQuestion.model_validate(item) for item in raw or []]


class EligibilityOut(BaseModel):
    opportunity_id: str
    can_apply: bool
    reason: str | None = None
    days_until_deadline: float | None = None
    deadline_urgent: bool = False


class UploadedDocumentOut(BaseModel):
    name: str
    path: str
    url: str
    size: int


class FileFailureOut(BaseModel):
    filename: str
    kind: str
    message: str


class IngestReportOut(BaseModel):
    accepted: list[UploadedDocumentOut] = Field(default_factory=list)
    failures: list[FileFailureOut] = Field(default_factory=list)
    capacity_rejected: list[str] = Field(default_factory=list)


class WizardStateOut(BaseModel):
    session_id: str
    opportunity_id: str
    step: str
    steps: list[str]
    status: str
    cover_letter: str = ""
    answers: dict[str, str] = Field(default_factory=dict)
    documents: list[UploadedDocumentOut] = Field(default_factory=list)
    questions: list[CustomQuestion] = Field(default_factory=list)
    dirty: bool = False


class StepResultOut(BaseModel):
    valid: bool
    error: str | None = None
    state: WizardStateOut


class CoverLetterIn(BaseModel):
    text: str = ""


class AnswerIn(BaseModel):
    answer: str = ""


class CloseResultOut(BaseModel):
    closed: bool
    requires_confirmation: bool = False
    cleanup_failures: list[FileFailureOut] = Field(default_factory=list)


class QuickApplyOut(BaseModel):
    status: str
    ok: bool
    kind: str | None = None
    message: str | None = None
    checklist: list[str] = Field(default_factory=list)
    application_id: str | None = None


class CompletenessOut(BaseModel):
    student_id: str
    profile_strength: int
    issues: list[str] = Field(default_factory=list)
    quick_apply_ready: bool
