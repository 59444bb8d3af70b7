"""Multi-step application wizard.

Steps are an explicit enum and movement goes through :func:`step_transition`,
so the controller can never sit on a step the opportunity does not have.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import Settings
from portal.schemas import CustomQuestion, parse_questions
from portal.storage import DocumentStorage
from workflow.applied_cache import AppliedOpportunityCache
from workflow.eligibility import (
    ALREADY_APPLIED,
    can_apply,
    check_eligibility,
    find_live_application,
    load_opportunity,
    resolve_student,
)
from workflow.errors import (
    DuplicateSubmissionError,
    EligibilityError,
    Outcome,
    OutcomeKind,
    UploadError,
    ValidationError,
    WorkflowError,
)
from workflow.notifier import Notifier
from workflow.submission import SubmissionService
from workflow.uploads import DocumentUploadManager, FileFailure, IncomingFile, IngestReport, UploadedDocument
from workflow.validators import ValidationResult, validate_answers, validate_cover_letter

logger = logging.getLogger(__name__)


class WizardStep(str, enum.Enum):
    COVER = "cover"
    DOCUMENTS = "documents"
    QUESTIONS = "questions"
    REVIEW = "review"


class WizardStatus(str, enum.Enum):
    EDITING = "editing"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    CLOSED = "closed"


class StepMove(str, enum.Enum):
    NEXT = "next"
    BACK = "back"


def build_steps(has_questions: bool) -> tuple[WizardStep, ...]:
    if has_questions:
        return (WizardStep.COVER, WizardStep.DOCUMENTS, WizardStep.QUESTIONS, WizardStep.REVIEW)
    return (WizardStep.COVER, WizardStep.DOCUMENTS, WizardStep.REVIEW)


def step_transition(steps: tuple[WizardStep, ...], current: WizardStep, move: StepMove) -> WizardStep:
    """Total transition function over a step sequence; moves clamp at either end."""

    if current not in steps:
        raise ValueError(f"{current.value} is not part of this wizard")
    index = steps.index(current)
    if move is StepMove.NEXT:
        return steps[min(index + 1, len(steps) - 1)]
    return steps[max(index - 1, 0)]


@dataclass
class CloseResult:
    closed: bool
    requires_confirmation: bool = False
    cleanup_failures: list[FileFailure] = field(default_factory=list)


class ApplicationWizard:
    """In-memory state for one candidate filling in one application."""

    def __init__(
        self,
        *,
        actor_id: str,
        student_id: str,
        opportunity_id: str,
        questions: list[CustomQuestion],
        uploads: DocumentUploadManager,
        submission: SubmissionService,
        notifier: Notifier,
        settings: Settings,
        cache: AppliedOpportunityCache | None = None,
    ) -> None:
        self.actor_id = actor_id
        self.student_id = student_id
        self.opportunity_id = opportunity_id
        self.questions = questions
        self.uploads = uploads
        self.submission = submission
        self.notifier = notifier
        self.settings = settings
        self.cache = cache

        self.steps = build_steps(bool(questions))
        self.step = self.steps[0]
        self.status = WizardStatus.EDITING
        self.cover_letter = ""
        self.answers: dict[str, str] = {}
        self.application_id: str | None = None
        self.submitted_documents: list[str] = []

    @property
    def documents(self) -> list[UploadedDocument]:
        return self.uploads.documents

    @property
    def is_dirty(self) -> bool:
        return (
            bool(self.cover_letter.strip())
            or bool(self.uploads.documents)
            or any(value.strip() for value in self.answers.values())
        )

    def _ensure_editing(self) -> None:
        if self.status is not WizardStatus.EDITING:
            raise ValidationError("This application is no longer open for changes.")

    def set_cover_letter(self, text: str) -> None:
        self._ensure_editing()
        self.cover_letter = text or ""

    def answer(self, question_id: str, text: str) -> None:
        self._ensure_editing()
        if question_id not in {q.id for q in self.questions}:
            raise ValidationError(f"Unknown question: {question_id}")
        self.answers[question_id] = text or ""

    def _gate(self, step: WizardStep) -> ValidationResult:
        if step is WizardStep.COVER:
            return validate_cover_letter(
                self.cover_letter,
                min_length=self.settings.min_cover_letter_length,
                max_length=self.settings.max_cover_letter_length,
            )
        if step is WizardStep.QUESTIONS:
            return validate_answers(self.questions, self.answers)
        return ValidationResult.ok()

    def next(self) -> ValidationResult:
        self._ensure_editing()
        check = self._gate(self.step)
        if not check.valid:
            self.notifier.notify(Outcome.failure(OutcomeKind.VALIDATION, check.error or "Invalid input."))
            return check
        self.step = step_transition(self.steps, self.step, StepMove.NEXT)
        return check

    def back(self) -> ValidationResult:
        self._ensure_editing()
        self.step = step_transition(self.steps, self.step, StepMove.BACK)
        return ValidationResult.ok()

    async def ingest(self, files: list[IncomingFile]) -> IngestReport:
        self._ensure_editing()
        report = await self.uploads.ingest(files)
        for failure in report.failures:
            self.notifier.notify(Outcome.failure(failure.kind, f"{failure.filename}: {failure.message}"))
        if report.capacity_warning:
            self.notifier.notify(Outcome.failure(OutcomeKind.UPLOAD, report.capacity_warning))
        for document in report.accepted:
            self.notifier.notify(Outcome.success(f"{document.name} uploaded successfully"))
        return report

    async def remove_document(self, path: str) -> Outcome:
        self._ensure_editing()
        try:
            document = await self.uploads.remove(path)
        except UploadError as exc:
            outcome = exc.to_outcome()
        else:
            outcome = Outcome.success(f"{document.name} removed")
        self.notifier.notify(outcome)
        return outcome

    async def close(self, *, confirmed: bool = False) -> CloseResult:
        if self.status is WizardStatus.CLOSED:
            return CloseResult(closed=True)
        if self.status is WizardStatus.SUBMITTED:
            self.status = WizardStatus.CLOSED
            return CloseResult(closed=True)
        if self.status is WizardStatus.SUBMITTING:
            return CloseResult(closed=False)
        if self.is_dirty and not confirmed:
            return CloseResult(closed=False, requires_confirmation=True)

        failures = await self.uploads.discard_all()
        self.status = WizardStatus.CLOSED
        logger.info(
            "Wizard for opportunity %s abandoned by %s (%d cleanup failure(s))",
            self.opportunity_id,
            self.actor_id,
            len(failures),
        )
        return CloseResult(closed=True, cleanup_failures=failures)

    async def submit(self, session: AsyncSession, *, now: datetime | None = None) -> Outcome:
        if self.status is not WizardStatus.EDITING:
            outcome = Outcome.failure(OutcomeKind.VALIDATION, "This application is no longer open.")
            self.notifier.notify(outcome)
            return outcome
        if self.step is not WizardStep.REVIEW:
            outcome = Outcome.failure(OutcomeKind.VALIDATION, "Review your application before submitting.")
            self.notifier.notify(outcome)
            return outcome

        self.status = WizardStatus.SUBMITTING
        try:
            eligibility = await check_eligibility(
                session, student_id=self.student_id, opportunity_id=self.opportunity_id, now=now
            )
            if not eligibility.can_apply:
                if eligibility.reason == ALREADY_APPLIED:
                    raise DuplicateSubmissionError()
                raise EligibilityError(eligibility.reason or "Not eligible.")

            application = await self.submission.submit(
                session,
                student_id=self.student_id,
                opportunity_id=self.opportunity_id,
                cover_letter=self.cover_letter,
                documents=self.uploads.urls,
                answers=self.answers,
            )
        except DuplicateSubmissionError as exc:
            if self.cache is not None:
                self.cache.mark_applied(self.opportunity_id)
            outcome = exc.to_outcome()
        except WorkflowError as exc:
            outcome = exc.to_outcome()
        else:
            self.status = WizardStatus.SUBMITTED
            self.application_id = application.id
            self.submitted_documents = list(application.additional_documents or [])
            if self.cache is not None:
                self.cache.mark_applied(self.opportunity_id)
            outcome = Outcome.success("Application submitted successfully!")
        finally:
            if self.status is WizardStatus.SUBMITTING:
                self.status = WizardStatus.EDITING

        self.notifier.notify(outcome)
        return outcome


async def open_wizard(
    session: AsyncSession,
    *,
    actor_id: str,
    opportunity_id: str,
    storage: DocumentStorage,
    submission: SubmissionService,
    notifier: Notifier,
    settings: Settings,
    cache: AppliedOpportunityCache | None = None,
    now: datetime | None = None,
) -> ApplicationWizard:
    """Start a wizard, refusing with ``EligibilityError`` when the candidate may not apply."""

    try:
        profile = await resolve_student(session, actor_id)
        opportunity = await load_opportunity(session, opportunity_id)
        existing = await find_live_application(session, student_id=profile.id, opportunity_id=opportunity_id)
        result = can_apply(opportunity, existing, now=now)
        if not result.can_apply:
            if existing is not None and cache is not None:
                cache.mark_applied(opportunity_id)
            raise EligibilityError(result.reason or "Not eligible.")
    except WorkflowError as exc:
        notifier.notify(exc.to_outcome())
        raise

    uploads = DocumentUploadManager(
        storage,
        actor_id=actor_id,
        opportunity_id=opportunity_id,
        max_documents=settings.max_documents,
        max_bytes=settings.max_document_bytes,
    )
    return ApplicationWizard(
        actor_id=actor_id,
        student_id=profile.id,
        opportunity_id=opportunity_id,
        questions=parse_questions(opportunity.custom_questions),
        uploads=uploads,
        submission=submission,
        notifier=notifier,
        settings=settings,
        cache=cache,
    )
