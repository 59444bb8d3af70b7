"""One-step application using the candidate's profile and a stock cover letter."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import Settings
from portal.schemas import parse_questions
from workflow.applied_cache import AppliedOpportunityCache
from workflow.eligibility import ALREADY_APPLIED, check_eligibility, load_opportunity, resolve_student
from workflow.errors import (
    DuplicateSubmissionError,
    EligibilityError,
    Outcome,
    OutcomeKind,
    WorkflowError,
)
from workflow.notifier import Notifier
from workflow.profile import profile_completion_issues
from workflow.submission import SubmissionService

logger = logging.getLogger(__name__)

PROFILE_INCOMPLETE = "Please complete your profile before using Quick Apply."
QUESTIONS_REQUIRED = "This opportunity has required questions. Please use the full application form."


class QuickApplyStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    ALREADY_APPLIED = "already_applied"
    PROFILE_INCOMPLETE = "profile_incomplete"
    REQUIRES_WIZARD = "requires_wizard"
    NOT_ELIGIBLE = "not_eligible"
    FAILED = "failed"


@dataclass
class QuickApplyResult:
    status: QuickApplyStatus
    outcome: Outcome
    checklist: list[str] = field(default_factory=list)
    application_id: str | None = None


class QuickApplyService:
    """Skips the wizard but never the eligibility or profile checks."""

    def __init__(
        self,
        settings: Settings,
        submission: SubmissionService,
        notifier: Notifier,
        cache: AppliedOpportunityCache | None = None,
    ) -> None:
        self.settings = settings
        self.submission = submission
        self.notifier = notifier
        self.cache = cache

    async def apply(
        self,
        session: AsyncSession,
        *,
        actor_id: str,
        opportunity_id: str,
        now: datetime | None = None,
    ) -> QuickApplyResult:
        result = await self._apply(session, actor_id=actor_id, opportunity_id=opportunity_id, now=now)
        if result.status in (QuickApplyStatus.SUBMITTED, QuickApplyStatus.ALREADY_APPLIED) and self.cache is not None:
            self.cache.mark_applied(opportunity_id)
        self.notifier.notify(result.outcome)
        return result

    async def _apply(
        self,
        session: AsyncSession,
        *,
        actor_id: str,
        opportunity_id: str,
        now: datetime | None,
    ) -> QuickApplyResult:
        try:
            profile = await resolve_student(session, actor_id)
            eligibility = await check_eligibility(
                session, student_id=profile.id, opportunity_id=opportunity_id, now=now
            )
            opportunity = await load_opportunity(session, opportunity_id)
        except EligibilityError as exc:
            return QuickApplyResult(QuickApplyStatus.NOT_ELIGIBLE, exc.to_outcome())
        except WorkflowError as exc:
            return QuickApplyResult(QuickApplyStatus.FAILED, exc.to_outcome())

        if not eligibility.can_apply:
            if eligibility.reason == ALREADY_APPLIED:
                return QuickApplyResult(QuickApplyStatus.ALREADY_APPLIED, DuplicateSubmissionError().to_outcome())
            return QuickApplyResult(
                QuickApplyStatus.NOT_ELIGIBLE,
                Outcome.failure(OutcomeKind.NOT_ELIGIBLE, eligibility.reason or "Not eligible."),
            )

        if any(question.required for question in parse_questions(opportunity.custom_questions)):
            return QuickApplyResult(
                QuickApplyStatus.REQUIRES_WIZARD,
                Outcome.failure(OutcomeKind.VALIDATION, QUESTIONS_REQUIRED),
            )

        checklist = profile_completion_issues(
            profile,
            min_skills=self.settings.profile_min_skills,
            min_strength=self.settings.quick_apply_min_profile_strength,
        )
        if checklist:
            return QuickApplyResult(
                QuickApplyStatus.PROFILE_INCOMPLETE,
                Outcome.failure(OutcomeKind.VALIDATION, PROFILE_INCOMPLETE),
                checklist=checklist,
            )

        try:
            application = await self.submission.submit(
                session,
                student_id=profile.id,
                opportunity_id=opportunity_id,
                cover_letter=self.settings.quick_apply_cover_letter,
            )
        except DuplicateSubmissionError as exc:
            return QuickApplyResult(QuickApplyStatus.ALREADY_APPLIED, exc.to_outcome())
        except WorkflowError as exc:
            logger.warning("Quick apply to %s failed: %s", opportunity_id, exc.message)
            return QuickApplyResult(QuickApplyStatus.FAILED, exc.to_outcome())

        return QuickApplyResult(
            QuickApplyStatus.SUBMITTED,
            Outcome.success("Application submitted successfully!"),
            application_id=application.id,
        )
