"""Terminal write of an application record."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import Settings
from portal.models import Application, ApplicationStatus, Opportunity
from portal.schemas import parse_questions
from workflow.eligibility import load_opportunity
from workflow.errors import DuplicateSubmissionError, NetworkError, ProfileNotFoundError, ValidationError
from workflow.validators import normalize_whitespace, validate_answers, validate_cover_letter

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """Recognise a uniqueness violation across drivers."""

    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == UNIQUE_VIOLATION_SQLSTATE:
        return True
    message = str(orig).lower()
    return "unique constraint" in message or "duplicate key" in message


class SubmissionService:
    """Insert exactly one application per (student, opportunity)."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def submit(
        self,
        session: AsyncSession,
        *,
        student_id: str | None,
        opportunity_id: str,
        cover_letter: str,
        documents: Iterable[str] = (),
        answers: Mapping[str, str] | None = None,
    ) -> Application:
        answers = dict(answers or {})

        letter_check = validate_cover_letter(
            cover_letter,
            min_length=self.settings.min_cover_letter_length,
            max_length=self.settings.max_cover_letter_length,
        )
        if not letter_check.valid:
            raise ValidationError(letter_check.error or "Invalid cover letter.")

        # Checked against the stored questions, not a copy held by the caller.
        opportunity = await load_opportunity(session, opportunity_id)
        answer_check = validate_answers(parse_questions(opportunity.custom_questions), answers)
        if not answer_check.valid:
            raise ValidationError(answer_check.error or "Invalid answers.")

        if not student_id:
            raise ProfileNotFoundError()

        now = datetime.now(timezone.utc)
        application = Application(
            student_id=student_id,
            opportunity_id=opportunity_id,
            status=ApplicationStatus.SUBMITTED.value,
            applied_date=now,
            status_updated_at=now,
            cover_letter=normalize_whitespace(cover_letter),
            additional_documents=list(documents),
            answers_to_questions={key: value.strip() for key, value in answers.items()},
            application_score=None,
        )

        try:
            session.add(application)
            await session.flush()
            await session.execute(
                update(Opportunity)
                .where(Opportunity.id == opportunity_id)
                .values(current_applications=Opportunity.current_applications + 1)
            )
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            if is_unique_violation(exc):
                logger.info("Duplicate application for student %s / opportunity %s", student_id, opportunity_id)
                raise DuplicateSubmissionError() from exc
            raise NetworkError(f"Failed to submit application: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            await session.rollback()
            raise NetworkError(f"Failed to submit application: {exc}") from exc

        await session.refresh(application)
        logger.info("Application %s submitted for opportunity %s", application.id, opportunity_id)
        return application
