"""Eligibility evaluation for a candidate against an opportunity snapshot."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models import Application, ApplicationStatus, Opportunity, OpportunityStatus, StudentProfile
from workflow.errors import EligibilityError, NetworkError, ProfileNotFoundError

logger = logging.getLogger(__name__)

ALREADY_APPLIED = "You have already applied to this opportunity."
DEADLINE_PASSED = "The application deadline has passed."
NOT_ACCEPTING = "This opportunity is not currently accepting applications."
LIMIT_REACHED = "This opportunity has reached its application limit."
NOT_AVAILABLE = "This opportunity is not available right now."

SECONDS_IN_DAY = 60 * 60 * 24
URGENT_WITHIN_DAYS = 7


@dataclass(frozen=True)
class EligibilityResult:
    can_apply: bool
    reason: str | None = None


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _now(now: datetime | None) -> datetime:
    return _as_utc(now) if now is not None else datetime.now(timezone.utc)


def is_deadline_passed(deadline: datetime | None, *, now: datetime | None = None) -> bool:
    """True only when the deadline lies strictly before ``now``."""

    if deadline is None:
        return False
    return _as_utc(deadline) < _now(now)


def days_until_deadline(deadline: datetime | None, *, now: datetime | None = None) -> float:
    if deadline is None:
        return math.inf
    diff_days = (_as_utc(deadline) - _now(now)).total_seconds() / SECONDS_IN_DAY
    return float(math.ceil(diff_days) if diff_days >= 0 else math.floor(diff_days))


def is_deadline_urgent(deadline: datetime | None, *, now: datetime | None = None) -> bool:
    if deadline is None:
        return False
    remaining = days_until_deadline(deadline, now=now)
    return 0 <= remaining <= URGENT_WITHIN_DAYS


def can_apply(opportunity: Any, existing_application: Any | None, *, now: datetime | None = None) -> EligibilityResult:
    """Decide whether a new application may be started or committed.

    Checks run in a fixed order and stop at the first failure: an existing
    application, a passed deadline, a non-active status, then capacity.
    """

    if existing_application is not None:
        return EligibilityResult(False, ALREADY_APPLIED)

    if is_deadline_passed(getattr(opportunity, "application_deadline", None), now=now):
        return EligibilityResult(False, DEADLINE_PASSED)

    status = (getattr(opportunity, "status", None) or "").lower()
    if status != OpportunityStatus.ACTIVE.value:
        return EligibilityResult(False, NOT_ACCEPTING)

    max_applications = getattr(opportunity, "max_applications", None)
    current = getattr(opportunity, "current_applications", None) or 0
    if max_applications is not None and current >= max_applications:
        return EligibilityResult(False, LIMIT_REACHED)

    return EligibilityResult(True, None)


async def resolve_student(session: AsyncSession, actor_id: str) -> StudentProfile:
    """Return the profile owned by ``actor_id`` or raise ``ProfileNotFoundError``."""

    try:
        result = await session.execute(select(StudentProfile).where(StudentProfile.user_id == actor_id))
        profile = result.scalar_one_or_none()
    except SQLAlchemyError as exc:
        raise NetworkError(f"Could not load student profile: {exc}") from exc
    if profile is None:
        raise ProfileNotFoundError()
    return profile


async def load_opportunity(session: AsyncSession, opportunity_id: str) -> Opportunity:
    try:
        opportunity = await session.get(Opportunity, opportunity_id, populate_existing=True)
    except SQLAlchemyError as exc:
        raise NetworkError(f"Could not load opportunity: {exc}") from exc
    if opportunity is None:
        raise EligibilityError(NOT_AVAILABLE)
    return opportunity


async def find_live_application(
    session: AsyncSession, *, student_id: str, opportunity_id: str
) -> Application | None:
    stmt = select(Application).where(
        Application.student_id == student_id,
        Application.opportunity_id == opportunity_id,
        Application.status != ApplicationStatus.WITHDRAWN.value,
    )
    try:
        result = await session.execute(stmt)
    except SQLAlchemyError as exc:
        raise NetworkError(f"Could not load existing applications: {exc}") from exc
    return result.scalars().first()


async def check_eligibility(
    session: AsyncSession,
    *,
    student_id: str,
    opportunity_id: str,
    now: datetime | None = None,
) -> EligibilityResult:
    """Evaluate eligibility against fresh store reads."""

    opportunity = await load_opportunity(session, opportunity_id)
    existing = await find_live_application(session, student_id=student_id, opportunity_id=opportunity_id)
    result = can_apply(opportunity, existing, now=now)
    if not result.can_apply:
        logger.info(
            "Student %s not eligible for opportunity %s: %s", student_id, opportunity_id, result.reason
        )
    return result
