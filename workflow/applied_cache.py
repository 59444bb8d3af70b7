"""Per-student view of which opportunities have been applied to.

This is display state only. Duplicate detection always goes through the
store's uniqueness index.
"""
from __future__ import annotations

import enum

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models import Application, ApplicationStatus
from workflow.errors import NetworkError


class AppliedState(str, enum.Enum):
    APPLIED = "applied"
    NOT_APPLIED = "not_applied"


class AppliedOpportunityCache:
    def __init__(self) -> None:
        self._states: dict[str, AppliedState] = {}

    def get(self, opportunity_id: str) -> AppliedState | None:
        return self._states.get(opportunity_id)

    def is_applied(self, opportunity_id: str) -> bool:
        return self._states.get(opportunity_id) is AppliedState.APPLIED

    def mark_applied(self, opportunity_id: str) -> None:
        self._states[opportunity_id] = AppliedState.APPLIED

    def mark_not_applied(self, opportunity_id: str) -> None:
        self._states[opportunity_id] = AppliedState.NOT_APPLIED

    def invalidate(self, opportunity_id: str) -> None:
        self._states.pop(opportunity_id, None)

    async def reconcile(self, session: AsyncSession, student_id: str) -> set[str]:
        """Replace local state with the student's live applications from the store."""

        stmt = select(Application.opportunity_id).where(
            Application.student_id == student_id,
            Application.status != ApplicationStatus.WITHDRAWN.value,
        )
        try:
            result = await session.execute(stmt)
        except SQLAlchemyError as exc:
            raise NetworkError(f"Could not load applications: {exc}") from exc

        applied = set(result.scalars().all())
        self._states = {opportunity_id: AppliedState.APPLIED for opportunity_id in applied}
        return applied
