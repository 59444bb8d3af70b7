import math
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from portal.models import Application
from workflow.eligibility import (
    ALREADY_APPLIED,
    DEADLINE_PASSED,
    LIMIT_REACHED,
    NOT_ACCEPTING,
    NOT_AVAILABLE,
    can_apply,
    check_eligibility,
    days_until_deadline,
    is_deadline_passed,
    is_deadline_urgent,
)
from workflow.errors import EligibilityError
from tests.conftest import utc

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _opportunity(**overrides):
    values = {
        "status": "active",
        "application_deadline": None,
        "max_applications": None,
        "current_applications": 0,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestCanApply:
    def test_open_opportunity_without_application(self) -> None:
        result = can_apply(_opportunity(), None, now=NOW)
        assert (result.can_apply, result.reason) == (True, None)

    def test_closed_opportunity(self) -> None:
        result = can_apply(_opportunity(status="closed"), None, now=NOW)
        assert (result.can_apply, result.reason) == (False, NOT_ACCEPTING)

    def test_status_is_case_insensitive(self) -> None:
        assert can_apply(_opportunity(status="ACTIVE"), None, now=NOW).can_apply

    @pytest.mark.parametrize("status", ["closed", "draft", "expired", "active"])
    def test_existing_application_wins_regardless_of_state(self, status: str) -> None:
        opportunity = _opportunity(status=status, application_deadline=NOW - timedelta(days=3))
        result = can_apply(opportunity, SimpleNamespace(id="app-1"), now=NOW)
        assert (result.can_apply, result.reason) == (False, ALREADY_APPLIED)

    def test_deadline_yesterday(self) -> None:
        result = can_apply(_opportunity(application_deadline=NOW - timedelta(days=1)), None, now=NOW)
        assert (result.can_apply, result.reason) == (False, DEADLINE_PASSED)

    def test_deadline_tomorrow(self) -> None:
        assert can_apply(_opportunity(application_deadline=NOW + timedelta(days=1)), None, now=NOW).can_apply

    def test_deadline_instant_itself_is_still_open(self) -> None:
        assert can_apply(_opportunity(application_deadline=NOW), None, now=NOW).can_apply

    def test_deadline_is_checked_before_status(self) -> None:
        opportunity = _opportunity(status="paused", application_deadline=NOW - timedelta(hours=1))
        assert can_apply(opportunity, None, now=NOW).reason == DEADLINE_PASSED

    def test_naive_deadline_is_read_as_utc(self) -> None:
        naive = (NOW - timedelta(minutes=1)).replace(tzinfo=None)
        assert not can_apply(_opportunity(application_deadline=naive), None, now=NOW).can_apply

    def test_capacity_reached(self) -> None:
        opportunity = _opportunity(max_applications=10, current_applications=10)
        result = can_apply(opportunity, None, now=NOW)
        assert (result.can_apply, result.reason) == (False, LIMIT_REACHED)

    def test_capacity_remaining(self) -> None:
        assert can_apply(_opportunity(max_applications=10, current_applications=9), None, now=NOW).can_apply

    def test_missing_current_count_counts_as_zero(self) -> None:
        assert can_apply(_opportunity(max_applications=1, current_applications=None), None, now=NOW).can_apply


class TestDeadlineHelpers:
    def test_unset_deadline(self) -> None:
        assert not is_deadline_passed(None, now=NOW)
        assert math.isinf(days_until_deadline(None, now=NOW))
        assert not is_deadline_urgent(None, now=NOW)

    def test_days_round_away_from_now(self) -> None:
        assert days_until_deadline(NOW + timedelta(hours=30), now=NOW) == 2
        assert days_until_deadline(NOW - timedelta(hours=30), now=NOW) == -2

    def test_urgent_within_a_week(self) -> None:
        assert is_deadline_urgent(NOW + timedelta(days=6), now=NOW)
        assert not is_deadline_urgent(NOW + timedelta(days=10), now=NOW)
        assert not is_deadline_urgent(NOW - timedelta(days=1), now=NOW)


class TestCheckEligibility:
    @pytest.mark.asyncio
    async def test_reads_opportunity_and_application(self, db_session, make_opportunity, make_student) -> None:
        opportunity = await make_opportunity(application_deadline=utc(days=5))
        student = await make_student()

        result = await check_eligibility(db_session, student_id=student.id, opportunity_id=opportunity.id)
        assert result.can_apply

        db_session.add(Application(student_id=student.id, opportunity_id=opportunity.id, status="under_review"))
        await db_session.commit()

        result = await check_eligibility(db_session, student_id=student.id, opportunity_id=opportunity.id)
        assert result.reason == ALREADY_APPLIED

    @pytest.mark.asyncio
    async def test_withdrawn_application_does_not_block(self, db_session, make_opportunity, make_student) -> None:
        opportunity = await make_opportunity()
        student = await make_student()
        db_session.add(Application(student_id=student.id, opportunity_id=opportunity.id, status="withdrawn"))
        await db_session.commit()

        result = await check_eligibility(db_session, student_id=student.id, opportunity_id=opportunity.id)
        assert result.can_apply

    @pytest.mark.asyncio
    async def test_stored_deadline_yesterday(self, db_session, make_opportunity, make_student) -> None:
        opportunity = await make_opportunity(application_deadline=utc(days=-1))
        student = await make_student()

        result = await check_eligibility(db_session, student_id=student.id, opportunity_id=opportunity.id)
        assert result.reason == DEADLINE_PASSED

    @pytest.mark.asyncio
    async def test_unknown_opportunity(self, db_session, make_student) -> None:
        student = await make_student()
        with pytest.raises(EligibilityError) as excinfo:
            await check_eligibility(db_session, student_id=student.id, opportunity_id="missing")
        assert excinfo.value.message == NOT_AVAILABLE
