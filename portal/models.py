"""Database models for the application workflow engine."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String, Text, event, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.database import Base
from workflow.profile import calculate_profile_strength


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


class OpportunityStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"
    EXPIRED = "expired"


class ApplicationStatus(str, enum.Enum):
    """Lifecycle of an application record.

    Only ``SUBMITTED`` is ever written by this engine; later transitions belong
    to the organization side and are exposed here for read-side consumers.
    """

    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    SHORTLISTED = "shortlisted"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    INTERVIEWED = "interviewed"
    SELECTED = "selected"
    REJECTED = "rejected"
    OFFER_SENT = "offer_sent"
    HIRED = "hired"
    WITHDRAWN = "withdrawn"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    def can_transition(self, target: ApplicationStatus) -> bool:
        if target is ApplicationStatus.WITHDRAWN:
            return not self.is_terminal
        return target in _FORWARD_TRANSITIONS.get(self, frozenset())


_FORWARD_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.SUBMITTED: frozenset({ApplicationStatus.UNDER_REVIEW}),
    ApplicationStatus.UNDER_REVIEW: frozenset({ApplicationStatus.SHORTLISTED, ApplicationStatus.REJECTED}),
    ApplicationStatus.SHORTLISTED: frozenset(
        {ApplicationStatus.INTERVIEW_SCHEDULED, ApplicationStatus.REJECTED}
    ),
    ApplicationStatus.INTERVIEW_SCHEDULED: frozenset({ApplicationStatus.INTERVIEWED}),
    ApplicationStatus.INTERVIEWED: frozenset({ApplicationStatus.SELECTED, ApplicationStatus.REJECTED}),
    ApplicationStatus.SELECTED: frozenset({ApplicationStatus.OFFER_SENT}),
    ApplicationStatus.OFFER_SENT: frozenset({ApplicationStatus.HIRED}),
}

_TERMINAL_STATUSES = frozenset(
    {ApplicationStatus.REJECTED, ApplicationStatus.HIRED, ApplicationStatus.WITHDRAWN}
)


class Opportunity(Base):
    __tablename__ = "opportunities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(200), default="")
    status: Mapped[str] = mapped_column(String(30), default=OpportunityStatus.DRAFT.value)
    application_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    max_applications: Mapped[int | None] = mapped_column(Integer)
    current_applications: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    custom_questions: Mapped[list[dict] | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    applications: Mapped[list[Application]] = relationship("Application", back_populates="opportunity")


class StudentProfile(Base):
    __tablename__ = "student_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(200))
    college_name: Mapped[str | None] = mapped_column(String(200))
    course: Mapped[str | None] = mapped_column(String(200))
    resume_url: Mapped[str | None] = mapped_column(String(500))
    skills: Mapped[list[str] | None] = mapped_column(JSON)
    linkedin_url: Mapped[str | None] = mapped_column(String(500))
    github_url: Mapped[str | None] = mapped_column(String(500))
    portfolio_url: Mapped[str | None] = mapped_column(String(500))
    achievements_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    profile_strength: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    applications: Mapped[list[Application]] = relationship("Application", back_populates="student")


@event.listens_for(StudentProfile, "before_insert")
@event.listens_for(StudentProfile, "before_update")
def _recompute_profile_strength(mapper, connection, target: StudentProfile) -> None:
    target.profile_strength = calculate_profile_strength(target)


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        Index(
            "uq_applications_student_opportunity_live",
            "student_id",
            "opportunity_id",
            unique=True,
            sqlite_where=text("status != 'withdrawn'"),
            postgresql_where=text("status != 'withdrawn'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    student_id: Mapped[str] = mapped_column(ForeignKey("student_profiles.id", ondelete="CASCADE"), nullable=False)
    opportunity_id: Mapped[str] = mapped_column(ForeignKey("opportunities.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(30), default=ApplicationStatus.SUBMITTED.value, nullable=False)
    applied_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    status_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cover_letter: Mapped[str | None] = mapped_column(Text)
    additional_documents: Mapped[list[str] | None] = mapped_column(JSON)
    answers_to_questions: Mapped[dict | None] = mapped_column(JSON)
    application_score: Mapped[float | None] = mapped_column(Float)

    student: Mapped[StudentProfile] = relationship("StudentProfile", back_populates="applications")
    opportunity: Mapped[Opportunity] = relationship("Opportunity", back_populates="applications")
