"""Profile completeness scoring and the Quick-Apply checklist."""
from __future__ import annotations

from typing import Any

DEFAULT_MIN_SKILLS = 3
DEFAULT_MIN_STRENGTH = 50

BASIC_INFO_WEIGHT = 30
RESUME_WEIGHT = 20
SKILLS_WEIGHT = 20
LINKS_WEIGHT = 10
ACHIEVEMENTS_WEIGHT = 20


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def normalize_skills(skills: Any) -> list[str]:
    """Return distinct, non-blank skills, keeping first-seen order."""

    if not isinstance(skills, (list, tuple, set)):
        return []
    seen: dict[str, str] = {}
    for skill in skills:
        if not isinstance(skill, str) or not skill.strip():
            continue
        seen.setdefault(skill.strip().lower(), skill.strip())
    return list(seen.values())


def has_basic_info(profile: Any) -> bool:
    return all(
        _has_text(getattr(profile, attr, None)) for attr in ("full_name", "college_name", "course")
    )


def has_external_link(profile: Any) -> bool:
    return any(
        _has_text(getattr(profile, attr, None)) for attr in ("linkedin_url", "github_url", "portfolio_url")
    )


def calculate_profile_strength(profile: Any, *, min_skills: int = DEFAULT_MIN_SKILLS) -> int:
    """Deterministic weighted completeness score in ``[0, 100]``.

    Only stored fields are read, so the score can be recomputed on every write
    and never drifts from the profile it describes.
    """

    score = 0
    if has_basic_info(profile):
        score += BASIC_INFO_WEIGHT
    if _has_text(getattr(profile, "resume_url", None)):
        score += RESUME_WEIGHT
    if len(normalize_skills(getattr(profile, "skills", None))) >= min_skills:
        score += SKILLS_WEIGHT
    if has_external_link(profile):
        score += LINKS_WEIGHT
    if (getattr(profile, "achievements_count", None) or 0) > 0:
        score += ACHIEVEMENTS_WEIGHT
    return max(0, min(100, score))


def profile_completion_issues(
    profile: Any,
    *,
    min_skills: int = DEFAULT_MIN_SKILLS,
    min_strength: int = DEFAULT_MIN_STRENGTH,
) -> list[str]:
    """Ordered checklist of what must be fixed before Quick-Apply is allowed."""

    issues: list[str] = []
    strength = calculate_profile_strength(profile, min_skills=min_skills)

    if not _has_text(getattr(profile, "resume_url", None)):
        issues.append("Upload your resume")
    if len(normalize_skills(getattr(profile, "skills", None))) < min_skills:
        issues.append(f"Add at least {min_skills} skills")
    if not has_basic_info(profile) or strength < min_strength:
        issues.append(f"Complete your profile (currently {strength}%)")
    return issues
