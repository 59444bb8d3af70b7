from types import SimpleNamespace

import pytest

from workflow.profile import calculate_profile_strength, normalize_skills, profile_completion_issues


def _profile(**overrides):
    values = {
        "full_name": "Priya Raman",
        "college_name": "State Institute of Technology",
        "course": "B.Tech",
        "resume_url": "http://files.test/r.pdf",
        "skills": ["Python", "SQL", "Docker"],
        "linkedin_url": None,
        "github_url": "https://git.example/priya",
        "portfolio_url": None,
        "achievements_count": 1,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_complete_profile_scores_100() -> None:
    assert calculate_profile_strength(_profile()) == 100


def test_empty_profile_scores_zero() -> None:
    empty = SimpleNamespace()
    assert calculate_profile_strength(empty) == 0


@pytest.mark.parametrize(
    ("overrides", "expected"),
    [
        ({"course": "  "}, 70),
        ({"resume_url": None}, 80),
        ({"skills": ["Python", "python", " "]}, 80),
        ({"github_url": ""}, 90),
        ({"achievements_count": 0}, 80),
    ],
)
def test_each_field_contributes_its_weight(overrides, expected) -> None:
    assert calculate_profile_strength(_profile(**overrides)) == expected


def test_skills_are_deduplicated_case_insensitively() -> None:
    assert normalize_skills(["Python", " python ", "SQL", None, ""]) == ["Python", "SQL"]


def test_complete_profile_has_no_issues() -> None:
    assert profile_completion_issues(_profile()) == []


def test_issues_are_ordered_checklist() -> None:
    issues = profile_completion_issues(
        _profile(resume_url=None, skills=["Python"], full_name=None, achievements_count=0, github_url=None)
    )
    assert issues == [
        "Upload your resume",
        "Add at least 3 skills",
        "Complete your profile (currently 0%)",
    ]


def test_low_strength_alone_is_reported() -> None:
    weak = _profile(achievements_count=0, github_url=None, skills=["Python", "SQL", "Go"], resume_url="x")
    assert calculate_profile_strength(weak) == 70
    assert profile_completion_issues(weak, min_strength=80) == ["Complete your profile (currently 70%)"]
