import pytest

from portal.schemas import CustomQuestion, QuestionType
from workflow.validators import (
    normalize_whitespace,
    validate_answers,
    validate_cover_letter,
    validate_file,
)
from tests.conftest import VALID_COVER_LETTER

MIB = 1024 * 1024
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _letter(length: int) -> str:
    words = "motivated student eager to learn and contribute to the team "
    text = (words * (length // len(words) + 1))[:length]
    # Keep the last character non-blank so trimming does not shorten it.
    return text[:-1] + "x"


class TestCoverLetter:
    def test_accepts_genuine_letter(self) -> None:
        assert validate_cover_letter(VALID_COVER_LETTER).valid

    @pytest.mark.parametrize("length", [100, 101, 500, 999, 1000])
    def test_accepts_lengths_within_bounds(self, length: int) -> None:
        result = validate_cover_letter(_letter(length))
        assert result.valid, result.error

    def test_rejects_99_characters_with_minimum_reason(self) -> None:
        result = validate_cover_letter(_letter(99))
        assert not result.valid
        assert result.error == "Cover letter must be at least 100 characters."

    def test_rejects_1001_characters_with_maximum_reason(self) -> None:
        result = validate_cover_letter(_letter(1001))
        assert not result.valid
        assert result.error == "Cover letter must not exceed 1000 characters."

    def test_length_is_measured_after_collapsing_whitespace(self) -> None:
        padded = "   " + _letter(99).replace(" ", "      ") + "\n\n\t"
        assert len(padded) > 100
        assert normalize_whitespace(padded) == _letter(99)
        assert not validate_cover_letter(padded).valid

    @pytest.mark.parametrize(
        "phrase",
        ["Lorem Ipsum", "WRITE YOUR COVER LETTER HERE", "sample cover letter"],
    )
    def test_rejects_placeholder_phrases(self, phrase: str) -> None:
        result = validate_cover_letter(f"{VALID_COVER_LETTER} {phrase}")
        assert not result.valid
        assert "placeholder" in (result.error or "")

    def test_rejects_eleven_repeated_characters(self) -> None:
        result = validate_cover_letter(VALID_COVER_LETTER + " " + "!" * 11)
        assert not result.valid
        assert "repeated" in (result.error or "")

    def test_allows_ten_repeated_characters(self) -> None:
        assert validate_cover_letter(VALID_COVER_LETTER + " " + "-" * 10).valid

    def test_none_is_treated_as_empty(self) -> None:
        assert not validate_cover_letter(None).valid


class TestFileAcceptance:
    def test_rejects_six_mib_pdf(self) -> None:
        result = validate_file("resume.pdf", 6 * MIB, "application/pdf")
        assert not result.valid
        assert result.error == "File size must not exceed 5MB."

    def test_rejects_executable(self) -> None:
        result = validate_file("resume.exe", 4 * MIB, "application/octet-stream")
        assert not result.valid
        assert result.error == "Only PDF, DOC, or DOCX files are supported."

    def test_accepts_docx(self) -> None:
        assert validate_file("resume.docx", 1 * MIB, DOCX).valid

    def test_extension_is_case_insensitive(self) -> None:
        assert validate_file("RESUME.PDF", 1024, None).valid

    def test_matching_media_type_is_enough(self) -> None:
        assert validate_file("resume", 1024, "application/pdf").valid

    def test_exactly_five_mib_is_allowed(self) -> None:
        assert validate_file("resume.pdf", 5 * MIB, "application/pdf").valid

    @pytest.mark.parametrize("name", ['cv<1>.pdf', "a:b.pdf", "what?.docx", "pipe|name.doc"])
    def test_rejects_disallowed_filename_characters(self, name: str) -> None:
        result = validate_file(name, 1024, "application/pdf")
        assert not result.valid
        assert result.error == "Filename contains invalid characters."


class TestAnswers:
    questions = [
        CustomQuestion(id="q1", question="Why us?", required=True),
        CustomQuestion(id="q2", question="Anything else?"),
        CustomQuestion(
            id="q3",
            question="Preferred location",
            type=QuestionType.SELECT,
            options=["Remote", "On-site"],
        ),
    ]

    def test_required_answer_present(self) -> None:
        assert validate_answers(self.questions, {"q1": "Because of the mentoring culture."}).valid

    def test_blank_required_answer_fails(self) -> None:
        result = validate_answers(self.questions, {"q1": "   ", "q2": "Nope"})
        assert not result.valid
        assert result.error == "Please answer all required questions before proceeding."

    def test_option_must_match(self) -> None:
        result = validate_answers(self.questions, {"q1": "Growth", "q3": "Mars"})
        assert not result.valid

    def test_unknown_question_fails(self) -> None:
        assert not validate_answers(self.questions, {"q1": "Growth", "zzz": "?"}).valid

    def test_no_questions_no_answers(self) -> None:
        assert validate_answers([], {}).valid
