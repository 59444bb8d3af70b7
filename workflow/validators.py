"""Field validators for the application payload.

Validators never raise; they return a :class:`ValidationResult` so that the
wizard can gate a step and the submission service can re-check the same rules.
"""
from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from portal.schemas import CustomQuestion, QuestionType

MIN_COVER_LETTER_LENGTH = 100
MAX_COVER_LETTER_LENGTH = 1000
MAX_FILE_SIZE_BYTES = 5 * 1024 * 1024

ALLOWED_FILE_EXTENSIONS = frozenset({"pdf", "doc", "docx"})
ALLOWED_MIME_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
)

PLACEHOLDER_PHRASES = (
    "lorem ipsum",
    "insert cover letter",
    "write your cover letter here",
    "sample cover letter",
    "type your cover letter here",
    "cover letter placeholder",
)

_WHITESPACE = re.compile(r"\s+")
_REPEATED_CHARACTER = re.compile(r"(.)\1{10,}", re.IGNORECASE)
_INVALID_FILENAME_CHARACTERS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: str | None = None

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(True, None)

    @classmethod
    def fail(cls, error: str) -> ValidationResult:
        return cls(False, error)


def normalize_whitespace(text: str | None) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def validate_cover_letter(
    text: str | None,
    *,
    min_length: int = MIN_COVER_LETTER_LENGTH,
    max_length: int = MAX_COVER_LETTER_LENGTH,
) -> ValidationResult:
    normalized = normalize_whitespace(text)

    if len(normalized) < min_length:
        return ValidationResult.fail(f"Cover letter must be at least {min_length} characters.")
    if len(normalized) > max_length:
        return ValidationResult.fail(f"Cover letter must not exceed {max_length} characters.")

    lowered = normalized.lower()
    if any(phrase in lowered for phrase in PLACEHOLDER_PHRASES):
        return ValidationResult.fail("Please replace placeholder text with a genuine cover letter.")

    if _REPEATED_CHARACTER.search(normalized):
        return ValidationResult.fail("Cover letter appears to contain spam or repeated characters.")

    return ValidationResult.ok()


def file_extension(filename: str) -> str:
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def validate_file(
    filename: str,
    size: int,
    content_type: str | None,
    *,
    max_bytes: int = MAX_FILE_SIZE_BYTES,
) -> ValidationResult:
    if size > max_bytes:
        return ValidationResult.fail(f"File size must not exceed {max_bytes // (1024 * 1024)}MB.")

    allowed_extension = file_extension(filename) in ALLOWED_FILE_EXTENSIONS
    allowed_mime = (content_type or "").lower() in ALLOWED_MIME_TYPES
    if not allowed_extension and not allowed_mime:
        return ValidationResult.fail("Only PDF, DOC, or DOCX files are supported.")

    if _INVALID_FILENAME_CHARACTERS.search(filename):
        return ValidationResult.fail("Filename contains invalid characters.")

    return ValidationResult.ok()


def missing_required_questions(
    questions: Iterable[CustomQuestion], answers: Mapping[str, str]
) -> list[CustomQuestion]:
    return [q for q in questions if q.required and not (answers.get(q.id) or "").strip()]


def validate_answers(questions: Iterable[CustomQuestion], answers: Mapping[str, str]) -> ValidationResult:
    questions = list(questions)
    by_id = {q.id: q for q in questions}

    unknown = sorted(set(answers) - set(by_id))
    if unknown:
        return ValidationResult.fail(f"Unknown question: {unknown[0]}")

    if missing_required_questions(questions, answers):
        return ValidationResult.fail("Please answer all required questions before proceeding.")

    for question_id, answer in answers.items():
        question = by_id[question_id]
        choice = (answer or "").strip()
        if (
            choice
            and question.type in (QuestionType.SELECT, QuestionType.RADIO)
            and question.options
            and choice not in question.options
        ):
            return ValidationResult.fail(f"Please choose one of the listed options for: {question.question}")

    return ValidationResult.ok()
