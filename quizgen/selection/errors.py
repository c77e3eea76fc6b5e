"""
Error taxonomy for quiz generation.

Structural failures (missing configuration, duplicate attempt, phase gating)
are fatal and raised before any sampling work. Repository failures inside a
fallback stage are absorbed by the balancer; they only surface when every
stage for a topic failed.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from quizgen.selection.models import GeneratedQuiz


class QuizGenerationError(Exception):
    """Base class for every quiz generation failure."""


class ConfigurationMissing(QuizGenerationError):
    """No quiz configuration exists for the requested subject and phase."""

    def __init__(self, subject: str, phase: str):
        self.subject = subject
        self.phase = phase
        super().__init__(f"No quiz configuration for {subject} - {phase}")


class DuplicateAttempt(QuizGenerationError):
    """The student already completed this subject in this phase."""

    def __init__(self, student_id: str, subject: str, phase: str):
        self.student_id = student_id
        self.subject = subject
        self.phase = phase
        super().__init__(f"Student {student_id} already completed {subject} in phase {phase}")


class Unauthorized(QuizGenerationError):
    """Phase gating denied access."""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason or "Phase not authorized"
        super().__init__(self.reason)


class InsufficientQuestions(QuizGenerationError):
    """
    Fewer unique, unanswered questions than the target exist after every
    fallback stage. Carries the partial quiz so callers can still serve it.
    """

    def __init__(self, target: int, found: int, quiz: Optional["GeneratedQuiz"] = None):
        self.target = target
        self.found = found
        self.shortfall = max(0, target - found)
        self.quiz = quiz
        super().__init__(f"Only {found} of {target} questions available")


class RepositoryQueryFailure(QuizGenerationError):
    """A repository query failed (or the assembly deadline elapsed)."""


class HistoryUnavailable(RepositoryQueryFailure):
    """The student's exam history could not be read."""


class MalformedExamRecord(QuizGenerationError):
    """An exam record in the student's history failed validation."""

    def __init__(self, exam_id: str, detail: str):
        self.exam_id = exam_id
        self.detail = detail
        super().__init__(f"Malformed exam record {exam_id}: {detail}")
