"""
Collaborator interfaces consumed by the assembly engine.

The engine is constructor-injected with implementations of these protocols;
in-memory adapters live in quizgen.bank and SQL adapters in quizgen.db.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from quizgen.selection.models import Phase, Question, QuestionFilters


@runtime_checkable
class QuestionRepository(Protocol):
    async def query(self, filters: QuestionFilters, limit: int) -> list[Question]:
        """Return at most `limit` matching questions, order unspecified."""
        ...


@runtime_checkable
class AnsweredExamStore(Protocol):
    async def get_student_records(self, student_id: str) -> Mapping[str, Mapping[str, Any]]:
        """Raw exam records of a student keyed by exam id."""
        ...


@dataclass(frozen=True)
class AccessDecision:
    can_access: bool
    reason: Optional[str] = None


@runtime_checkable
class PhaseAuthorization(Protocol):
    async def can_access(self, student_id: str, grade_id: str, phase: Phase) -> AccessDecision:
        ...


@dataclass(frozen=True)
class WeaknessProfile:
    """
    Topic-level proficiency of a student in a subject.

    weights maps topic code -> weakness weight in [0, 1] (1 = always wrong).
    A profile may carry only the primary weakness when no full map exists.
    """

    weights: Mapping[str, float] = field(default_factory=dict)
    primary_weakness: Optional[str] = None
    weaknesses: tuple[str, ...] = ()
    strengths: tuple[str, ...] = ()

    @property
    def has_weights(self) -> bool:
        return bool(self.weights)


@runtime_checkable
class PerformanceAnalysis(Protocol):
    async def get_weakness_profile(self, student_id: str, subject: str) -> Optional[WeaknessProfile]:
        """None when no analysis is available for the student."""
        ...
