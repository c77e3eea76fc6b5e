"""
Phase gating.

A phase is open to a student when an administrator authorized it for the
student's grade and, for every phase after the first, the student completed
every configured subject of the previous phase.
"""
from __future__ import annotations

from typing import Iterable, Optional

from loguru import logger

from quizgen.catalog.quiz_configs import QuizConfigTable
from quizgen.selection.answered_tracker import AnsweredQuestionTracker
from quizgen.selection.interfaces import AccessDecision
from quizgen.selection.models import Phase

_PHASE_ORDINALS = {Phase.FIRST: "primera", Phase.SECOND: "segunda", Phase.THIRD: "tercera"}


class RecordPhaseAuthorization:
    """PhaseAuthorization over a static grant list and the exam history."""

    def __init__(
        self,
        authorized: Iterable[tuple[str, Phase | str]],
        tracker: AnsweredQuestionTracker,
        config_table: Optional[QuizConfigTable] = None,
    ):
        self.authorized = {(str(grade_id), Phase.parse(phase)) for grade_id, phase in authorized}
        self.tracker = tracker
        self.config_table = config_table or QuizConfigTable()

    def authorize(self, grade_id: str, phase: Phase | str) -> None:
        self.authorized.add((str(grade_id), Phase.parse(phase)))

    def revoke(self, grade_id: str, phase: Phase | str) -> None:
        self.authorized.discard((str(grade_id), Phase.parse(phase)))

    def is_phase_authorized(self, grade_id: str, phase: Phase | str) -> bool:
        return (str(grade_id), Phase.parse(phase)) in self.authorized

    async def grant_exists(self, grade_id: str, phase: Phase) -> bool:
        """Whether an administrator opened `phase` for the grade."""
        return self.is_phase_authorized(grade_id, phase)

    async def can_access(self, student_id: str, grade_id: str, phase: Phase) -> AccessDecision:
        phase = Phase.parse(phase)
        if not await self.grant_exists(grade_id, phase):
            return AccessDecision(
                False, "La fase no ha sido autorizada por el administrador para tu grado"
            )

        previous = phase.previous
        if previous is None:
            return AccessDecision(True)

        required = {
            subject for subject in self.config_table.available_subjects()
            if self.config_table.has_configuration(subject, previous)
        }
        completed = await self.tracker.completed_subjects(student_id, previous)
        missing = sorted(required - completed)
        if missing:
            logger.info(f"Student {student_id} blocked from {phase.value}: missing {missing}")
            return AccessDecision(
                False, f"Debes completar la {_PHASE_ORDINALS[previous]} fase antes de acceder a esta"
            )
        return AccessDecision(True)
