"""
Answered Question Tracker.

Tracks which questions a student has already been served so later phases of
the same subject never repeat them, and detects duplicate attempts of a
subject within a phase.

The answered set is computed fresh on every request; nothing is cached.
"""
from __future__ import annotations

from typing import Iterable

from loguru import logger

from quizgen.selection.errors import HistoryUnavailable, MalformedExamRecord
from quizgen.selection.exam_records import ExamRecord, parse_exam_records
from quizgen.selection.interfaces import AnsweredExamStore
from quizgen.selection.models import Phase, Question, normalize_question_id


class AnsweredQuestionTracker:
    """
    Reads a student's exam history through an AnsweredExamStore.

    Store failures raise HistoryUnavailable: callers must treat the history
    as unknown, never as empty.
    """

    def __init__(self, store: AnsweredExamStore):
        self.store = store

    async def _load_records(self, student_id: str) -> dict[str, ExamRecord]:
        try:
            raw = await self.store.get_student_records(student_id)
        except MalformedExamRecord:
            raise
        except Exception as e:  # Store adapters raise driver-specific errors
            logger.error(f"Could not read exam history for {student_id}: {e}")
            raise HistoryUnavailable(f"Exam history unavailable for {student_id}") from e

        return parse_exam_records(raw or {})

    async def get_answered_questions(
        self,
        student_id: str,
        subject: str,
        phase: Phase | str,
    ) -> frozenset[str]:
        """
        Question ids served to the student in phases strictly before `phase`.

        Args:
            student_id: Student identifier
            subject: Subject name (e.g. 'Matemáticas')
            phase: Requested phase

        Returns:
            Normalized question ids from both question details and raw answers
        """
        phase = Phase.parse(phase)
        if phase is Phase.FIRST:
            logger.debug("First phase requested, no previous questions")
            return frozenset()

        previous_phases = set(phase.earlier())
        records = await self._load_records(student_id)

        answered: set[str] = set()
        for record in records.values():
            if record.subject != subject:
                continue
            if record.phase is None or record.phase not in previous_phases:
                continue
            answered.update(record.question_ids())

        logger.debug(
            f"Student {student_id} answered {len(answered)} {subject} questions "
            f"before phase {phase.value}"
        )
        return frozenset(answered)

    async def has_completed_subject_in_phase(
        self,
        student_id: str,
        subject: str,
        phase: Phase | str,
    ) -> bool:
        """True iff a completed record exists for exactly this subject and phase."""
        phase = Phase.parse(phase)
        records = await self._load_records(student_id)

        for exam_id, record in records.items():
            if record.subject == subject and record.phase is phase and record.completed:
                logger.info(f"Student {student_id} already completed {subject} in phase {phase.value} ({exam_id})")
                return True
        return False

    async def completed_subjects(self, student_id: str, phase: Phase | str) -> set[str]:
        """Subjects the student has a completed record for in `phase`."""
        phase = Phase.parse(phase)
        records = await self._load_records(student_id)
        return {r.subject for r in records.values() if r.phase is phase and r.completed}

    @staticmethod
    def filter_answered(questions: Iterable[Question], answered: frozenset[str] | set[str]) -> list[Question]:
        """Drop questions whose id (or code) is in the answered set."""
        if not answered:
            return list(questions)
        return [
            q for q in questions
            if normalize_question_id(q.id) not in answered and q.code not in answered
        ]
