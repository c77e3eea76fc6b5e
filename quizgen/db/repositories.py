"""
SQL adapters of the engine's repository interfaces.

Each call opens its own session scope, so the adapters are safe to share
between concurrent requests and concurrent per-topic queries.
"""
from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from quizgen.db.database import async_session_scope
from quizgen.catalog.quiz_configs import QuizConfigTable
from quizgen.db.models import ExamResultRecord, PhaseGrantRecord, QuestionRecord
from quizgen.selection.answered_tracker import AnsweredQuestionTracker
from quizgen.selection.authorization import RecordPhaseAuthorization
from quizgen.selection.models import Phase, Question, QuestionFilters

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class SqlQuestionRepository:
    """QuestionRepository over the `questions` table."""

    def __init__(self, session_scope: SessionScope = async_session_scope):
        self.session_scope = session_scope

    def build_query(self, filters: QuestionFilters, limit: int):
        query = select(QuestionRecord).where(QuestionRecord.is_active.is_(True))
        for column, value in filters.as_dict().items():
            query = query.where(getattr(QuestionRecord, column) == value)
        if filters.exclude_ids:
            excluded = sorted(filters.exclude_ids)
            query = query.where(
                QuestionRecord.id.notin_(excluded),
                QuestionRecord.code.notin_(excluded),
            )
        # Random sample of the matching rows
        return query.order_by(func.random()).limit(limit)

    async def query(self, filters: QuestionFilters, limit: int) -> list[Question]:
        if limit <= 0:
            return []

        async with self.session_scope() as session:
            result = await session.execute(self.build_query(filters, limit))
            rows = result.scalars().all()

        logger.debug(f"SQL query ({filters.describe()}, limit {limit}): {len(rows)} rows")
        return [row.to_question() for row in rows]


class SqlExamStore:
    """AnsweredExamStore over the `exam_results` table."""

    def __init__(self, session_scope: SessionScope = async_session_scope):
        self.session_scope = session_scope

    async def get_student_records(self, student_id: str) -> dict[str, dict[str, Any]]:
        async with self.session_scope() as session:
            result = await session.execute(
                select(ExamResultRecord).where(ExamResultRecord.student_id == student_id)
            )
            rows = result.scalars().all()

        return {row.exam_id: row.to_raw() for row in rows}


class SqlPhaseAuthorization(RecordPhaseAuthorization):
    """PhaseAuthorization whose grants live in the `phase_authorizations` table."""

    def __init__(
        self,
        tracker: AnsweredQuestionTracker,
        config_table: Optional[QuizConfigTable] = None,
        session_scope: SessionScope = async_session_scope,
    ):
        super().__init__((), tracker, config_table)
        self.session_scope = session_scope

    async def grant_exists(self, grade_id: str, phase: Phase) -> bool:
        if self.is_phase_authorized(grade_id, phase):
            return True

        async with self.session_scope() as session:
            result = await session.execute(
                select(PhaseGrantRecord.id)
                .where(PhaseGrantRecord.grade_id == str(grade_id))
                .where(PhaseGrantRecord.phase == Phase.parse(phase).value)
                .limit(1)
            )
            return result.scalar_one_or_none() is not None
