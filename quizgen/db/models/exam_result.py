"""
Submitted exam results.

The per-question outcome (questionDetails) and the raw answer map are kept
in a JSONB payload exactly as the exam UI submits them; they are validated
when read, by quizgen.selection.exam_records.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ExamResultRecord(Base):
    """
    One exam of one student.

    payload JSONB structure:
        {
            "questionDetails": [
                {"questionId": "MAAL1F001", "topic": "Álgebra y Cálculo",
                 "topicCode": "AL", "isCorrect": true}
            ],
            "answers": {"MAAL1F001": "A"}
        }
    """

    __tablename__ = "exam_results"
    __table_args__ = (
        UniqueConstraint("student_id", "exam_id", name="uq_exam_results_student_exam"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        server_default=func.gen_random_uuid()
    )
    student_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    exam_id: Mapped[str] = mapped_column(Text, nullable=False)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    phase: Mapped[str | None] = mapped_column(Text)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    payload: Mapped[dict] = mapped_column(JSONB, default=dict)

    submitted_at: Mapped[datetime] = mapped_column(default=func.now())

    def __repr__(self) -> str:
        return f"<ExamResultRecord(student={self.student_id}, subject={self.subject}, phase={self.phase})>"

    def to_raw(self) -> dict[str, Any]:
        """Record in the shape the exam store interface returns."""
        payload = self.payload or {}
        return {
            "subject": self.subject,
            "phase": self.phase,
            "completed": self.completed,
            "questionDetails": payload.get("questionDetails", []),
            "answers": payload.get("answers", {}),
        }
