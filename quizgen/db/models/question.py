"""
Question bank table.

One row per multiple-choice item. Options and image lists are stored as
JSONB; passage ("informative") fields are plain columns because grouping
reads them on every request.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Index, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from quizgen.selection.models import Question, QuestionOption

from .base import Base


class QuestionRecord(Base):
    """
    Stored question.

    options JSONB structure:
        [
            {"id": "A", "text": "...", "image_url": null, "is_correct": true},
            {"id": "B", "text": "...", "image_url": null, "is_correct": false}
        ]
    """

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    # Classification
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    subject_code: Mapped[str] = mapped_column(Text, nullable=False)
    topic: Mapped[str] = mapped_column(Text, nullable=False)
    topic_code: Mapped[str] = mapped_column(Text, nullable=False)
    grade: Mapped[str] = mapped_column(Text, nullable=False)
    level: Mapped[str] = mapped_column(Text, nullable=False)
    level_code: Mapped[str] = mapped_column(Text, nullable=False)

    # Content
    question_text: Mapped[str] = mapped_column(Text, default="")
    options: Mapped[list] = mapped_column(JSONB, default=list)
    informative_text: Mapped[Optional[str]] = mapped_column(Text)
    informative_images: Mapped[list] = mapped_column(JSONB, default=list)
    question_images: Mapped[list] = mapped_column(JSONB, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    __table_args__ = (
        Index("ix_questions_subject_topic_grade_level", "subject", "topic_code", "grade", "level_code"),
    )

    def __repr__(self) -> str:
        return f"<QuestionRecord(code={self.code}, topic={self.topic_code})>"

    def to_question(self) -> Question:
        return Question(
            id=self.id,
            code=self.code,
            subject=self.subject,
            subject_code=self.subject_code,
            topic=self.topic,
            topic_code=self.topic_code,
            grade=self.grade,
            level=self.level,
            level_code=self.level_code,
            question_text=self.question_text or "",
            options=tuple(
                QuestionOption(
                    id=str(opt.get("id", "")),
                    text=opt.get("text"),
                    image_url=opt.get("image_url"),
                    is_correct=bool(opt.get("is_correct", False)),
                )
                for opt in self.options or []
            ),
            informative_text=self.informative_text,
            informative_images=tuple(self.informative_images or ()),
            question_images=tuple(self.question_images or ()),
            created_at=self.created_at,
            created_by=self.created_by,
        )
