"""
Validated exam-history records.

Raw records from the exam store are parsed here, at the boundary, into
ExamRecord models. A record that fails validation raises MalformedExamRecord
instead of being skipped, so a broken history can never silently let
already-served questions through.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from quizgen.selection.errors import MalformedExamRecord
from quizgen.selection.models import Phase, normalize_question_id


class QuestionDetail(BaseModel):
    """Per-question outcome stored with a completed exam."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    question_id: str = Field(alias="questionId")
    topic: Optional[str] = None
    topic_code: Optional[str] = Field(default=None, alias="topicCode")
    is_correct: Optional[bool] = Field(default=None, alias="isCorrect")

    @field_validator("question_id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        if value is None or str(value).strip() == "":
            raise ValueError("questionId is empty")
        return normalize_question_id(value)


class ExamRecord(BaseModel):
    """One exam of a student, as stored after submission."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    exam_id: str = Field(default="", alias="examId")
    subject: str
    phase: Optional[Phase] = None
    completed: bool = False
    question_details: list[QuestionDetail] = Field(default_factory=list, alias="questionDetails")
    answers: dict[str, Any] = Field(default_factory=dict)

    @field_validator("phase", mode="before")
    @classmethod
    def _parse_phase(cls, value: Any) -> Optional[Phase]:
        if value is None or value == "":
            return None
        return Phase.parse(value)

    @field_validator("answers", mode="before")
    @classmethod
    def _normalize_answer_keys(cls, value: Any) -> dict[str, Any]:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ValueError("answers must be a mapping of questionId -> answer")
        return {normalize_question_id(k): v for k, v in value.items()}

    def question_ids(self) -> set[str]:
        """Every question id seen in this exam (details and raw answers)."""
        ids = {detail.question_id for detail in self.question_details}
        ids.update(self.answers.keys())
        return ids


def parse_exam_records(raw: Mapping[str, Any]) -> dict[str, ExamRecord]:
    """Parse a store payload {exam_id: record} into validated ExamRecords."""
    records: dict[str, ExamRecord] = {}
    for exam_id, payload in raw.items():
        if not isinstance(payload, Mapping):
            raise MalformedExamRecord(str(exam_id), "record is not an object")
        try:
            record = ExamRecord.model_validate({"examId": str(exam_id), **payload})
        except ValidationError as e:
            raise MalformedExamRecord(str(exam_id), str(e)) from e
        records[str(exam_id)] = record
    return records
