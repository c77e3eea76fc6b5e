"""
In-memory adapters of the engine's external interfaces.

Used by the CLI (JSON question bank and exam history files) and by tests.
"""
from __future__ import annotations

import json
import random
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from loguru import logger

from quizgen.selection.interfaces import WeaknessProfile
from quizgen.selection.models import Question, QuestionFilters


class InMemoryQuestionRepository:
    """
    QuestionRepository over a list of questions.

    Like the SQL repository, a query returns a random sample of the matching
    rows when more match than the limit allows.
    """

    def __init__(self, questions: Iterable[Question] = (), seed: Optional[int] = None):
        self._questions: dict[str, Question] = {}
        self._rng = random.Random(seed)
        self.queries: list[tuple[QuestionFilters, int]] = []
        for question in questions:
            self.add(question)

    def add(self, question: Question) -> None:
        self._questions[question.id] = question

    def __len__(self) -> int:
        return len(self._questions)

    @property
    def questions(self) -> list[Question]:
        return list(self._questions.values())

    async def query(self, filters: QuestionFilters, limit: int) -> list[Question]:
        self.queries.append((filters, limit))
        matches = [q for q in self._questions.values() if filters.matches(q)]
        if limit <= 0:
            return []
        return self._rng.sample(matches, min(limit, len(matches)))

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "InMemoryQuestionRepository":
        return cls(Question.from_dict(record) for record in records)

    @classmethod
    def from_json(cls, path: Path | str) -> "InMemoryQuestionRepository":
        """
        Load a bank from a JSON file.

        Accepts a list of question records or {"questions": [...]}.
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        records = data.get("questions", []) if isinstance(data, dict) else data
        repository = cls.from_records(records)
        logger.info(f"Loaded {len(repository)} questions from {path}")
        return repository


class InMemoryExamStore:
    """AnsweredExamStore over {student_id: {exam_id: record}}."""

    def __init__(self, records: Optional[Mapping[str, Mapping[str, Mapping[str, Any]]]] = None):
        self._records: dict[str, dict[str, dict[str, Any]]] = {
            student: {exam_id: dict(record) for exam_id, record in exams.items()}
            for student, exams in (records or {}).items()
        }

    def add_record(self, student_id: str, exam_id: str, record: Mapping[str, Any]) -> None:
        self._records.setdefault(student_id, {})[exam_id] = dict(record)

    async def get_student_records(self, student_id: str) -> dict[str, dict[str, Any]]:
        return dict(self._records.get(student_id, {}))

    @classmethod
    def from_json(cls, path: Path | str) -> "InMemoryExamStore":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls(data)


class StaticPerformanceAnalysis:
    """PerformanceAnalysis returning fixed profiles keyed by (student, subject)."""

    def __init__(self, profiles: Optional[Mapping[tuple[str, str], WeaknessProfile]] = None):
        self.profiles = dict(profiles or {})

    async def get_weakness_profile(self, student_id: str, subject: str) -> Optional[WeaknessProfile]:
        return self.profiles.get((student_id, subject))
