"""
Phase-1 performance analysis.

Derives a WeaknessProfile from a student's completed first-phase exams of a
subject: per-topic correct/incorrect counts, strengths (accuracy at or above
the strength threshold), weaknesses (accuracy at or below the weakness
threshold) and the primary weakness (the weakness with most wrong answers).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from loguru import logger

from quizgen.catalog.subjects import SubjectTopicCatalog
from quizgen.selection.exam_records import parse_exam_records
from quizgen.selection.interfaces import AnsweredExamStore, WeaknessProfile
from quizgen.selection.models import Phase


@dataclass
class TopicPerformance:
    topic_code: str
    correct: int = 0
    incorrect: int = 0

    @property
    def total(self) -> int:
        return self.correct + self.incorrect

    @property
    def percentage(self) -> float:
        return (self.correct / self.total) * 100 if self.total else 0.0

    @property
    def error_rate(self) -> float:
        return self.incorrect / self.total if self.total else 0.0


@dataclass
class PerformanceThresholds:
    strength_threshold: float = 80.0
    weakness_threshold: float = 50.0


@dataclass
class SubjectPerformance:
    subject: str
    topics: dict[str, TopicPerformance] = field(default_factory=dict)

    @property
    def overall_percentage(self) -> float:
        correct = sum(t.correct for t in self.topics.values())
        total = sum(t.total for t in self.topics.values())
        return (correct / total) * 100 if total else 0.0


class Phase1PerformanceAnalysis:
    """PerformanceAnalysis backed by the exam store's first-phase records."""

    def __init__(
        self,
        store: AnsweredExamStore,
        catalog: Optional[SubjectTopicCatalog] = None,
        thresholds: Optional[PerformanceThresholds] = None,
    ):
        self.store = store
        self.catalog = catalog or SubjectTopicCatalog()
        self.thresholds = thresholds or PerformanceThresholds()

    async def summarize(self, student_id: str, subject: str) -> Optional[SubjectPerformance]:
        """Per-topic counts over completed phase-1 exams, None without data."""
        entry = self.catalog.get_subject(subject)
        if entry is None:
            return None

        records = parse_exam_records(await self.store.get_student_records(student_id) or {})
        summary = SubjectPerformance(subject=subject)

        for record in records.values():
            if record.subject != subject or record.phase is not Phase.FIRST or not record.completed:
                continue
            for detail in record.question_details:
                if detail.is_correct is None:
                    continue
                topic = entry.get_topic(detail.topic_code or "") or entry.get_topic(detail.topic or "")
                if topic is None:
                    logger.debug(f"Unknown topic in {record.exam_id}: {detail.topic_code or detail.topic}")
                    continue
                stats = summary.topics.setdefault(topic.code, TopicPerformance(topic.code))
                if detail.is_correct:
                    stats.correct += 1
                else:
                    stats.incorrect += 1

        if not summary.topics:
            return None

        # Catalog order keeps ties stable
        summary.topics = {
            code: summary.topics[code] for code in entry.topic_codes if code in summary.topics
        }
        return summary

    async def get_weakness_profile(self, student_id: str, subject: str) -> Optional[WeaknessProfile]:
        summary = await self.summarize(student_id, subject)
        if summary is None:
            logger.info(f"No phase-1 results for {student_id} in {subject}")
            return None

        topics = list(summary.topics.values())
        strengths = tuple(t.topic_code for t in topics if t.percentage >= self.thresholds.strength_threshold)
        weak = [t for t in topics if t.percentage <= self.thresholds.weakness_threshold]
        weak.sort(key=lambda t: t.incorrect, reverse=True)

        profile = WeaknessProfile(
            weights={t.topic_code: t.error_rate for t in topics},
            primary_weakness=weak[0].topic_code if weak else None,
            weaknesses=tuple(t.topic_code for t in weak),
            strengths=strengths,
        )
        logger.debug(
            f"Phase-1 profile for {student_id}/{subject}: "
            f"{summary.overall_percentage:.1f}% overall, weaknesses={profile.weaknesses}, "
            f"strengths={profile.strengths}"
        )
        return profile
