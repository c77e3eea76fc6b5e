"""
Filter-narrowing strategies for the fallback cascade.

Each strategy turns a SelectionContext into repository filters, or declines
(returns None) when the context lacks what it needs, e.g. a grade-specific
stage when no grade was requested. A FilterCascade orders strategies from
most to least specific; the balancer runs the stages one after the other.

Topic cascade:
    1. subject + topic + grade + preferred level
    2. subject + topic + grade
    3. subject + topic + preferred level
    4. subject + topic

Topic-agnostic cascade (backstop when topic supply is short):
    5. subject + grade + preferred level
    6. subject + grade
    7. subject
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

from quizgen.catalog.subjects import Topic
from quizgen.selection.models import QuestionFilters


@dataclass(frozen=True)
class SelectionContext:
    """What a cascade stage may filter on."""

    subject: str
    topic: Optional[Topic] = None
    grade: Optional[str] = None
    level_code: Optional[str] = None


class FilterStrategy(ABC):
    """One stage of the cascade."""

    name: str = "strategy"

    @abstractmethod
    def build(self, ctx: SelectionContext) -> Optional[QuestionFilters]:
        """Filters for this stage, or None if the stage does not apply."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class TopicGradeLevelStrategy(FilterStrategy):
    name = "topic+grade+level"

    def build(self, ctx: SelectionContext) -> Optional[QuestionFilters]:
        if ctx.topic is None or not ctx.grade or not ctx.level_code:
            return None
        return QuestionFilters(
            subject=ctx.subject, topic_code=ctx.topic.code, grade=ctx.grade, level_code=ctx.level_code
        )


class TopicGradeStrategy(FilterStrategy):
    name = "topic+grade"

    def build(self, ctx: SelectionContext) -> Optional[QuestionFilters]:
        if ctx.topic is None or not ctx.grade:
            return None
        return QuestionFilters(subject=ctx.subject, topic_code=ctx.topic.code, grade=ctx.grade)


class TopicLevelStrategy(FilterStrategy):
    name = "topic+level"

    def build(self, ctx: SelectionContext) -> Optional[QuestionFilters]:
        if ctx.topic is None or not ctx.level_code:
            return None
        return QuestionFilters(subject=ctx.subject, topic_code=ctx.topic.code, level_code=ctx.level_code)


class TopicOnlyStrategy(FilterStrategy):
    name = "topic"

    def build(self, ctx: SelectionContext) -> Optional[QuestionFilters]:
        if ctx.topic is None:
            return None
        return QuestionFilters(subject=ctx.subject, topic_code=ctx.topic.code)


class SubjectGradeLevelStrategy(FilterStrategy):
    name = "subject+grade+level"

    def build(self, ctx: SelectionContext) -> Optional[QuestionFilters]:
        if not ctx.grade or not ctx.level_code:
            return None
        return QuestionFilters(subject=ctx.subject, grade=ctx.grade, level_code=ctx.level_code)


class SubjectGradeStrategy(FilterStrategy):
    name = "subject+grade"

    def build(self, ctx: SelectionContext) -> Optional[QuestionFilters]:
        if not ctx.grade:
            return None
        return QuestionFilters(subject=ctx.subject, grade=ctx.grade)


class SubjectOnlyStrategy(FilterStrategy):
    name = "subject"

    def build(self, ctx: SelectionContext) -> Optional[QuestionFilters]:
        return QuestionFilters(subject=ctx.subject)


class FilterCascade:
    """Ordered composition of strategies, most specific first."""

    def __init__(self, strategies: Sequence[FilterStrategy]):
        self.strategies = tuple(strategies)

    def stages(self, ctx: SelectionContext) -> Iterator[tuple[str, QuestionFilters]]:
        """Yield (stage name, filters) for every applicable, distinct stage."""
        seen: set[QuestionFilters] = set()
        for strategy in self.strategies:
            filters = strategy.build(ctx)
            if filters is None or filters in seen:
                continue
            seen.add(filters)
            yield strategy.name, filters

    def __len__(self) -> int:
        return len(self.strategies)


TOPIC_CASCADE = FilterCascade((
    TopicGradeLevelStrategy(),
    TopicGradeStrategy(),
    TopicLevelStrategy(),
    TopicOnlyStrategy(),
))

SUBJECT_CASCADE = FilterCascade((
    SubjectGradeLevelStrategy(),
    SubjectGradeStrategy(),
    SubjectOnlyStrategy(),
))
