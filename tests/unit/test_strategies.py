"""
Unit tests for the filter cascade strategies.
"""

from quizgen.catalog.subjects import Topic
from quizgen.selection.models import QuestionFilters
from quizgen.selection.strategies import (
    SUBJECT_CASCADE,
    TOPIC_CASCADE,
    SelectionContext,
    SubjectOnlyStrategy,
    TopicGradeLevelStrategy,
    TopicLevelStrategy,
)

GEOMETRY = Topic("Geometría", "GE")


def test_most_specific_stage_uses_every_filter():
    ctx = SelectionContext("Matemáticas", GEOMETRY, grade="1", level_code="F")

    filters = TopicGradeLevelStrategy().build(ctx)

    assert filters == QuestionFilters(subject="Matemáticas", topic_code="GE", grade="1", level_code="F")


def test_strategy_declines_without_required_context():
    ctx = SelectionContext("Matemáticas", GEOMETRY)

    assert TopicGradeLevelStrategy().build(ctx) is None
    assert TopicLevelStrategy().build(ctx) is None


def test_topic_cascade_order_with_full_context():
    ctx = SelectionContext("Matemáticas", GEOMETRY, grade="1", level_code="F")

    names = [name for name, _ in TOPIC_CASCADE.stages(ctx)]

    assert names == ["topic+grade+level", "topic+grade", "topic+level", "topic"]


def test_topic_cascade_skips_stages_without_grade():
    ctx = SelectionContext("Matemáticas", GEOMETRY, level_code="F")

    stages = list(TOPIC_CASCADE.stages(ctx))

    assert [name for name, _ in stages] == ["topic+level", "topic"]
    assert stages[-1][1] == QuestionFilters(subject="Matemáticas", topic_code="GE")


def test_topic_cascade_without_level_has_no_duplicate_stages():
    ctx = SelectionContext("Inglés", Topic("Parte 1", "P1"), grade="1")

    stages = list(TOPIC_CASCADE.stages(ctx))

    assert [name for name, _ in stages] == ["topic+grade", "topic"]


def test_subject_cascade_never_leaves_the_subject():
    ctx = SelectionContext("Matemáticas", grade="1", level_code="F")

    stages = list(SUBJECT_CASCADE.stages(ctx))

    assert [name for name, _ in stages] == ["subject+grade+level", "subject+grade", "subject"]
    assert all(filters.subject == "Matemáticas" for _, filters in stages)
    assert all(filters.topic_code is None for _, filters in stages)


def test_subject_only_always_applies():
    assert SubjectOnlyStrategy().build(SelectionContext("Física")) == QuestionFilters(subject="Física")
