"""
Unit tests for QuizAssembler.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from quizgen.bank import InMemoryQuestionRepository, StaticPerformanceAnalysis
from quizgen.selection.answered_tracker import AnsweredQuestionTracker
from quizgen.selection.assembler import AssemblerConfig, QuizAssembler
from quizgen.selection.authorization import RecordPhaseAuthorization
from quizgen.selection.errors import (
    ConfigurationMissing,
    DuplicateAttempt,
    HistoryUnavailable,
    InsufficientQuestions,
    RepositoryQueryFailure,
    Unauthorized,
)
from quizgen.selection.interfaces import WeaknessProfile
from quizgen.selection.models import Phase
from quizgen.selection.personalization import PersonalizationEngine

FIXED_NOW = datetime(2025, 3, 1, 8, 0, 0, tzinfo=timezone.utc)


class SlowRepository(InMemoryQuestionRepository):
    async def query(self, filters, limit):
        await asyncio.sleep(1)
        return await super().query(filters, limit)


@pytest.fixture
def assembler_for(exam_store):
    """Factory: QuizAssembler over a repository and the shared exam store."""

    def _build(repository, **kwargs):
        return QuizAssembler(
            repository,
            AnsweredQuestionTracker(exam_store),
            clock=lambda: FIXED_NOW,
            **kwargs,
        )

    return _build


@pytest.fixture
def large_math_repository(make_question):
    return InMemoryQuestionRepository(
        make_question(f"MA{topic}1F{serial:03d}")
        for topic in ("AL", "GE", "ES")
        for serial in range(1, 21)
    )


# =============================================================================
# Balanced subjects
# =============================================================================


class TestBalancedGeneration:
    @pytest.mark.asyncio
    async def test_first_phase_is_topic_balanced(self, assembler_for, math_repository):
        result = await assembler_for(math_repository).generate("Matemáticas", "first", seed="s1")

        quiz = result.quiz
        assert quiz.total_questions == 18
        assert result.is_complete
        assert result.topic_counts == {"AL": 6, "GE": 6, "ES": 6}
        assert len(set(quiz.question_ids)) == 18
        assert quiz.title == "Matemáticas - Primera Ronda - Evaluación Inicial"
        assert quiz.time_limit == 45
        assert quiz.phase is Phase.FIRST

    @pytest.mark.asyncio
    async def test_same_seed_same_quiz(self, assembler_for, math_repository):
        first = await assembler_for(math_repository).generate("Matemáticas", "first", seed="repeat")
        second = await assembler_for(math_repository).generate("Matemáticas", "first", seed="repeat")

        assert first.quiz.question_ids == second.quiz.question_ids

    @pytest.mark.asyncio
    async def test_second_phase_excludes_earlier_questions(self, assembler_for, math_repository, exam_store):
        answered = [f"MAAL1F{i:03d}" for i in range(1, 5)]
        exam_store.add_record("student-1", "exam-1", {
            "subject": "Matemáticas",
            "phase": "first",
            "completed": True,
            "answers": {qid: "A" for qid in answered},
        })

        result = await assembler_for(math_repository).generate(
            "Matemáticas", "second", student_id="student-1", seed="s2"
        )

        assert result.quiz.total_questions == 20
        assert not set(answered) & set(result.quiz.question_ids)
        assert result.topic_counts["AL"] == 6
        assert sum(result.topic_counts.values()) == 20

    @pytest.mark.asyncio
    async def test_quiz_id_layout(self, assembler_for, math_repository):
        result = await assembler_for(math_repository).generate("Matemáticas", "first", grade="Undécimo")

        epoch_ms = str(int(FIXED_NOW.timestamp() * 1000))
        assert result.quiz.id == f"MA11{epoch_ms[-6:]}"

    @pytest.mark.asyncio
    async def test_quiz_id_without_grade(self, assembler_for, math_repository):
        result = await assembler_for(math_repository).generate("Matemáticas", "1")

        assert result.quiz.id.startswith("MA1X")


# =============================================================================
# Personalization
# =============================================================================


class TestPersonalizedGeneration:
    @pytest.mark.asyncio
    async def test_second_phase_skews_toward_weakness(
        self, assembler_for, large_math_repository, exam_store, phase1_math_record
    ):
        exam_store.add_record("student-1", "exam-1", phase1_math_record)
        analysis = StaticPerformanceAnalysis({
            ("student-1", "Matemáticas"): WeaknessProfile(
                weights={"AL": 0.25, "GE": 0.75, "ES": 0.0},
                primary_weakness="GE",
                weaknesses=("GE",),
                strengths=("ES",),
            )
        })
        assembler = assembler_for(large_math_repository, personalization=PersonalizationEngine(analysis))

        result = await assembler.generate("Matemáticas", "second", student_id="student-1", seed="p")

        assert result.personalized
        assert result.topic_counts == {"AL": 5, "GE": 10, "ES": 5}
        assert not set(phase1_math_record["answers"]) & set(result.quiz.question_ids)

    @pytest.mark.asyncio
    async def test_first_phase_is_never_personalized(self, assembler_for, math_repository):
        analysis = AsyncMock()
        assembler = assembler_for(math_repository, personalization=PersonalizationEngine(analysis))

        result = await assembler.generate("Matemáticas", "first", student_id="student-1")

        assert not result.personalized
        analysis.get_weakness_profile.assert_not_called()

    @pytest.mark.asyncio
    async def test_without_profile_falls_back_to_even_split(self, assembler_for, large_math_repository):
        assembler = assembler_for(
            large_math_repository, personalization=PersonalizationEngine(StaticPerformanceAnalysis())
        )

        result = await assembler.generate("Matemáticas", "second", student_id="student-1")

        assert not result.personalized
        assert result.topic_counts == {"AL": 7, "GE": 7, "ES": 6}


# =============================================================================
# Grouped subjects
# =============================================================================


class TestGroupedGeneration:
    @pytest.mark.asyncio
    async def test_english_serves_one_group_per_part(self, assembler_for, english_repository):
        result = await assembler_for(english_repository).generate("Inglés", "first", seed="en")

        questions = result.quiz.questions
        assert len(questions) == 21
        assert result.is_complete
        assert result.topic_counts == {f"P{i}": 3 for i in range(1, 8)}

        for start in range(0, 21, 3):
            triple = questions[start:start + 3]
            assert len({q.informative_text for q in triple}) == 1
            assert [q.question_text[-2] for q in triple] == ["1", "2", "3"]

        # English passages are not reported as ranges
        assert result.quiz.group_ranges == ()

    @pytest.mark.asyncio
    async def test_grouped_shortfall_counts_groups(self, assembler_for, english_questions):
        repository = InMemoryQuestionRepository(q for q in english_questions if q.topic_code != "P7")

        result = await assembler_for(repository).generate("Inglés", "first")

        assert result.shortfall == 1
        assert result.quiz.total_questions == 18
        assert result.warnings == ["Only 6 of 7 groups available"]

    @pytest.mark.asyncio
    async def test_crowded_part_never_serves_a_short_group(self, assembler_for, english_questions, make_question):
        part1 = [
            make_question("INP11F901", question_text="Standalone item"),
            make_question("INP11F902", question_text="Standalone item"),
        ]
        for group in range(13):
            passage = f"Crowded passage {group}: ___ (1) ___ (2) ___ (3)."
            for blank in (1, 2, 3):
                part1.append(make_question(
                    f"INP11F{group * 10 + blank + 100:03d}",
                    question_text=f"Choose the word for hueco [{blank}]",
                    informative_text=passage,
                ))
        bank = part1 + [q for q in english_questions if q.topic_code != "P1"]

        for seed in range(20):
            repository = InMemoryQuestionRepository(bank, seed=seed)
            result = await assembler_for(repository).generate("Inglés", "first", seed=f"crowded-{seed}")

            served = [q for q in result.quiz.questions if q.topic_code == "P1"]
            assert [q.question_text[-2] for q in served] == ["1", "2", "3"]
            assert len({q.informative_text for q in served}) == 1
            assert result.is_complete


# =============================================================================
# Structural errors
# =============================================================================


class TestStructuralErrors:
    @pytest.mark.asyncio
    async def test_duplicate_attempt_fetches_nothing(self, assembler_for, math_repository, exam_store):
        exam_store.add_record("student-1", "exam-1", {
            "subject": "Matemáticas", "phase": "first", "completed": True, "answers": {},
        })

        with pytest.raises(DuplicateAttempt):
            await assembler_for(math_repository).generate("Matemáticas", "first", student_id="student-1")

        assert math_repository.queries == []

    @pytest.mark.asyncio
    async def test_unknown_subject(self, assembler_for, math_repository):
        with pytest.raises(ConfigurationMissing):
            await assembler_for(math_repository).generate("Astronomía", "first")

    @pytest.mark.asyncio
    async def test_unknown_phase(self, assembler_for, math_repository):
        with pytest.raises(ConfigurationMissing):
            await assembler_for(math_repository).generate("Matemáticas", "fourth")

    @pytest.mark.asyncio
    async def test_unauthorized_phase(self, assembler_for, math_repository, exam_store):
        authorization = RecordPhaseAuthorization([], AnsweredQuestionTracker(exam_store))

        with pytest.raises(Unauthorized) as exc_info:
            await assembler_for(math_repository, authorization=authorization).generate(
                "Matemáticas", "first", student_id="student-1", grade_id="grade-11a"
            )

        assert "autorizada" in exc_info.value.reason
        assert math_repository.queries == []

    @pytest.mark.asyncio
    async def test_unreadable_history(self, math_repository):
        store = AsyncMock()
        store.get_student_records.side_effect = ConnectionError("store offline")
        assembler = QuizAssembler(math_repository, AnsweredQuestionTracker(store))

        with pytest.raises(HistoryUnavailable):
            await assembler.generate("Matemáticas", "second", student_id="student-1")


# =============================================================================
# Shortfall
# =============================================================================


class TestShortfall:
    @pytest.fixture
    def small_repository(self, make_question):
        return InMemoryQuestionRepository(
            make_question(f"MA{topic}1F{serial:03d}")
            for topic in ("AL", "GE", "ES")
            for serial in range(1, 5)
        )

    @pytest.mark.asyncio
    async def test_partial_quiz_is_returned(self, assembler_for, small_repository):
        result = await assembler_for(small_repository).generate("Matemáticas", "first")

        assert result.quiz.total_questions == 12
        assert result.shortfall == 6
        assert not result.is_complete
        assert result.warnings == ["Only 12 of 18 questions available"]

    @pytest.mark.asyncio
    async def test_require_complete_raises_with_partial_quiz(self, assembler_for, small_repository):
        with pytest.raises(InsufficientQuestions) as exc_info:
            await assembler_for(small_repository).generate("Matemáticas", "first", require_complete=True)

        assert exc_info.value.shortfall == 6
        assert exc_info.value.quiz.total_questions == 12

    @pytest.mark.asyncio
    async def test_empty_bank_raises(self, assembler_for):
        with pytest.raises(InsufficientQuestions) as exc_info:
            await assembler_for(InMemoryQuestionRepository()).generate("Matemáticas", "first")

        assert exc_info.value.found == 0

    @pytest.mark.asyncio
    async def test_timeout_is_a_query_failure(self, assembler_for, math_questions):
        assembler = assembler_for(SlowRepository(math_questions), config=AssemblerConfig(timeout_seconds=0.05))

        with pytest.raises(RepositoryQueryFailure):
            await assembler.generate("Matemáticas", "first")
