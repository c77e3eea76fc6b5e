"""
Quiz Assembler.

Orchestrates a quiz generation request:

1. Reject a duplicate attempt (subject already completed in this phase)
   before any question is fetched.
2. Check phase gating when an authorization collaborator is configured.
3. Resolve the QuizConfig for (subject, phase).
4. Select questions:
   - mandatory-grouped subjects: whole passage groups, one per topic
   - phase 2 with a student: weakness-weighted per-topic counts
   - otherwise: the subject's even topic rule
   backstopped by a subject-wide query when topic supply runs short.
5. Keep passage groups contiguous and wrap everything in a GeneratedQuiz.

The whole request runs under a deadline; a timeout is reported as a
RepositoryQueryFailure.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from loguru import logger

from quizgen.catalog.quiz_configs import (
    PHASE_DESCRIPTIONS,
    PHASE_INSTRUCTIONS,
    PHASE_TITLES,
    QuizConfig,
    QuizConfigTable,
)
from quizgen.catalog.subjects import SubjectTopicCatalog
from quizgen.selection.answered_tracker import AnsweredQuestionTracker
from quizgen.selection.errors import (
    ConfigurationMissing,
    DuplicateAttempt,
    InsufficientQuestions,
    RepositoryQueryFailure,
    Unauthorized,
)
from quizgen.selection.grouping import GroupedQuestionAssembler, QuestionGroup, detect_group_ranges
from quizgen.selection.interfaces import (
    AnsweredExamStore,
    PhaseAuthorization,
    QuestionRepository,
)
from quizgen.selection.models import (
    GeneratedQuiz,
    Phase,
    Question,
    QuizGenerationResult,
    TopicDistributionRule,
)
from quizgen.selection.personalization import PersonalizationConfig, PersonalizationEngine
from quizgen.selection.performance import Phase1PerformanceAnalysis, PerformanceThresholds
from quizgen.selection.randomness import RandomSource
from quizgen.selection.topic_balancer import BalancerConfig, TopicBalancer


@dataclass
class AssemblerConfig:
    """Configuration for quiz assembly."""
    timeout_seconds: float = 30.0
    min_group_size: int = 2
    default_seed: Optional[str] = None


@dataclass
class _Selection:
    questions: list[Question]
    topic_counts: dict[str, int]
    delivered: int
    personalized: bool = False


class QuizAssembler:
    """
    Builds a GeneratedQuiz for a subject and phase.

    Example:
        assembler = QuizAssembler(repository, AnsweredQuestionTracker(store))
        result = await assembler.generate("Matemáticas", "first", grade="1", student_id="s-1")
        if not result.is_complete:
            ...  # partial quiz, result.shortfall questions missing
    """

    def __init__(
        self,
        repository: QuestionRepository,
        tracker: AnsweredQuestionTracker,
        balancer: Optional[TopicBalancer] = None,
        grouper: Optional[GroupedQuestionAssembler] = None,
        personalization: Optional[PersonalizationEngine] = None,
        authorization: Optional[PhaseAuthorization] = None,
        config_table: Optional[QuizConfigTable] = None,
        catalog: Optional[SubjectTopicCatalog] = None,
        config: Optional[AssemblerConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or AssemblerConfig()
        self.catalog = catalog or SubjectTopicCatalog()
        self.tracker = tracker
        self.balancer = balancer or TopicBalancer(repository, self.catalog)
        self.grouper = grouper or GroupedQuestionAssembler(min_group_size=self.config.min_group_size)
        self.personalization = personalization
        self.authorization = authorization
        self.config_table = config_table or QuizConfigTable(self.catalog)
        self.clock = clock

    async def generate(
        self,
        subject: str,
        phase: Phase | str,
        grade: Optional[str] = None,
        student_id: Optional[str] = None,
        grade_id: Optional[str] = None,
        seed: str | int | None = None,
        require_complete: bool = False,
    ) -> QuizGenerationResult:
        """
        Generate a quiz.

        Args:
            subject: Subject name (e.g. 'Matemáticas')
            phase: 'first' | 'second' | 'third' (or 1-3)
            grade: Grade name or code to filter by, None for any grade
            student_id: Student for deduplication, gating and personalization
            grade_id: Grade group used for phase gating (defaults to grade)
            seed: Seed for reproducible selection
            require_complete: Raise InsufficientQuestions instead of returning a partial quiz

        Returns:
            QuizGenerationResult with the quiz and any shortfall

        Raises:
            ConfigurationMissing, DuplicateAttempt, Unauthorized,
            InsufficientQuestions, RepositoryQueryFailure, MalformedExamRecord
        """
        try:
            phase = Phase.parse(phase)
        except ValueError:
            raise ConfigurationMissing(subject, str(phase)) from None

        try:
            return await asyncio.wait_for(
                self._generate(subject, phase, grade, student_id, grade_id, seed, require_complete),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Quiz assembly for {subject} ({phase.value}) exceeded {self.config.timeout_seconds}s")
            raise RepositoryQueryFailure(
                f"Quiz assembly timed out after {self.config.timeout_seconds}s"
            ) from e

    async def _generate(
        self,
        subject: str,
        phase: Phase,
        grade: Optional[str],
        student_id: Optional[str],
        grade_id: Optional[str],
        seed: str | int | None,
        require_complete: bool,
    ) -> QuizGenerationResult:
        grade = self.catalog.grade_code(grade) if grade else None
        logger.info(f"Generating {subject} quiz, phase {phase.value}, grade {grade or 'any'}")

        if student_id:
            if await self.tracker.has_completed_subject_in_phase(student_id, subject, phase):
                raise DuplicateAttempt(student_id, subject, phase.value)

            if self.authorization is not None:
                decision = await self.authorization.can_access(student_id, grade_id or grade or "", phase)
                if not decision.can_access:
                    raise Unauthorized(decision.reason)

        config = self.config_table.get(subject, phase, grade)
        rng = RandomSource(seed if seed is not None else self.config.default_seed)
        answered = (
            await self.tracker.get_answered_questions(student_id, subject, phase)
            if student_id else frozenset()
        )

        if config.grouped:
            selection = await self._select_grouped(config, answered, rng)
        else:
            selection = await self._select_balanced(config, student_id, answered, rng)

        questions = self.grouper.group_and_order(selection.questions)
        quiz = self.build_quiz(config, questions)

        target = config.question_count
        shortfall = max(0, target - selection.delivered)
        if not questions:
            logger.error(f"No questions available for {subject} ({phase.value})")
            raise InsufficientQuestions(target, 0)
        if shortfall and require_complete:
            raise InsufficientQuestions(target, selection.delivered, quiz)

        warnings: list[str] = []
        if shortfall:
            message = f"Only {selection.delivered} of {target} {'groups' if config.grouped else 'questions'} available"
            warnings.append(message)
            logger.warning(f"{subject} ({phase.value}): {message}")

        logger.info(f"Generated quiz {quiz.id} with {quiz.total_questions} questions")
        return QuizGenerationResult(
            quiz=quiz,
            target_count=target,
            shortfall=shortfall,
            topic_counts=selection.topic_counts,
            personalized=selection.personalized,
            warnings=warnings,
        )

    # ========================================
    # Selection branches
    # ========================================

    async def _select_balanced(
        self,
        config: QuizConfig,
        student_id: Optional[str],
        answered: frozenset[str],
        rng: RandomSource,
    ) -> _Selection:
        rule: TopicDistributionRule = config.topic_rule
        personalized = False

        if config.phase is Phase.SECOND and student_id and self.personalization is not None:
            distribution = await self.personalization.distribute(student_id, config.subject, config.question_count)
            if distribution is not None:
                rule = distribution.to_rule()
                personalized = True

        result = await self.balancer.select_balanced(
            config.subject,
            config.phase,
            config.grade,
            rule,
            answered,
            level_code=config.preferred_level_code,
            rng=rng,
        )
        questions = list(result.questions)
        topic_counts = dict(result.topic_counts)

        if result.shortfall:
            logger.warning(
                f"Topic supply short by {result.shortfall} for {config.subject}, "
                f"falling back to subject-wide selection"
            )
            extra = await self.balancer.fill_from_subject(
                config.subject,
                config.grade,
                config.preferred_level_code,
                result.shortfall,
                answered | {q.id for q in questions},
                rng,
            )
            questions.extend(extra)
            for question in extra:
                topic_counts[question.topic_code] = topic_counts.get(question.topic_code, 0) + 1

        return _Selection(questions, topic_counts, delivered=len(questions), personalized=personalized)

    async def _select_grouped(
        self,
        config: QuizConfig,
        answered: frozenset[str],
        rng: RandomSource,
    ) -> _Selection:
        entry = self.catalog.get_subject(config.subject)
        topics = [t for t in entry.topics if config.topic_rule.per_topic.get(t.code, 0) > 0] if entry else []

        candidates = await asyncio.gather(*(
            self.balancer.collect_topic_candidates(
                config.subject,
                topic,
                config.grade,
                config.preferred_level_code,
                self.balancer.config.group_buffer,
                answered,
            )
            for topic in topics
        ))

        async def fetch_members(group: QuestionGroup) -> Optional[list[Question]]:
            return await self.balancer.fetch_group_members(config.subject, group.members[0])

        chosen = await self.grouper.select_groups_per_topic(
            {topic.code: pool for topic, pool in zip(topics, candidates)},
            config.topic_rule.per_topic,
            answered,
            rng,
            fetch_members=fetch_members,
        )
        groups = [group for picked in chosen.values() for group in picked]
        questions = self.grouper.flatten(groups, rng)
        topic_counts = {code: sum(g.size for g in picked) for code, picked in chosen.items()}

        logger.info(f"Selected {len(groups)} groups ({len(questions)} questions) for {config.subject}")
        return _Selection(questions, topic_counts, delivered=len(groups))

    # ========================================
    # Quiz metadata
    # ========================================

    def quiz_id(self, config: QuizConfig, created_at: datetime) -> str:
        """<subject code><phase code><grade code or X><last 6 digits of epoch ms>."""
        epoch_ms = str(int(created_at.timestamp() * 1000))
        return f"{config.subject_code}{config.phase.code}{config.grade or 'X'}{epoch_ms[-6:]}"

    def build_quiz(self, config: QuizConfig, questions: list[Question]) -> GeneratedQuiz:
        created_at = self.clock()
        return GeneratedQuiz(
            id=self.quiz_id(config, created_at),
            title=f"{config.subject} - {PHASE_TITLES[config.phase]}",
            description=PHASE_DESCRIPTIONS[config.phase].format(subject=config.subject),
            subject=config.subject,
            subject_code=config.subject_code,
            topic_codes=tuple(config.topic_rule.topic_codes),
            phase=config.phase,
            questions=tuple(questions),
            time_limit=config.time_limit,
            total_questions=len(questions),
            instructions=PHASE_INSTRUCTIONS[config.phase],
            created_at=created_at,
            group_ranges=detect_group_ranges(questions),
        )


def build_assembler(
    repository: QuestionRepository,
    store: AnsweredExamStore,
    authorization: Optional[PhaseAuthorization] = None,
    settings=None,
) -> QuizAssembler:
    """Wire a QuizAssembler from application settings."""
    if settings is None:
        from config import get_settings
        settings = get_settings()

    catalog = SubjectTopicCatalog()
    personalization_settings = settings.get_personalization_config()

    tracker = AnsweredQuestionTracker(store)
    analysis = Phase1PerformanceAnalysis(
        store,
        catalog,
        PerformanceThresholds(
            strength_threshold=personalization_settings["strength_threshold"],
            weakness_threshold=personalization_settings["weakness_threshold"],
        ),
    )
    personalization = PersonalizationEngine(
        analysis,
        catalog,
        PersonalizationConfig(
            weakness_share=personalization_settings["weakness_share"],
            primary_weakness_share=personalization_settings["primary_weakness_share"],
        ),
    )
    assembler_config = AssemblerConfig(**settings.get_assembler_config())

    return QuizAssembler(
        repository,
        tracker,
        balancer=TopicBalancer(repository, catalog, BalancerConfig(**settings.get_balancer_config())),
        grouper=GroupedQuestionAssembler(min_group_size=assembler_config.min_group_size),
        personalization=personalization,
        authorization=authorization,
        catalog=catalog,
        config=assembler_config,
    )
