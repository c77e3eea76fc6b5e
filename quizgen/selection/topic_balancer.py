"""
Topic Balancer.

Assembles a deduplicated, topic-balanced candidate set for a subject:

1. For every topic, run the filter cascade sequentially (most to least
   specific), stopping once the accumulated unique, unanswered candidates
   reach the buffer size (3-4x the per-topic target).
2. Exclude already-answered questions and shuffle each topic pool with its
   own random stream.
3. Take min(target, supply) from each topic, then round-robin extra items
   from topics with surplus until the overall target is met.
4. If the selection overshoots the target, repeatedly remove a random item
   from the most represented topic.

Per-topic cascades are independent and run concurrently; each accumulates
into its own pool and pools are merged afterwards.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping, Optional

from loguru import logger

from quizgen.catalog.subjects import SubjectTopicCatalog, Topic
from quizgen.selection.answered_tracker import AnsweredQuestionTracker
from quizgen.selection.errors import RepositoryQueryFailure
from quizgen.selection.interfaces import QuestionRepository
from quizgen.selection.models import Phase, Question, QuestionFilters, TopicDistributionRule
from quizgen.selection.randomness import RandomSource
from quizgen.selection.strategies import (
    SUBJECT_CASCADE,
    TOPIC_CASCADE,
    FilterCascade,
    SelectionContext,
)


def _by_id(question: Question) -> str:
    return question.id


@dataclass
class BalancerConfig:
    """Configuration for candidate fetching."""
    buffer_factor: int = 4
    min_buffer: int = 8
    group_buffer: int = 40


@dataclass
class CascadeOutcome:
    """Unique candidates gathered by one cascade run."""
    questions: list[Question] = field(default_factory=list)
    stages_run: int = 0
    stages_failed: int = 0

    @property
    def all_failed(self) -> bool:
        return self.stages_run > 0 and self.stages_failed == self.stages_run


@dataclass
class BalanceResult:
    """Balanced selection plus per-topic representation."""
    questions: list[Question]
    topic_counts: dict[str, int]
    target: int

    @property
    def shortfall(self) -> int:
        return max(0, self.target - len(self.questions))


class TopicBalancer:
    """
    Topic-balanced sampler over a QuestionRepository.

    Example:
        balancer = TopicBalancer(repository, catalog)
        result = await balancer.select_balanced(
            "Matemáticas", Phase.FIRST, "1", rule, answered, level_code="F", rng=RandomSource(42)
        )
    """

    def __init__(
        self,
        repository: QuestionRepository,
        catalog: Optional[SubjectTopicCatalog] = None,
        config: Optional[BalancerConfig] = None,
        topic_cascade: FilterCascade = TOPIC_CASCADE,
        subject_cascade: FilterCascade = SUBJECT_CASCADE,
    ):
        self.repository = repository
        self.catalog = catalog or SubjectTopicCatalog()
        self.config = config or BalancerConfig()
        self.topic_cascade = topic_cascade
        self.subject_cascade = subject_cascade

    def buffer_size(self, target: int) -> int:
        """Candidates to request for a target count."""
        if target <= 0:
            return 0
        return max(target * self.config.buffer_factor, self.config.min_buffer)

    # ========================================
    # Cascade
    # ========================================

    async def run_cascade(
        self,
        cascade: FilterCascade,
        ctx: SelectionContext,
        buffer: int,
        exclude: frozenset[str] = frozenset(),
    ) -> CascadeOutcome:
        """
        Run cascade stages in order until `buffer` usable candidates exist.

        A failing stage is logged and treated as empty; the next, broader
        stage runs instead. Candidates in `exclude` are kept (callers may
        need them, e.g. to discard a whole passage group) but do not count
        toward the buffer.
        """
        outcome = CascadeOutcome()
        accumulated: dict[str, Question] = {}
        usable = 0

        for stage_name, filters in cascade.stages(ctx):
            if usable >= buffer:
                logger.debug(f"Buffer of {buffer} met, skipping stage {stage_name}")
                break

            outcome.stages_run += 1
            filters = replace(filters, exclude_ids=exclude | frozenset(accumulated))
            try:
                batch = await self.repository.query(filters, buffer - usable)
            except asyncio.CancelledError:
                raise
            except Exception as e:  # Stage failures are absorbed; the cascade widens
                outcome.stages_failed += 1
                logger.warning(f"Stage {stage_name} failed ({filters.describe()}): {e}")
                continue

            added = 0
            for question in batch:
                if question.id in accumulated:
                    continue
                accumulated[question.id] = question
                added += 1
                if question.id not in exclude and question.code not in exclude:
                    usable += 1

            logger.debug(
                f"Stage {stage_name} ({filters.describe()}): {len(batch)} returned, "
                f"{added} new, {usable}/{buffer} usable"
            )

        outcome.questions = list(accumulated.values())
        return outcome

    async def collect_topic_candidates(
        self,
        subject: str,
        topic: Topic,
        grade: Optional[str],
        level_code: Optional[str],
        buffer: int,
        exclude: frozenset[str] = frozenset(),
    ) -> list[Question]:
        """
        Raw unique candidates for one topic (answered ones included).

        Raises:
            RepositoryQueryFailure: every cascade stage for the topic failed
        """
        ctx = SelectionContext(subject=subject, topic=topic, grade=grade, level_code=level_code)
        outcome = await self.run_cascade(self.topic_cascade, ctx, buffer, exclude)
        if outcome.all_failed:
            raise RepositoryQueryFailure(
                f"All {outcome.stages_run} query stages failed for {subject}/{topic.code}"
            )
        return outcome.questions

    async def fetch_topic_pool(
        self,
        subject: str,
        topic: Topic,
        grade: Optional[str],
        level_code: Optional[str],
        target: int,
        answered: frozenset[str],
        rng: RandomSource,
    ) -> list[Question]:
        """Shuffled, unanswered pool for a single topic."""
        if target <= 0:
            return []

        candidates = await self.collect_topic_candidates(
            subject, topic, grade, level_code, self.buffer_size(target), answered
        )
        pool = AnsweredQuestionTracker.filter_answered(candidates, answered)
        logger.debug(f"Topic {topic.code}: {len(pool)} usable of {len(candidates)} candidates")
        # Repositories return rows in no fixed order; sort so a seed reproduces the pick
        return rng.spawn(f"topic:{topic.code}").shuffled(sorted(pool, key=_by_id))

    async def fetch_group_members(self, subject: str, sample: Question) -> Optional[list[Question]]:
        """
        Every question sharing `sample`'s passage, topic, grade and level.

        Returns None when the query fails, so the caller can drop the group.
        """
        filters = QuestionFilters(
            subject=subject,
            topic_code=sample.topic_code,
            grade=sample.grade,
            level_code=sample.level_code,
            informative_text=sample.informative_text,
        )
        try:
            return await self.repository.query(filters, self.config.group_buffer)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Could not load group members for {sample.id}: {e}")
            return None

    # ========================================
    # Balanced selection
    # ========================================

    def _rule_topics(self, subject: str, rule: TopicDistributionRule) -> list[Topic]:
        entry = self.catalog.get_subject(subject)
        if entry is None:
            return []
        topics = [t for t in entry.topics if t.code in rule.per_topic]
        unknown = set(rule.per_topic) - {t.code for t in topics}
        if unknown:
            logger.warning(f"Ignoring topics not in the {subject} catalog: {sorted(unknown)}")
        return topics

    async def select_balanced(
        self,
        subject: str,
        phase: Phase,
        grade: Optional[str],
        rule: TopicDistributionRule,
        answered: frozenset[str] = frozenset(),
        *,
        level_code: Optional[str] = None,
        rng: Optional[RandomSource] = None,
    ) -> BalanceResult:
        """
        Balanced selection over the topics named in `rule`.

        Args:
            subject: Subject name
            phase: Requested phase (for logging)
            grade: Grade code, None for any grade
            rule: Total and per-topic targets
            answered: Question ids to exclude
            level_code: Preferred level code, None to ignore level
            rng: Random source (fresh entropy when omitted)

        Returns:
            BalanceResult; its shortfall is left for the caller's general fallback
        """
        rng = rng or RandomSource()
        topics = self._rule_topics(subject, rule)

        pools_list = await asyncio.gather(*(
            self.fetch_topic_pool(
                subject, topic, grade, level_code, rule.per_topic[topic.code], answered, rng
            )
            for topic in topics
        ))

        # A question can only be claimed by the first topic (catalog order) that returned it
        pools: dict[str, list[Question]] = {}
        claimed: set[str] = set()
        for topic, pool in zip(topics, pools_list):
            pools[topic.code] = [q for q in pool if q.id not in claimed]
            claimed.update(q.id for q in pools[topic.code])

        selected = self.balance(pools, rule.per_topic, rule.total, rng)
        questions = rng.spawn("order").shuffled(
            [q for code in selected for q in selected[code]]
        )
        topic_counts = {code: len(items) for code, items in selected.items()}

        logger.info(
            f"Balanced {subject} ({phase.value}): {len(questions)}/{rule.total} "
            f"across topics {topic_counts}"
        )
        return BalanceResult(questions=questions, topic_counts=topic_counts, target=rule.total)

    @staticmethod
    def balance(
        pools: Mapping[str, list[Question]],
        targets: Mapping[str, int],
        total: int,
        rng: RandomSource,
    ) -> dict[str, list[Question]]:
        """
        Take min(target, supply) per topic, then round-robin surplus.

        Pools must already be shuffled; their iteration order is the topic
        order used for round-robin and tie-breaking.
        """
        selected: dict[str, list[Question]] = {}
        leftovers: dict[str, list[Question]] = {}
        for code, pool in pools.items():
            take = min(targets.get(code, 0), len(pool))
            selected[code] = list(pool[:take])
            leftovers[code] = list(pool[take:])

        count = sum(len(items) for items in selected.values())
        while count < total and any(leftovers.values()):
            for code in pools:
                if count >= total:
                    break
                if leftovers[code]:
                    selected[code].append(leftovers[code].pop(0))
                    count += 1

        if count > total:
            TopicBalancer.trim_to_target(selected, total, rng)
        return selected

    @staticmethod
    def trim_to_target(selected: dict[str, list[Question]], total: int, rng: RandomSource) -> None:
        """
        Remove random items from the most represented topic until at target.

        Ties between equally represented topics go to the topic latest in
        iteration order, so trimming is deterministic under a fixed seed.
        """
        while sum(len(items) for items in selected.values()) > total:
            highest = max(len(items) for items in selected.values())
            code = [c for c, items in selected.items() if len(items) == highest][-1]
            selected[code].pop(rng.randrange(len(selected[code])))

    # ========================================
    # Topic-agnostic fallback
    # ========================================

    async def fill_from_subject(
        self,
        subject: str,
        grade: Optional[str],
        level_code: Optional[str],
        needed: int,
        exclude: Iterable[str],
        rng: RandomSource,
    ) -> list[Question]:
        """
        Backstop when topic supply is short: subject-wide, unbalanced.

        Never pads with another subject's questions.
        """
        if needed <= 0:
            return []

        excluded = frozenset(exclude)
        ctx = SelectionContext(subject=subject, grade=grade, level_code=level_code)
        outcome = await self.run_cascade(
            self.subject_cascade, ctx, self.buffer_size(needed), excluded
        )
        if outcome.all_failed:
            logger.error(f"Every subject-wide fallback stage failed for {subject}")
            return []

        pool = AnsweredQuestionTracker.filter_answered(outcome.questions, excluded)
        picked = rng.spawn("fallback").shuffled(sorted(pool, key=_by_id))[:needed]
        logger.info(f"Subject fallback for {subject}: {len(picked)}/{needed} filled")
        return picked
