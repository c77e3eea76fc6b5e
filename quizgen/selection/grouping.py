"""
Grouped Question Assembler.

Questions that share a passage (reading comprehension, cloze tests) must be
served together. A group is identified by a GroupKey built from the
whitespace-normalized passage, topic, grade, level and passage images.

Two modes:
- Ordering: an already selected list keeps its order, except that members of
  a group are pulled together into one contiguous run at the position of the
  group's first member.
- Group-granular selection (mandatory-grouped subjects): whole groups are
  collected per topic, shuffled as units, picked per topic and flattened.

Within a group, members are ordered by the blank index in the prompt
("hueco [3]", "blank 3"), then creation time, then id.
"""
from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Iterable, Mapping, Optional, Sequence

from loguru import logger

from quizgen.selection.answered_tracker import AnsweredQuestionTracker
from quizgen.selection.models import GroupKey, Question
from quizgen.selection.randomness import RandomSource

_WHITESPACE = re.compile(r"\s+")
_BLANK_MARKER = re.compile(r"\b(?:hueco|blank|espacio|gap)\s*\[?\s*(\d+)\s*\]?", re.IGNORECASE)

# Subjects whose passage runs are not announced to the student.
RANGE_EXCLUDED_SUBJECT_CODES = frozenset({"IN"})


def normalize_passage(text: str) -> str:
    """Trim and collapse whitespace so formatting differences do not split a group."""
    return _WHITESPACE.sub(" ", text).strip()


def group_key(question: Question) -> Optional[GroupKey]:
    """Composite group identity, or None for a standalone question."""
    if not question.has_passage:
        return None
    passage = normalize_passage(question.informative_text or "")
    return GroupKey(
        passage_hash=hashlib.sha1(passage.encode("utf-8")).hexdigest(),
        topic_code=question.topic_code,
        grade=question.grade,
        level_code=question.level_code,
        images=tuple(question.informative_images),
    )


def passage_key(question: Question) -> Optional[tuple[str, tuple[str, ...]]]:
    """Passage identity ignoring topic, grade and level: text hash and images."""
    key = group_key(question)
    return (key.passage_hash, key.images) if key is not None else None


def blank_index(question: Question) -> Optional[int]:
    """Sequence marker embedded in the prompt, if any."""
    match = _BLANK_MARKER.search(question.question_text or "")
    return int(match.group(1)) if match else None


def member_sort_key(question: Question) -> tuple:
    index = blank_index(question)
    created = question.created_at.timestamp() if isinstance(question.created_at, datetime) else None
    return (
        index is None, index or 0,
        created is None, created or 0.0,
        question.id,
    )


def blanks_complete(members: Iterable[Question]) -> bool:
    """True unless the members' blank markers skip a number or do not start at 1."""
    indices = sorted(i for i in (blank_index(q) for q in members) if i is not None)
    return indices == list(range(1, len(indices) + 1))


def _group_order(group: "QuestionGroup") -> tuple:
    return (group.key.passage_hash, group.key.topic_code, group.key.grade, group.key.level_code, group.key.images)


@dataclass(frozen=True)
class QuestionGroup:
    """A passage group with its members in serving order."""

    key: GroupKey
    members: tuple[Question, ...]

    @property
    def topic_code(self) -> str:
        return self.key.topic_code

    @property
    def size(self) -> int:
        return len(self.members)


MemberFetcher = Callable[[QuestionGroup], Awaitable[Optional[Sequence[Question]]]]


class GroupedQuestionAssembler:
    """
    Keeps passage groups cohesive.

    Example:
        grouper = GroupedQuestionAssembler(min_group_size=2)
        ordered = grouper.group_and_order(questions)
    """

    def __init__(self, rng: Optional[RandomSource] = None, min_group_size: int = 2):
        self.rng = rng or RandomSource()
        self.min_group_size = min_group_size

    def group_and_order(self, questions: Sequence[Question]) -> list[Question]:
        """
        Make every group contiguous, anchored where its first member appears.

        Standalone questions keep their relative order.
        """
        members: dict[GroupKey, list[Question]] = {}
        for question in questions:
            key = group_key(question)
            if key is not None:
                members.setdefault(key, []).append(question)

        ordered: list[Question] = []
        emitted: set[GroupKey] = set()
        for question in questions:
            key = group_key(question)
            if key is None or len(members[key]) == 1:
                ordered.append(question)
                continue
            if key in emitted:
                continue
            emitted.add(key)
            ordered.extend(sorted(members[key], key=member_sort_key))

        grouped = len(emitted)
        if grouped:
            logger.debug(f"Ordered {len(ordered)} questions with {grouped} contiguous groups")
        return ordered

    def collect_groups(
        self,
        questions: Iterable[Question],
        answered: frozenset[str] = frozenset(),
        partial: bool = False,
    ) -> list[QuestionGroup]:
        """
        Build eligible groups from raw candidates, in a stable order.

        A group is dropped when any member was already answered. Unless
        `partial` is set (the candidates may hold only part of each group),
        it is also dropped when it has fewer than `min_group_size` members
        or when its blank markers do not run 1..n.
        """
        buckets: dict[GroupKey, dict[str, Question]] = {}
        for question in questions:
            key = group_key(question)
            if key is not None:
                buckets.setdefault(key, {}).setdefault(question.id, question)

        groups: list[QuestionGroup] = []
        for key, by_id in buckets.items():
            items = list(by_id.values())
            if len(AnsweredQuestionTracker.filter_answered(items, answered)) != len(items):
                logger.debug(f"Skipping group {key.passage_hash[:8]}: contains answered questions")
                continue
            if not partial:
                if len(items) < self.min_group_size:
                    continue
                if not blanks_complete(items):
                    logger.debug(f"Skipping group {key.passage_hash[:8]}: blank markers have gaps")
                    continue
            groups.append(QuestionGroup(key=key, members=tuple(sorted(items, key=member_sort_key))))
        return sorted(groups, key=_group_order)

    def complete_group(
        self,
        group: QuestionGroup,
        members: Iterable[Question],
        answered: frozenset[str] = frozenset(),
    ) -> Optional[QuestionGroup]:
        """Rebuild `group` from its full member list, or None if it is not servable."""
        rebuilt = self.collect_groups([q for q in members if group_key(q) == group.key], answered)
        return rebuilt[0] if rebuilt else None

    async def select_groups_per_topic(
        self,
        candidates_by_topic: Mapping[str, Iterable[Question]],
        groups_per_topic: Mapping[str, int],
        answered: frozenset[str] = frozenset(),
        rng: Optional[RandomSource] = None,
        fetch_members: Optional[MemberFetcher] = None,
    ) -> dict[str, list[QuestionGroup]]:
        """
        Pick whole groups per topic, never reusing a group across topics.

        Args:
            candidates_by_topic: Raw candidates keyed by topic code (in topic order)
            groups_per_topic: Number of groups wanted per topic code
            answered: Question ids that disqualify a group
            rng: Per-request random source (defaults to the assembler's own)
            fetch_members: Loads every member of a group's passage. Candidates
                come from a bounded query and may hold only part of a group;
                with a fetcher, each picked group is rebuilt from its full
                member list before it is accepted. A fetcher returning None
                drops the group.

        Returns:
            Chosen groups keyed by topic code; a topic may get fewer than asked
        """
        rng = rng or self.rng
        used_keys: set[GroupKey] = set()
        used_ids: set[str] = set()
        chosen: dict[str, list[QuestionGroup]] = {}

        for topic_code, candidates in candidates_by_topic.items():
            wanted = groups_per_topic.get(topic_code, 0)
            groups = rng.spawn(f"groups:{topic_code}").shuffled(
                self.collect_groups(candidates, answered, partial=fetch_members is not None)
            )

            picked: list[QuestionGroup] = []
            for group in groups:
                if len(picked) >= wanted:
                    break
                if group.key in used_keys:
                    continue
                if fetch_members is not None:
                    members = await fetch_members(group)
                    if members is None:
                        continue
                    group = self.complete_group(group, members, answered)
                    if group is None:
                        continue
                if any(q.id in used_ids for q in group.members):
                    continue
                picked.append(group)
                used_keys.add(group.key)
                used_ids.update(q.id for q in group.members)

            if len(picked) < wanted:
                logger.warning(f"Topic {topic_code}: only {len(picked)}/{wanted} complete groups available")
            chosen[topic_code] = picked
        return chosen

    def flatten(
        self, groups: Iterable[QuestionGroup], rng: Optional[RandomSource] = None
    ) -> list[Question]:
        """Shuffle group order, keeping each group's members contiguous and ordered."""
        ordered_groups = (rng or self.rng).spawn("group-order").shuffled(list(groups))
        return [q for group in ordered_groups for q in group.members]


def detect_group_ranges(
    questions: Sequence[Question],
    excluded_subject_codes: frozenset[str] = RANGE_EXCLUDED_SUBJECT_CODES,
) -> tuple[tuple[int, int], ...]:
    """
    1-based (start, end) positions of passage groups in a served quiz.

    Used for notices like "questions 3 to 5 refer to the following text".
    Runs are keyed by passage text and images only, so one passage reused
    across levels or grades is announced once.
    """
    positions: dict[tuple, list[int]] = {}
    for index, question in enumerate(questions, start=1):
        if question.subject_code in excluded_subject_codes:
            continue
        key = passage_key(question)
        if key is not None:
            positions.setdefault(key, []).append(index)

    ranges = [(min(p), max(p)) for p in positions.values() if len(p) > 1]
    return tuple(sorted(ranges))
