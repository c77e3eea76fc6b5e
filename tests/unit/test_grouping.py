"""
Unit tests for GroupedQuestionAssembler and passage-group helpers.
"""

import pytest

from quizgen.selection.grouping import (
    GroupedQuestionAssembler,
    blank_index,
    detect_group_ranges,
    group_key,
)
from quizgen.selection.randomness import RandomSource

PASSAGE = "Lee el siguiente texto.\n\n  El agua   hierve a 100 grados."


def test_group_key_ignores_whitespace_differences(make_question):
    a = make_question("LETI1F001", informative_text=PASSAGE)
    b = make_question("LETI1F002", informative_text="Lee el siguiente texto. El agua hierve a 100 grados.")

    assert group_key(a) == group_key(b)


def test_group_key_separates_topics_and_images(make_question):
    base = make_question("LETI1F001", informative_text=PASSAGE)
    other_topic = make_question("LETL1F002", informative_text=PASSAGE)
    with_image = make_question("LETI1F003", informative_text=PASSAGE, informative_images=("map.png",))

    assert group_key(base) != group_key(other_topic)
    assert group_key(base) != group_key(with_image)


def test_standalone_question_has_no_group(make_question):
    assert group_key(make_question("LETI1F001")) is None
    assert group_key(make_question("LETI1F001", informative_text="   ")) is None


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Completar el hueco [3]", 3),
        ("Choose the word for blank 12", 12),
        ("Espacio 2: elige la opción", 2),
        ("¿Cuál es la idea principal?", None),
    ],
)
def test_blank_index(make_question, text, expected):
    assert blank_index(make_question("INP11F001", question_text=text)) == expected


def test_group_and_order_makes_groups_contiguous(make_question):
    q1 = make_question("LETI1F001", informative_text=PASSAGE, question_text="hueco [2]")
    single_a = make_question("LETL1F001")
    q2 = make_question("LETI1F002", informative_text=PASSAGE, question_text="hueco [1]")
    single_b = make_question("LETF1F001")
    q3 = make_question("LETI1F003", informative_text=PASSAGE, question_text="hueco [3]")

    ordered = GroupedQuestionAssembler().group_and_order([q1, single_a, q2, single_b, q3])

    assert [q.id for q in ordered] == ["LETI1F002", "LETI1F001", "LETI1F003", "LETL1F001", "LETF1F001"]


def test_members_without_marker_order_by_creation_time(make_question):
    later = make_question("LETI1F009", informative_text=PASSAGE)
    earlier = make_question("LETI1F001", informative_text=PASSAGE)

    ordered = GroupedQuestionAssembler().group_and_order([later, earlier])

    assert [q.id for q in ordered] == ["LETI1F001", "LETI1F009"]


def test_members_without_marker_or_time_order_by_id(make_question):
    b = make_question("LETI1F002", informative_text=PASSAGE, created_at=None)
    a = make_question("LETI1F001", informative_text=PASSAGE, created_at=None)

    ordered = GroupedQuestionAssembler().group_and_order([b, a])

    assert [q.id for q in ordered] == ["LETI1F001", "LETI1F002"]


def test_collect_groups_drops_groups_with_answered_members(english_questions):
    grouper = GroupedQuestionAssembler(min_group_size=2)
    part1 = [q for q in english_questions if q.topic_code == "P1"]

    groups = grouper.collect_groups(part1, answered=frozenset({"INP11F001"}))

    assert len(groups) == 1
    assert all(q.id != "INP11F001" for q in groups[0].members)


def test_collect_groups_drops_groups_with_blank_gaps(make_question):
    members = [
        make_question("INP11F001", informative_text=PASSAGE, question_text="hueco [1]"),
        make_question("INP11F003", informative_text=PASSAGE, question_text="hueco [3]"),
    ]

    assert GroupedQuestionAssembler().collect_groups(members) == []
    assert len(GroupedQuestionAssembler().collect_groups(members, partial=True)) == 1


def test_collect_groups_enforces_minimum_size(make_question):
    lone = make_question("INP11F001", informative_text="Short passage")

    assert GroupedQuestionAssembler(min_group_size=2).collect_groups([lone]) == []
    assert len(GroupedQuestionAssembler(min_group_size=1).collect_groups([lone])) == 1


@pytest.mark.asyncio
async def test_one_group_per_topic_is_never_reused(english_questions, make_question):
    grouper = GroupedQuestionAssembler()
    shared = [q for q in english_questions if q.topic_code == "P1"][:3]
    candidates = {"P1": shared, "P2": shared}

    chosen = await grouper.select_groups_per_topic(candidates, {"P1": 1, "P2": 1}, rng=RandomSource(5))

    assert len(chosen["P1"]) == 1
    assert chosen["P2"] == []


@pytest.mark.asyncio
async def test_flatten_keeps_groups_contiguous_and_ordered(english_questions):
    grouper = GroupedQuestionAssembler()
    by_topic = {
        f"P{i}": [q for q in english_questions if q.topic_code == f"P{i}"] for i in range(1, 8)
    }
    chosen = await grouper.select_groups_per_topic(by_topic, {code: 1 for code in by_topic}, rng=RandomSource(9))

    flat = grouper.flatten([g for groups in chosen.values() for g in groups], rng=RandomSource(9))

    assert len(flat) == 21
    for start in range(0, 21, 3):
        triple = flat[start:start + 3]
        assert len({group_key(q) for q in triple}) == 1
        assert [blank_index(q) for q in triple] == [1, 2, 3]


def test_detect_group_ranges_is_one_based_and_skips_english(make_question, english_questions):
    questions = [
        make_question("LETL1F001"),
        make_question("LETI1F001", informative_text=PASSAGE),
        make_question("LETI1F002", informative_text=PASSAGE),
        make_question("LETI1F003", informative_text=PASSAGE),
        make_question("LETF1F001"),
    ]

    assert detect_group_ranges(questions) == ((2, 4),)
    assert detect_group_ranges(english_questions[:3]) == ()


def test_detect_group_ranges_joins_one_passage_across_levels(make_question):
    questions = [
        make_question("LETI1F001", informative_text=PASSAGE),
        make_question("LETI1M002", informative_text=PASSAGE),
        make_question("LETI0D003", informative_text=PASSAGE),
    ]

    assert detect_group_ranges(questions) == ((1, 3),)


# ============================================================================
# Completing groups from their full member list
# ============================================================================


def _fetcher(bank, calls=None):
    async def fetch(group):
        if calls is not None:
            calls.append(group.key)
        return [q for q in bank if group_key(q) == group.key]

    return fetch


@pytest.mark.asyncio
async def test_cut_group_is_completed_from_its_members(english_questions):
    grouper = GroupedQuestionAssembler()
    part1 = [q for q in english_questions if q.topic_code == "P1"]
    # Two of the three members of the first passage made it into the candidates
    candidates = {"P1": part1[:2]}

    chosen = await grouper.select_groups_per_topic(
        candidates, {"P1": 1}, rng=RandomSource(3), fetch_members=_fetcher(part1)
    )

    assert [blank_index(q) for q in chosen["P1"][0].members] == [1, 2, 3]


@pytest.mark.asyncio
async def test_group_with_answered_member_outside_candidates_is_dropped(english_questions):
    grouper = GroupedQuestionAssembler()
    part1 = [q for q in english_questions if q.topic_code == "P1"]
    answered = frozenset({"INP11F003"})
    candidates = {"P1": [q for q in part1 if q.id not in answered]}

    chosen = await grouper.select_groups_per_topic(
        candidates, {"P1": 2}, answered, RandomSource(3), fetch_members=_fetcher(part1)
    )

    assert len(chosen["P1"]) == 1
    assert {q.id for q in chosen["P1"][0].members} == {"INP11F011", "INP11F012", "INP11F013"}


@pytest.mark.asyncio
async def test_failed_member_load_drops_the_group(english_questions):
    grouper = GroupedQuestionAssembler()
    part1 = [q for q in english_questions if q.topic_code == "P1"]

    async def unavailable(group):
        return None

    chosen = await grouper.select_groups_per_topic(
        {"P1": part1}, {"P1": 1}, rng=RandomSource(3), fetch_members=unavailable
    )

    assert chosen["P1"] == []


@pytest.mark.asyncio
async def test_members_are_loaded_only_for_groups_tried(english_questions):
    grouper = GroupedQuestionAssembler()
    part1 = [q for q in english_questions if q.topic_code == "P1"]
    calls = []

    await grouper.select_groups_per_topic(
        {"P1": part1}, {"P1": 1}, rng=RandomSource(3), fetch_members=_fetcher(part1, calls)
    )

    assert len(calls) == 1
