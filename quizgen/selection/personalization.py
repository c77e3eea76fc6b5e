"""
Personalization Engine.

Turns a phase-1 weakness profile into a phase-2 per-topic question count.

- Proportional mode (weights known for every topic): `weakness_share` of the
  total goes to weakness topics proportionally to their weights, the rest is
  split evenly over the remaining topics.
- Two-tier mode (only the primary weakness known): the primary weakness gets
  `primary_weakness_share` of the total, the rest is split evenly.

In both modes the primary weakness ends up with strictly more questions than
any other topic whenever the total allows it. Without a profile the engine
returns None and the caller uses the standard distribution.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from loguru import logger

from quizgen.catalog.subjects import Subject, SubjectTopicCatalog
from quizgen.selection.interfaces import PerformanceAnalysis, WeaknessProfile
from quizgen.selection.models import PersonalizedDistribution


@dataclass
class PersonalizationConfig:
    weakness_share: float = 0.5
    primary_weakness_share: float = 0.5


def split_even(codes: Sequence[str], total: int) -> dict[str, int]:
    """Integer split; the remainder goes one each to the first codes."""
    if not codes:
        return {}
    base, remainder = divmod(total, len(codes))
    return {code: base + (1 if i < remainder else 0) for i, code in enumerate(codes)}


def split_weighted(codes: Sequence[str], weights: Mapping[str, float], total: int) -> dict[str, int]:
    """Floor of the proportional share; the remainder goes to the first code."""
    if not codes:
        return {}
    weight_sum = sum(max(weights.get(c, 0.0), 0.0) for c in codes)
    if weight_sum <= 0:
        return split_even(codes, total)

    counts = {
        code: math.floor(total * max(weights.get(code, 0.0), 0.0) / weight_sum) for code in codes
    }
    counts[codes[0]] += total - sum(counts.values())
    return counts


def ensure_primary_dominates(counts: dict[str, int], primary: str) -> None:
    """Move single items from the largest other topic until primary is strictly largest."""
    while True:
        others = {code: n for code, n in counts.items() if code != primary}
        if not others:
            return
        largest = max(others.values())
        if counts[primary] > largest or largest == 0:
            return
        donor = [code for code, n in others.items() if n == largest][-1]
        counts[donor] -= 1
        counts[primary] += 1


class PersonalizationEngine:
    """
    Weakness-weighted distribution for phase 2.

    Example:
        engine = PersonalizationEngine(Phase1PerformanceAnalysis(store))
        distribution = await engine.distribute("student-1", "Matemáticas", 20)
        rule = distribution.to_rule() if distribution else config.topic_rule
    """

    def __init__(
        self,
        analysis: PerformanceAnalysis,
        catalog: Optional[SubjectTopicCatalog] = None,
        config: Optional[PersonalizationConfig] = None,
    ):
        self.analysis = analysis
        self.catalog = catalog or SubjectTopicCatalog()
        self.config = config or PersonalizationConfig()

    async def distribute(
        self,
        student_id: str,
        subject: str,
        total_count: int,
    ) -> Optional[PersonalizedDistribution]:
        """
        Per-topic counts skewed toward the student's weak topics.

        Args:
            student_id: Student identifier
            subject: Subject name
            total_count: Questions to distribute

        Returns:
            PersonalizedDistribution, or None to use the standard distribution
        """
        entry = self.catalog.get_subject(subject)
        if entry is None or total_count <= 0:
            return None

        try:
            profile = await self.analysis.get_weakness_profile(student_id, subject)
        except Exception as e:  # Analysis is optional; the plain rule still works
            logger.warning(f"Performance analysis unavailable for {student_id}/{subject}: {e}")
            return None

        if profile is None:
            logger.info(f"No weakness profile for {student_id}/{subject}, using standard distribution")
            return None

        weights = self._resolve_weights(entry, profile)
        primary = self._resolve_code(entry, profile.primary_weakness)

        if weights and set(entry.topic_codes) <= set(weights):
            weaknesses = [
                code for code in (self._resolve_code(entry, w) for w in profile.weaknesses) if code
            ]
            distribution = self.proportional(entry.topic_codes, weights, weaknesses, primary, total_count)
        elif primary:
            distribution = self.two_tier(entry.topic_codes, primary, total_count)
        else:
            logger.info(f"Weakness profile for {student_id}/{subject} is incomplete, using standard distribution")
            return None

        logger.info(
            f"Personalized {subject} for {student_id} ({distribution.mode}): "
            f"{dict(distribution.counts)}, primary={distribution.primary_weakness}"
        )
        return distribution

    def proportional(
        self,
        topic_codes: Sequence[str],
        weights: Mapping[str, float],
        weaknesses: Sequence[str],
        primary: Optional[str],
        total: int,
    ) -> PersonalizedDistribution:
        weak = [code for code in weaknesses if code in topic_codes]
        if primary and primary in topic_codes and primary not in weak:
            weak.insert(0, primary)
        if not weak:
            weak = sorted(
                (c for c in topic_codes if weights.get(c, 0.0) > 0),
                key=lambda c: weights[c],
                reverse=True,
            )
        if primary is None and weak:
            primary = weak[0]
        elif primary in weak:
            weak.remove(primary)
            weak.insert(0, primary)

        others = [code for code in topic_codes if code not in weak]
        if not weak:
            weak_total = 0
        elif not others:
            weak_total = total
        else:
            weak_total = math.floor(total * self.config.weakness_share)

        weakness_counts = split_weighted(weak, weights, weak_total)
        strength_counts = split_even(others, total - weak_total)

        counts = {code: weakness_counts.get(code, strength_counts.get(code, 0)) for code in topic_codes}
        if primary:
            ensure_primary_dominates(counts, primary)

        return PersonalizedDistribution(
            mode="proportional",
            total=total,
            counts=counts,
            primary_weakness=primary,
            primary_count=counts.get(primary, 0) if primary else 0,
            other_topics=tuple(code for code in topic_codes if code != primary),
            weakness_counts={code: counts[code] for code in weak},
            strength_counts={code: counts[code] for code in others},
        )

    def two_tier(self, topic_codes: Sequence[str], primary: str, total: int) -> PersonalizedDistribution:
        others = [code for code in topic_codes if code != primary]
        primary_count = total if not others else max(1, math.floor(total * self.config.primary_weakness_share))

        counts = {primary: primary_count, **split_even(others, total - primary_count)}
        counts = {code: counts.get(code, 0) for code in topic_codes}
        ensure_primary_dominates(counts, primary)

        return PersonalizedDistribution(
            mode="two_tier",
            total=total,
            counts=counts,
            primary_weakness=primary,
            primary_count=counts[primary],
            other_topics=tuple(others),
            weakness_counts={primary: counts[primary]},
            strength_counts={code: counts[code] for code in others},
        )

    @staticmethod
    def _resolve_code(entry: Subject, code_or_name: Optional[str]) -> Optional[str]:
        if not code_or_name:
            return None
        topic = entry.get_topic(code_or_name)
        return topic.code if topic else None

    def _resolve_weights(self, entry: Subject, profile: WeaknessProfile) -> dict[str, float]:
        weights: dict[str, float] = {}
        for key, weight in profile.weights.items():
            code = self._resolve_code(entry, key)
            if code is None:
                logger.debug(f"Ignoring weight for unknown {entry.name} topic {key!r}")
                continue
            weights[code] = float(weight)
        return weights
