"""
Domain models for quiz assembly.

Questions are immutable once fetched from the repository; the engine only
reorders references to them. Everything produced by a generation request
(distributions, the quiz itself) is created once and never mutated afterwards.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Mapping, Optional


class Phase(str, Enum):
    """The three sequential exam rounds of a subject."""

    FIRST = "first"
    SECOND = "second"
    THIRD = "third"

    @property
    def index(self) -> int:
        return _PHASE_ORDER.index(self)

    @property
    def code(self) -> str:
        """Single-digit code used in quiz identifiers."""
        return str(self.index + 1)

    @property
    def previous(self) -> Optional["Phase"]:
        return _PHASE_ORDER[self.index - 1] if self.index > 0 else None

    def earlier(self) -> list["Phase"]:
        """Phases strictly before this one."""
        return list(_PHASE_ORDER[: self.index])

    @classmethod
    def parse(cls, value: "Phase | str | int") -> "Phase":
        """Accept 'first'/'second'/'third' or 1/2/3."""
        if isinstance(value, Phase):
            return value
        text = str(value).strip().lower()
        if text in {"1", "2", "3"}:
            return _PHASE_ORDER[int(text) - 1]
        return cls(text)


_PHASE_ORDER: tuple[Phase, ...] = (Phase.FIRST, Phase.SECOND, Phase.THIRD)


def normalize_question_id(value: Any) -> str:
    """Numeric and string identifiers of the same question must collide."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


@dataclass(frozen=True)
class QuestionOption:
    id: str
    text: Optional[str] = None
    image_url: Optional[str] = None
    is_correct: bool = False


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        # epoch milliseconds
        return datetime.fromtimestamp(value / 1000)
    return datetime.fromisoformat(str(value))


@dataclass(frozen=True)
class Question:
    """A multiple-choice item from the question bank."""

    id: str
    code: str
    subject: str
    subject_code: str
    topic: str
    topic_code: str
    grade: str
    level: str
    level_code: str
    question_text: str = ""
    options: tuple[QuestionOption, ...] = ()
    informative_text: Optional[str] = None
    informative_images: tuple[str, ...] = ()
    question_images: tuple[str, ...] = ()
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None

    @property
    def has_passage(self) -> bool:
        """True when the item carries shared informative text."""
        return bool(self.informative_text and self.informative_text.strip())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Question":
        """Build a question from a bank record (snake_case or camelCase keys)."""
        raw_id = _pick(data, "id", "code")
        if raw_id is None:
            raise ValueError("question record has neither 'id' nor 'code'")

        options = tuple(
            QuestionOption(
                id=str(_pick(opt, "id", default="")),
                text=_pick(opt, "text"),
                image_url=_pick(opt, "image_url", "imageUrl"),
                is_correct=bool(_pick(opt, "is_correct", "isCorrect", default=False)),
            )
            for opt in data.get("options") or ()
        )

        return cls(
            id=normalize_question_id(raw_id),
            code=str(_pick(data, "code", default=raw_id)),
            subject=str(_pick(data, "subject", default="")),
            subject_code=str(_pick(data, "subject_code", "subjectCode", default="")),
            topic=str(_pick(data, "topic", default="")),
            topic_code=str(_pick(data, "topic_code", "topicCode", default="")),
            grade=str(_pick(data, "grade", default="")),
            level=str(_pick(data, "level", default="")),
            level_code=str(_pick(data, "level_code", "levelCode", default="")),
            question_text=str(_pick(data, "question_text", "questionText", default="")),
            options=options,
            informative_text=_pick(data, "informative_text", "informativeText"),
            informative_images=tuple(_pick(data, "informative_images", "informativeImages", default=())),
            question_images=tuple(_pick(data, "question_images", "questionImages", default=())),
            created_at=_parse_datetime(_pick(data, "created_at", "createdAt")),
            created_by=_pick(data, "created_by", "createdBy"),
        )


@dataclass(frozen=True)
class QuestionFilters:
    """
    Combinable filters understood by every QuestionRepository.

    Every field except `exclude_ids` is an equality filter. `exclude_ids`
    holds question ids or codes that must not come back, so repeated
    queries reach past rows already seen.
    """

    subject: Optional[str] = None
    subject_code: Optional[str] = None
    topic: Optional[str] = None
    topic_code: Optional[str] = None
    grade: Optional[str] = None
    level: Optional[str] = None
    level_code: Optional[str] = None
    informative_text: Optional[str] = None
    exclude_ids: frozenset[str] = frozenset()

    def as_dict(self) -> dict[str, str]:
        """Only the equality filters that are set."""
        return {
            k: v for k, v in asdict(self).items()
            if v is not None and k != "exclude_ids"
        }

    def matches(self, question: Question) -> bool:
        if question.id in self.exclude_ids or question.code in self.exclude_ids:
            return False
        return all(getattr(question, key) == value for key, value in self.as_dict().items())

    def describe(self) -> str:
        parts = [
            f"{k}={'<passage>' if k == 'informative_text' else v}"
            for k, v in self.as_dict().items()
        ]
        if self.exclude_ids:
            parts.append(f"exclude={len(self.exclude_ids)}")
        return ", ".join(parts) or "<no filters>"


@dataclass(frozen=True)
class GroupKey:
    """
    Composite identity of a passage group.

    The passage is stored as a hash of its whitespace-normalized text so keys
    stay small and separator-free.
    """

    passage_hash: str
    topic_code: str
    grade: str
    level_code: str
    images: tuple[str, ...] = ()


@dataclass(frozen=True)
class TopicDistributionRule:
    """Total target count plus the per-topic target counts (topic code -> count)."""

    total: int
    per_topic: Mapping[str, int] = field(default_factory=dict)

    @property
    def topic_codes(self) -> list[str]:
        return list(self.per_topic.keys())

    @classmethod
    def even(cls, topic_codes: list[str], total: int) -> "TopicDistributionRule":
        """Split total evenly; the remainder goes to the first topics."""
        if not topic_codes:
            return cls(total=total, per_topic={})
        base, remainder = divmod(total, len(topic_codes))
        per_topic = {
            code: base + (1 if i < remainder else 0) for i, code in enumerate(topic_codes)
        }
        return cls(total=total, per_topic=per_topic)


@dataclass(frozen=True)
class PersonalizedDistribution:
    """
    Phase-2 per-topic allocation skewed toward weak topics.

    mode 'proportional': counts cover weakness and strength topics.
    mode 'two_tier': the primary weakness gets a larger block and the other
    topics share the remainder evenly.
    """

    mode: Literal["proportional", "two_tier"]
    total: int
    counts: Mapping[str, int]
    primary_weakness: Optional[str]
    primary_count: int
    other_topics: tuple[str, ...] = ()
    weakness_counts: Mapping[str, int] = field(default_factory=dict)
    strength_counts: Mapping[str, int] = field(default_factory=dict)

    def to_rule(self) -> TopicDistributionRule:
        return TopicDistributionRule(
            total=self.total,
            per_topic={code: count for code, count in self.counts.items() if count > 0},
        )


@dataclass(frozen=True)
class GeneratedQuiz:
    """The assembled quiz handed to the exam-taking UI."""

    id: str
    title: str
    description: str
    subject: str
    subject_code: str
    topic_codes: tuple[str, ...]
    phase: Phase
    questions: tuple[Question, ...]
    time_limit: int
    total_questions: int
    instructions: tuple[str, ...]
    created_at: datetime
    group_ranges: tuple[tuple[int, int], ...] = ()

    @property
    def question_ids(self) -> list[str]:
        return [q.id for q in self.questions]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "subject": self.subject,
            "subjectCode": self.subject_code,
            "topicCodes": list(self.topic_codes),
            "phase": self.phase.value,
            "questionIds": self.question_ids,
            "timeLimit": self.time_limit,
            "totalQuestions": self.total_questions,
            "instructions": list(self.instructions),
            "createdAt": self.created_at.isoformat(),
            "groupRanges": [list(r) for r in self.group_ranges],
        }


@dataclass
class QuizGenerationResult:
    """Outcome of a generation request: the quiz plus how far it fell short."""

    quiz: GeneratedQuiz
    target_count: int
    shortfall: int = 0
    topic_counts: dict[str, int] = field(default_factory=dict)
    personalized: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.shortfall == 0
