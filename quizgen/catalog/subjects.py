"""
Subject and topic catalog for the question bank.

Defines every subject served by the platform, its two-letter code and the
topics (curricular axes) used as the unit of balanced sampling, plus the
grade and difficulty-level code tables.

Question codes follow the layout <SUBJECT><TOPIC><GRADE><LEVEL><SERIAL>:

    MAAL1F001
    - MA: Matemáticas
    - AL: Álgebra y Cálculo
    - 1: Undécimo
    - F: Fácil
    - 001: first question of that combination
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Topic:
    """A curricular axis inside a subject."""
    name: str
    code: str


@dataclass(frozen=True)
class Subject:
    """A subject with its ordered topic list."""
    name: str
    code: str
    topics: tuple[Topic, ...] = field(default_factory=tuple)

    @property
    def topic_codes(self) -> list[str]:
        return [t.code for t in self.topics]

    def get_topic(self, code_or_name: str) -> Optional[Topic]:
        """Find a topic by code or by name."""
        for topic in self.topics:
            if topic.code == code_or_name or topic.name == code_or_name:
                return topic
        return None


@dataclass(frozen=True)
class DifficultyLevel:
    name: str
    code: str


# 6 = Sexto ... 9 = Noveno, 0 = Décimo, 1 = Undécimo
GRADE_MAPPING: dict[str, str] = {
    "Sexto": "6",
    "Séptimo": "7",
    "Octavo": "8",
    "Noveno": "9",
    "Décimo": "0",
    "Undécimo": "1",
}

GRADE_CODE_TO_NAME: dict[str, str] = {code: name for name, code in GRADE_MAPPING.items()}

DIFFICULTY_LEVELS: tuple[DifficultyLevel, ...] = (
    DifficultyLevel("Fácil", "F"),
    DifficultyLevel("Medio", "M"),
    DifficultyLevel("Difícil", "D"),
)


def _subject(name: str, code: str, *topics: tuple[str, str]) -> Subject:
    return Subject(name=name, code=code, topics=tuple(Topic(n, c) for n, c in topics))


SUBJECTS_CONFIG: tuple[Subject, ...] = (
    _subject(
        "Matemáticas", "MA",
        ("Álgebra y Cálculo", "AL"),
        ("Geometría", "GE"),
        ("Estadistica", "ES"),
    ),
    _subject(
        "Lenguaje", "LE",
        ("Textos literarios", "TL"),
        ("Textos informativos", "TI"),
        ("Textos filosoficos", "TF"),
    ),
    _subject(
        "Ciencias Sociales", "CS",
        ("El espacio, el territorio, el ambiente y la población", "ET"),
        ("El poder, la economia y las organicaciones sociales", "PE"),
        ("El tiempo y las culturas", "TC"),
        ("Competencias ciudadanas", "CC"),
    ),
    _subject(
        "Biologia", "BI",
        ("Las células", "LC"),
        ("Los organismos", "LO"),
        ("Los ecosistemas", "LE"),
    ),
    _subject(
        "Quimica", "QU",
        ("Aspectos analíticos de sustancias", "AS"),
        ("Aspecto físico-químicos de sustancias", "AQ"),
        ("Aspectos analíticos de mezclas", "AM"),
        ("Aspectos físico-químicos de mezclas", "AF"),
    ),
    _subject(
        "Física", "FI",
        ("Mecanica clasica", "MC"),
        ("termodinamica", "TD"),
        ("Eventos ondulatorios", "EO"),
        ("Eventos electromagneticos", "EE"),
    ),
    _subject(
        "Inglés", "IN",
        ("Parte 1", "P1"),
        ("Parte 2", "P2"),
        ("Parte 3", "P3"),
        ("Parte 4", "P4"),
        ("Parte 5", "P5"),
        ("Parte 6", "P6"),
        ("Parte 7", "P7"),
    ),
)

_SERIAL_RE = re.compile(r"^\d{3}$")


@dataclass(frozen=True)
class DecodedQuestionCode:
    """Components of a question code."""
    subject: Subject
    topic: Topic
    grade: str
    grade_name: str
    level: str
    level_name: str
    serial: int


class SubjectTopicCatalog:
    """
    Static lookup over subjects, topics, grades and levels.

    The catalog is read-only; a custom subject list can be injected for tests.
    """

    def __init__(self, subjects: tuple[Subject, ...] | list[Subject] = SUBJECTS_CONFIG):
        self._subjects = tuple(subjects)
        self._by_name = {s.name: s for s in self._subjects}
        self._by_code = {s.code: s for s in self._subjects}

    @property
    def subjects(self) -> tuple[Subject, ...]:
        return self._subjects

    def get_subject(self, name_or_code: str) -> Optional[Subject]:
        """Find a subject by display name or two-letter code."""
        return self._by_name.get(name_or_code) or self._by_code.get(name_or_code)

    def get_subject_by_code(self, code: str) -> Optional[Subject]:
        return self._by_code.get(code)

    def get_subject_code(self, name: str) -> str:
        """Two-letter code for a subject, 'XX' when unknown."""
        subject = self.get_subject(name)
        return subject.code if subject else "XX"

    def get_topic_by_code(self, subject_code: str, topic_code: str) -> Optional[Topic]:
        subject = self.get_subject_by_code(subject_code)
        if subject is None:
            return None
        return next((t for t in subject.topics if t.code == topic_code), None)

    def topic_code_for(self, subject: str, topic: str) -> Optional[str]:
        """Resolve a topic name or code inside a subject to its code."""
        found = self.get_subject(subject)
        if found is None:
            return None
        match = found.get_topic(topic)
        return match.code if match else None

    @staticmethod
    def grade_name(code: str) -> str:
        return GRADE_CODE_TO_NAME.get(code, code)

    @staticmethod
    def grade_code(name_or_code: str) -> str:
        """Normalize a grade name (e.g. 'Undécimo') or code to its code."""
        if name_or_code in GRADE_CODE_TO_NAME:
            return name_or_code
        return GRADE_MAPPING.get(name_or_code, name_or_code)

    @staticmethod
    def level_code(name_or_code: str) -> Optional[str]:
        for level in DIFFICULTY_LEVELS:
            if name_or_code in (level.name, level.code):
                return level.code
        return None

    @staticmethod
    def level_name(code: str) -> str:
        for level in DIFFICULTY_LEVELS:
            if level.code == code:
                return level.name
        return code

    def validate_question_code(self, code: str) -> bool:
        """Check a 9-character question code against the catalog."""
        if len(code) != 9:
            return False

        subject_code, topic_code = code[0:2], code[2:4]
        grade_code, level_code, serial = code[4], code[5], code[6:9]

        if self.get_topic_by_code(subject_code, topic_code) is None:
            return False
        if grade_code not in GRADE_CODE_TO_NAME:
            return False
        if level_code not in {lvl.code for lvl in DIFFICULTY_LEVELS}:
            return False
        return bool(_SERIAL_RE.match(serial))

    def decode_question_code(self, code: str) -> Optional[DecodedQuestionCode]:
        """Split a question code into its components, None if invalid."""
        if not self.validate_question_code(code):
            return None

        subject = self._by_code[code[0:2]]
        topic = self.get_topic_by_code(subject.code, code[2:4])
        return DecodedQuestionCode(
            subject=subject,
            topic=topic,
            grade=code[4],
            grade_name=self.grade_name(code[4]),
            level=code[5],
            level_name=self.level_name(code[5]),
            serial=int(code[6:9]),
        )
