"""
Quiz configurations per subject and phase.

Each (subject, phase) pair has a question count, a time limit in minutes and
the difficulty level that phase prefers. The topic distribution rule of a
configuration splits the question count evenly over the subject's topics.

English is served by passage groups: its question count is a number of
groups (one per part) and it does not bias by level.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from quizgen.catalog.subjects import SubjectTopicCatalog
from quizgen.selection.errors import ConfigurationMissing
from quizgen.selection.models import Phase, TopicDistributionRule


@dataclass(frozen=True)
class PhaseSetting:
    question_count: int
    time_limit: int
    level: str


@dataclass(frozen=True)
class QuizConfig:
    """Resolved configuration for one subject and phase."""

    subject: str
    subject_code: str
    phase: Phase
    question_count: int
    time_limit: int
    level: str
    level_code: Optional[str]
    topic_rule: TopicDistributionRule
    grade: Optional[str] = None
    grouped: bool = False
    prefer_level: bool = True

    @property
    def preferred_level_code(self) -> Optional[str]:
        return self.level_code if self.prefer_level else None


def _phases(first: tuple[int, int], second: tuple[int, int], third: tuple[int, int]) -> dict[Phase, PhaseSetting]:
    return {
        Phase.FIRST: PhaseSetting(*first, level="Fácil"),
        Phase.SECOND: PhaseSetting(*second, level="Medio"),
        Phase.THIRD: PhaseSetting(*third, level="Difícil"),
    }


# (question_count, time_limit_minutes) per phase
QUIZ_CONFIGURATIONS: dict[str, dict[Phase, PhaseSetting]] = {
    "Matemáticas": _phases((18, 45), (20, 50), (25, 60)),
    "Lenguaje": _phases((15, 40), (18, 45), (22, 55)),
    "Ciencias Sociales": _phases((16, 40), (18, 45), (20, 50)),
    "Biologia": _phases((14, 35), (16, 40), (18, 45)),
    "Quimica": _phases((14, 35), (16, 40), (18, 45)),
    "Física": _phases((14, 35), (16, 40), (18, 45)),
    "Inglés": _phases((7, 30), (7, 35), (7, 40)),
}

# Subjects served one passage group per topic
GROUPED_SUBJECTS: frozenset[str] = frozenset({"Inglés"})

# Subjects that ignore the phase level preference
LEVEL_OPT_OUT_SUBJECTS: frozenset[str] = frozenset({"Inglés"})

PHASE_TITLES: dict[Phase, str] = {
    Phase.FIRST: "Primera Ronda - Evaluación Inicial",
    Phase.SECOND: "Segunda Ronda - Refuerzo",
    Phase.THIRD: "Tercera Ronda - Simulacro ICFES",
}

PHASE_DESCRIPTIONS: dict[Phase, str] = {
    Phase.FIRST: (
        "Evaluación inicial de {subject} para determinar tu nivel actual "
        "y crear un plan de estudio personalizado."
    ),
    Phase.SECOND: "Refuerzo de áreas débiles en {subject} basado en tu rendimiento en la primera ronda.",
    Phase.THIRD: "Simulacro tipo ICFES de {subject} para evaluar tu preparación final.",
}

PHASE_INSTRUCTIONS: dict[Phase, tuple[str, ...]] = {
    Phase.FIRST: (
        "Esta es la primera ronda de evaluación para determinar tu nivel actual",
        "Responde con calma, no hay prisa - el objetivo es conocer tu estado",
        "Si no sabes una respuesta, es mejor dejarla en blanco que adivinar",
        "Las preguntas están diseñadas para evaluar tus conocimientos base",
        "Esta evaluación ayudará a crear tu plan de estudio personalizado",
    ),
    Phase.SECOND: (
        "Esta es la segunda ronda - refuerzo de áreas débiles",
        "Las preguntas se enfocan en los temas que necesitas mejorar",
        "Usa todo el tiempo disponible para pensar bien tus respuestas",
        "Esta fase te ayudará a consolidar tus conocimientos",
        "Las preguntas están adaptadas a tu nivel de la primera ronda",
    ),
    Phase.THIRD: (
        "Esta es la tercera ronda - simulacro tipo ICFES",
        "Simula las condiciones reales del examen ICFES",
        "Administra bien tu tiempo - es crucial para el éxito",
        "Lee cuidadosamente cada pregunta antes de responder",
        "Esta es tu oportunidad de demostrar todo lo aprendido",
    ),
}


class QuizConfigTable:
    """Lookup of QuizConfig by (subject, phase)."""

    def __init__(
        self,
        catalog: Optional[SubjectTopicCatalog] = None,
        configurations: Optional[dict[str, dict[Phase, PhaseSetting]]] = None,
        grouped_subjects: frozenset[str] = GROUPED_SUBJECTS,
        level_opt_out: frozenset[str] = LEVEL_OPT_OUT_SUBJECTS,
    ):
        self.catalog = catalog or SubjectTopicCatalog()
        self._configurations = configurations if configurations is not None else QUIZ_CONFIGURATIONS
        self._grouped = grouped_subjects
        self._level_opt_out = level_opt_out

    def find(self, subject: str, phase: Phase | str, grade: Optional[str] = None) -> Optional[QuizConfig]:
        """Resolve a configuration, None when the pair is not configured."""
        if not _is_phase(phase):
            return None
        phase = Phase.parse(phase)
        setting = self._configurations.get(subject, {}).get(phase)
        if setting is None:
            return None

        subject_entry = self.catalog.get_subject(subject)
        topic_codes = subject_entry.topic_codes if subject_entry else []
        return QuizConfig(
            subject=subject,
            subject_code=subject_entry.code if subject_entry else "XX",
            phase=phase,
            question_count=setting.question_count,
            time_limit=setting.time_limit,
            level=setting.level,
            level_code=self.catalog.level_code(setting.level),
            topic_rule=TopicDistributionRule.even(topic_codes, setting.question_count),
            grade=grade,
            grouped=subject in self._grouped,
            prefer_level=subject not in self._level_opt_out,
        )

    def get(self, subject: str, phase: Phase | str, grade: Optional[str] = None) -> QuizConfig:
        """Resolve a configuration or raise ConfigurationMissing."""
        config = self.find(subject, phase, grade)
        if config is None:
            raise ConfigurationMissing(subject, getattr(phase, "value", str(phase)))
        return config

    def has_configuration(self, subject: str, phase: Phase | str) -> bool:
        if not _is_phase(phase):
            return False
        return Phase.parse(phase) in self._configurations.get(subject, {})

    def available_subjects(self) -> list[str]:
        return list(self._configurations.keys())

    def available_phases(self, subject: str) -> list[Phase]:
        return list(self._configurations.get(subject, {}).keys())


def _is_phase(value: Phase | str) -> bool:
    try:
        Phase.parse(value)
    except ValueError:
        return False
    return True
