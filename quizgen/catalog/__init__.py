"""
Static catalog: subjects, topics, grades, levels and quiz configurations.
"""

from quizgen.catalog.quiz_configs import (
    PHASE_DESCRIPTIONS,
    PHASE_INSTRUCTIONS,
    PHASE_TITLES,
    QuizConfig,
    QuizConfigTable,
)
from quizgen.catalog.subjects import (
    DIFFICULTY_LEVELS,
    GRADE_CODE_TO_NAME,
    GRADE_MAPPING,
    SUBJECTS_CONFIG,
    DecodedQuestionCode,
    Subject,
    SubjectTopicCatalog,
    Topic,
)

__all__ = [
    "SubjectTopicCatalog",
    "Subject",
    "Topic",
    "DecodedQuestionCode",
    "SUBJECTS_CONFIG",
    "GRADE_MAPPING",
    "GRADE_CODE_TO_NAME",
    "DIFFICULTY_LEVELS",
    "QuizConfig",
    "QuizConfigTable",
    "PHASE_TITLES",
    "PHASE_DESCRIPTIONS",
    "PHASE_INSTRUCTIONS",
]
