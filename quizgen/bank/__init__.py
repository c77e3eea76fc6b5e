"""
In-memory question bank and exam history adapters.
"""

from quizgen.bank.memory import (
    InMemoryExamStore,
    InMemoryQuestionRepository,
    StaticPerformanceAnalysis,
)

__all__ = [
    "InMemoryQuestionRepository",
    "InMemoryExamStore",
    "StaticPerformanceAnalysis",
]
