"""
quizgen - adaptive quiz assembly engine.

Builds topic-balanced, phase-aware quizzes from a question bank: cross-phase
deduplication, cascading filter fallback, passage-group cohesion and
weakness-weighted phase-2 distributions.
"""

__version__ = "0.1.0"

# The engine is loaded first: the catalog depends on its models and errors.
from quizgen.selection import QuizAssembler, QuizGenerationResult, build_assembler  # noqa: E402

__all__ = ["__version__", "QuizAssembler", "QuizGenerationResult", "build_assembler"]
