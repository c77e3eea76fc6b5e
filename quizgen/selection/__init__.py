"""
Question selection and quiz assembly engine.
"""

from quizgen.selection.answered_tracker import AnsweredQuestionTracker
from quizgen.selection.assembler import AssemblerConfig, QuizAssembler, build_assembler
from quizgen.selection.authorization import RecordPhaseAuthorization
from quizgen.selection.errors import (
    ConfigurationMissing,
    DuplicateAttempt,
    HistoryUnavailable,
    InsufficientQuestions,
    MalformedExamRecord,
    QuizGenerationError,
    RepositoryQueryFailure,
    Unauthorized,
)
from quizgen.selection.grouping import GroupedQuestionAssembler, detect_group_ranges
from quizgen.selection.interfaces import (
    AccessDecision,
    AnsweredExamStore,
    PerformanceAnalysis,
    PhaseAuthorization,
    QuestionRepository,
    WeaknessProfile,
)
from quizgen.selection.models import (
    GeneratedQuiz,
    Phase,
    PersonalizedDistribution,
    Question,
    QuestionFilters,
    QuizGenerationResult,
    TopicDistributionRule,
)
from quizgen.selection.performance import Phase1PerformanceAnalysis
from quizgen.selection.personalization import PersonalizationConfig, PersonalizationEngine
from quizgen.selection.randomness import RandomSource
from quizgen.selection.topic_balancer import BalancerConfig, TopicBalancer

__all__ = [
    # Engine
    "QuizAssembler",
    "AssemblerConfig",
    "build_assembler",
    "AnsweredQuestionTracker",
    "TopicBalancer",
    "BalancerConfig",
    "GroupedQuestionAssembler",
    "detect_group_ranges",
    "PersonalizationEngine",
    "PersonalizationConfig",
    "Phase1PerformanceAnalysis",
    "RecordPhaseAuthorization",
    "RandomSource",
    # Interfaces
    "QuestionRepository",
    "AnsweredExamStore",
    "PhaseAuthorization",
    "PerformanceAnalysis",
    "AccessDecision",
    "WeaknessProfile",
    # Models
    "Phase",
    "Question",
    "QuestionFilters",
    "TopicDistributionRule",
    "PersonalizedDistribution",
    "GeneratedQuiz",
    "QuizGenerationResult",
    # Errors
    "QuizGenerationError",
    "ConfigurationMissing",
    "DuplicateAttempt",
    "Unauthorized",
    "InsufficientQuestions",
    "RepositoryQueryFailure",
    "HistoryUnavailable",
    "MalformedExamRecord",
]
