# SQLAlchemy models
from .base import Base
from .exam_result import ExamResultRecord
from .phase_grant import PhaseGrantRecord
from .question import QuestionRecord

__all__ = [
    "Base",
    "QuestionRecord",
    "ExamResultRecord",
    "PhaseGrantRecord",
]
