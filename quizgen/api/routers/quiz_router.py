"""
Quiz router.

Endpoints for:
- Quiz generation
- Quiz configuration listing (per subject and phase)
- Question code decoding
"""
from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any, Callable, Dict, List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from quizgen.catalog import QuizConfigTable, SubjectTopicCatalog
from quizgen.selection.answered_tracker import AnsweredQuestionTracker
from quizgen.selection.assembler import QuizAssembler, build_assembler
from quizgen.selection.errors import (
    ConfigurationMissing,
    DuplicateAttempt,
    InsufficientQuestions,
    MalformedExamRecord,
    QuizGenerationError,
    RepositoryQueryFailure,
    Unauthorized,
)
from quizgen.selection.interfaces import AnsweredExamStore, PhaseAuthorization, QuestionRepository
from quizgen.selection.models import GeneratedQuiz, Phase, QuizGenerationResult

router = APIRouter()

_catalog = SubjectTopicCatalog()
_config_table = QuizConfigTable(_catalog)

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def get_session_scope() -> SessionScope:
    """Dependency: session factory shared by the SQL adapters."""
    from quizgen.db.database import async_session_scope

    return async_session_scope


def get_question_repository(session_scope: SessionScope = Depends(get_session_scope)) -> QuestionRepository:
    from quizgen.db.repositories import SqlQuestionRepository

    return SqlQuestionRepository(session_scope)


def get_exam_store(session_scope: SessionScope = Depends(get_session_scope)) -> AnsweredExamStore:
    from quizgen.db.repositories import SqlExamStore

    return SqlExamStore(session_scope)


def get_phase_authorization(
    store: AnsweredExamStore = Depends(get_exam_store),
    session_scope: SessionScope = Depends(get_session_scope),
) -> PhaseAuthorization:
    """Dependency: grants from `phase_authorizations`, completions from the exam history."""
    from quizgen.db.repositories import SqlPhaseAuthorization

    return SqlPhaseAuthorization(AnsweredQuestionTracker(store), _config_table, session_scope)


def get_assembler(
    repository: QuestionRepository = Depends(get_question_repository),
    store: AnsweredExamStore = Depends(get_exam_store),
    authorization: PhaseAuthorization = Depends(get_phase_authorization),
) -> QuizAssembler:
    """Dependency: assembler wired to the question bank, exam history and phase grants."""
    return build_assembler(repository, store, authorization)


# ========================================
# Request/Response Models
# ========================================


class GenerateQuizRequest(BaseModel):
    """Request model for generating a quiz."""

    subject: str = Field(..., description="Subject name, e.g. 'Matemáticas'")
    phase: str = Field(..., description="Phase: first, second, third (or 1-3)")
    grade: Optional[str] = Field(None, description="Grade name or code (e.g. 'Undécimo' or '1')")
    student_id: Optional[str] = Field(None, description="Student for deduplication and personalization")
    grade_id: Optional[str] = Field(None, description="Grade group used for phase gating")
    seed: Optional[str] = Field(None, description="Seed for reproducible selection")
    require_complete: bool = Field(False, description="Fail instead of returning a partial quiz")


class QuizQuestionResponse(BaseModel):
    """A question reference inside a generated quiz."""

    id: str
    code: str
    topic_code: str
    grade: str
    level_code: str
    question_text: str
    has_passage: bool


class GeneratedQuizResponse(BaseModel):
    """Response model for a generated quiz."""

    id: str
    title: str
    description: str
    subject: str
    subject_code: str
    phase: str
    time_limit: int
    total_questions: int
    target_count: int
    shortfall: int
    is_complete: bool
    personalized: bool
    topic_counts: Dict[str, int]
    group_ranges: List[List[int]]
    instructions: List[str]
    warnings: List[str]
    created_at: datetime
    questions: List[QuizQuestionResponse]


class QuizConfigResponse(BaseModel):
    """Response model for a quiz configuration."""

    subject: str
    subject_code: str
    phase: str
    question_count: int
    time_limit: int
    level: str
    grouped: bool
    topic_counts: Dict[str, int]


class DecodedCodeResponse(BaseModel):
    """Response model for a decoded question code."""

    code: str
    subject: str
    topic: str
    grade: str
    grade_name: str
    level: str
    level_name: str
    serial: int


def _quiz_response(result: QuizGenerationResult) -> GeneratedQuizResponse:
    quiz: GeneratedQuiz = result.quiz
    return GeneratedQuizResponse(
        id=quiz.id,
        title=quiz.title,
        description=quiz.description,
        subject=quiz.subject,
        subject_code=quiz.subject_code,
        phase=quiz.phase.value,
        time_limit=quiz.time_limit,
        total_questions=quiz.total_questions,
        target_count=result.target_count,
        shortfall=result.shortfall,
        is_complete=result.is_complete,
        personalized=result.personalized,
        topic_counts=result.topic_counts,
        group_ranges=[list(r) for r in quiz.group_ranges],
        instructions=list(quiz.instructions),
        warnings=result.warnings,
        created_at=quiz.created_at,
        questions=[
            QuizQuestionResponse(
                id=q.id,
                code=q.code,
                topic_code=q.topic_code,
                grade=q.grade,
                level_code=q.level_code,
                question_text=q.question_text,
                has_passage=q.has_passage,
            )
            for q in quiz.questions
        ],
    )


def _raise_http(exc: QuizGenerationError) -> NoReturn:
    """Map the generation error taxonomy onto HTTP status codes."""
    if isinstance(exc, ConfigurationMissing):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, DuplicateAttempt):
        raise HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, Unauthorized):
        raise HTTPException(status_code=403, detail=exc.reason)
    if isinstance(exc, InsufficientQuestions):
        detail: Dict[str, Any] = {
            "message": str(exc),
            "target": exc.target,
            "found": exc.found,
            "shortfall": exc.shortfall,
        }
        raise HTTPException(status_code=422, detail=detail)
    if isinstance(exc, RepositoryQueryFailure):
        raise HTTPException(status_code=503, detail=str(exc))
    if isinstance(exc, MalformedExamRecord):
        raise HTTPException(status_code=500, detail=str(exc))
    raise HTTPException(status_code=500, detail=str(exc))


# ========================================
# Quiz Generation
# ========================================


@router.post(
    "/generate",
    response_model=GeneratedQuizResponse,
    summary="Generate a quiz",
)
async def generate_quiz(
    request: GenerateQuizRequest,
    assembler: QuizAssembler = Depends(get_assembler),
) -> GeneratedQuizResponse:
    """
    Generate a topic-balanced quiz for a subject and phase.

    A partial quiz (fewer questions than configured) is returned with
    `is_complete=false` unless `require_complete` is set.
    """
    logger.info(f"Quiz requested: {request.subject} / {request.phase} (student {request.student_id})")

    try:
        result = await assembler.generate(
            request.subject,
            request.phase,
            grade=request.grade,
            student_id=request.student_id,
            grade_id=request.grade_id,
            seed=request.seed,
            require_complete=request.require_complete,
        )
    except QuizGenerationError as exc:
        logger.warning(f"Quiz generation failed: {exc}")
        _raise_http(exc)
    except Exception as exc:
        logger.exception("Failed to generate quiz")
        raise HTTPException(status_code=500, detail=str(exc))

    return _quiz_response(result)


# ========================================
# Configuration
# ========================================


def _config_response(subject: str, phase: Phase) -> QuizConfigResponse:
    config = _config_table.get(subject, phase)
    return QuizConfigResponse(
        subject=config.subject,
        subject_code=config.subject_code,
        phase=config.phase.value,
        question_count=config.question_count,
        time_limit=config.time_limit,
        level=config.level,
        grouped=config.grouped,
        topic_counts=dict(config.topic_rule.per_topic),
    )


@router.get(
    "/configurations",
    response_model=List[QuizConfigResponse],
    summary="List quiz configurations",
)
def list_configurations() -> List[QuizConfigResponse]:
    """Every configured (subject, phase) pair."""
    return [
        _config_response(subject, phase)
        for subject in _config_table.available_subjects()
        for phase in _config_table.available_phases(subject)
    ]


@router.get(
    "/configurations/{subject}",
    response_model=List[QuizConfigResponse],
    summary="List configurations of one subject",
)
def subject_configurations(subject: str) -> List[QuizConfigResponse]:
    phases = _config_table.available_phases(subject)
    if not phases:
        raise HTTPException(status_code=404, detail=f"No quiz configuration for {subject}")
    return [_config_response(subject, phase) for phase in phases]


@router.get(
    "/codes/{code}",
    response_model=DecodedCodeResponse,
    summary="Decode a question code",
)
def decode_code(code: str) -> DecodedCodeResponse:
    decoded = _catalog.decode_question_code(code)
    if decoded is None:
        raise HTTPException(status_code=404, detail=f"Invalid question code: {code}")
    return DecodedCodeResponse(
        code=code,
        subject=decoded.subject.name,
        topic=decoded.topic.name,
        grade=decoded.grade,
        grade_name=decoded.grade_name,
        level=decoded.level,
        level_name=decoded.level_name,
        serial=decoded.serial,
    )
