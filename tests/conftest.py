"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import dataclasses
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from quizgen.bank import InMemoryExamStore, InMemoryQuestionRepository  # noqa: E402
from quizgen.catalog import SubjectTopicCatalog  # noqa: E402
from quizgen.selection.models import Question, QuestionOption  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


_CATALOG = SubjectTopicCatalog()
_BASE_TIME = datetime(2025, 3, 1, 8, 0, 0)


def _build_question(code: str, **overrides) -> Question:
    decoded = _CATALOG.decode_question_code(code)
    assert decoded is not None, f"invalid test code {code}"
    question = Question(
        id=code,
        code=code,
        subject=decoded.subject.name,
        subject_code=decoded.subject.code,
        topic=decoded.topic.name,
        topic_code=decoded.topic.code,
        grade=decoded.grade,
        level=decoded.level_name,
        level_code=decoded.level,
        question_text=f"Question {code}",
        options=(
            QuestionOption(id="A", text="right", is_correct=True),
            QuestionOption(id="B", text="wrong"),
        ),
        created_at=_BASE_TIME + timedelta(minutes=decoded.serial),
    )
    return dataclasses.replace(question, **overrides) if overrides else question


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def catalog():
    return _CATALOG


@pytest.fixture
def make_question():
    """Factory: build a Question from a 9-char code, e.g. make_question('MAAL1F001')."""
    return _build_question


@pytest.fixture
def math_questions():
    """10 grade-1, Fácil questions per Matemáticas topic (AL, GE, ES)."""
    return [
        _build_question(f"MA{topic}1F{serial:03d}")
        for topic in ("AL", "GE", "ES")
        for serial in range(1, 11)
    ]


@pytest.fixture
def math_repository(math_questions):
    return InMemoryQuestionRepository(math_questions)


@pytest.fixture
def english_questions():
    """
    Two cloze groups of three items per English part (P1-P7).

    Members are inserted out of blank order so ordering is observable.
    """
    questions = []
    for part in range(1, 8):
        for group in range(2):
            passage = f"Part {part} passage {group}: The ___ (1) went ___ (2) the ___ (3)."
            for blank in (3, 1, 2):
                serial = group * 10 + blank
                questions.append(_build_question(
                    f"INP{part}1F{serial:03d}",
                    question_text=f"Read the text and choose the word for hueco [{blank}]",
                    informative_text=passage,
                ))
    return questions


@pytest.fixture
def english_repository(english_questions):
    return InMemoryQuestionRepository(english_questions)


@pytest.fixture
def exam_store():
    return InMemoryExamStore()


@pytest.fixture
def phase1_math_record():
    """Completed phase-1 Matemáticas exam with Geometría as the clear weakness."""
    details = (
        [{"questionId": f"MAAL1F{i:03d}", "topicCode": "AL", "isCorrect": i != 1} for i in range(1, 5)]
        + [{"questionId": f"MAGE1F{i:03d}", "topicCode": "GE", "isCorrect": i == 1} for i in range(1, 5)]
        + [{"questionId": f"MAES1F{i:03d}", "topicCode": "ES", "isCorrect": True} for i in range(1, 5)]
    )
    return {
        "subject": "Matemáticas",
        "phase": "first",
        "completed": True,
        "questionDetails": details,
        "answers": {d["questionId"]: "A" for d in details},
    }
