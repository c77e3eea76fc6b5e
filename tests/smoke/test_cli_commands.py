"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent


def run_cli_command(command: list[str], timeout: int = 30) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        command: Arguments after 'python -m quizgen.cli'
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    result = subprocess.run(
        [sys.executable, "-m", "quizgen.cli", *command],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        encoding="utf-8",
        timeout=timeout,
    )

    return result.returncode, result.stdout, result.stderr


@pytest.fixture
def bank_file(tmp_path):
    """JSON bank with 8 Matemáticas questions per topic."""
    records = [
        {
            "id": f"MA{topic}1F{serial:03d}",
            "code": f"MA{topic}1F{serial:03d}",
            "subject": "Matemáticas",
            "subjectCode": "MA",
            "topic": name,
            "topicCode": topic,
            "grade": "1",
            "level": "Fácil",
            "levelCode": "F",
            "questionText": f"Question {serial} on {name}",
            "options": [{"id": "A", "text": "1", "isCorrect": True}, {"id": "B", "text": "2"}],
        }
        for topic, name in (("AL", "Álgebra y Cálculo"), ("GE", "Geometría"), ("ES", "Estadistica"))
        for serial in range(1, 9)
    ]
    path = tmp_path / "bank.json"
    path.write_text(json.dumps({"questions": records}, ensure_ascii=False), encoding="utf-8")
    return path


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        """Main help should display without errors."""
        code, stdout, stderr = run_cli_command(["--help"])

        assert code == 0, f"Help failed: {stderr}"
        assert "generate" in stdout
        assert "configs" in stdout

    def test_generate_help(self):
        code, stdout, stderr = run_cli_command(["generate", "--help"])

        assert code == 0, f"Help failed: {stderr}"
        assert "--subject" in stdout


class TestCLIGenerate:
    """Test quiz generation from a JSON bank."""

    def test_generate_json(self, bank_file):
        code, stdout, stderr = run_cli_command(
            [
                "generate", str(bank_file),
                "--subject", "Matemáticas", "--phase", "first", "--seed", "smoke", "--json",
            ]
        )

        assert code == 0, f"Generate failed: {stderr}"
        payload = json.loads(stdout)
        assert payload["totalQuestions"] == 18
        assert payload["shortfall"] == 0
        assert payload["topicCounts"] == {"AL": 6, "GE": 6, "ES": 6}

    def test_generate_table(self, bank_file):
        code, stdout, stderr = run_cli_command(
            ["generate", str(bank_file), "-s", "Matemáticas"]
        )

        assert code == 0, f"Generate failed: {stderr}"
        assert "Per topic" in stdout

    def test_generate_empty_subject_exits_2(self, bank_file):
        code, stdout, stderr = run_cli_command(["generate", str(bank_file), "-s", "Lenguaje"])

        assert code == 2

    def test_generate_unknown_subject_exits_1(self, bank_file):
        code, stdout, stderr = run_cli_command(["generate", str(bank_file), "-s", "Astronomía"])

        assert code == 1
        assert "ConfigurationMissing" in stdout


class TestCLIPhaseGating:
    def test_student_without_grant_is_refused(self, bank_file):
        code, stdout, stderr = run_cli_command(
            ["generate", str(bank_file), "-s", "Matemáticas", "--student", "student-1", "--grade-id", "11a"]
        )

        assert code == 1
        assert "Unauthorized" in stdout

    def test_student_with_grant_gets_quiz(self, bank_file):
        code, stdout, stderr = run_cli_command(
            [
                "generate", str(bank_file), "-s", "Matemáticas", "--json",
                "--student", "student-1", "--grade-id", "11a", "--authorize", "11a:first",
            ]
        )

        assert code == 0, f"Generate failed: {stderr}"
        assert json.loads(stdout)["totalQuestions"] == 18

    def test_malformed_grant_is_rejected(self, bank_file):
        code, stdout, stderr = run_cli_command(
            ["generate", str(bank_file), "-s", "Matemáticas", "--authorize", "first"]
        )

        assert code == 2


class TestCLIConfigs:
    def test_configs_runs(self):
        code, stdout, stderr = run_cli_command(["configs", "--subject", "Inglés"])

        assert code == 0, f"Configs failed: {stderr}"
        assert "groups" in stdout

    def test_configs_unknown_subject(self):
        code, stdout, stderr = run_cli_command(["configs", "--subject", "Astronomía"])

        assert code == 1


class TestCLIDecode:
    def test_decode_valid(self):
        code, stdout, stderr = run_cli_command(["decode", "maal1f001"])

        assert code == 0, f"Decode failed: {stderr}"
        assert "MAAL1F001" in stdout
        assert "Undécimo" in stdout

    def test_decode_invalid(self):
        code, stdout, stderr = run_cli_command(["decode", "ZZ"])

        assert code == 1
