"""
Tests for the command-line interface.
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from essay_grader.catalog import default_registry
from essay_grader.config import Settings
from essay_grader.grading import GradingEngine
from essay_grader.main import app

from conftest import FakeLLMClient

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep log records off the captured CLI output."""
    with patch("essay_grader.main.setup_logging"):
        yield


@pytest.fixture
def cli_settings(test_settings: Settings):
    with patch("essay_grader.main.get_settings", return_value=test_settings):
        yield test_settings


@pytest.fixture
def fake_engine(cli_settings: Settings):
    client = FakeLLMClient()

    def build(settings: Settings) -> GradingEngine:
        return GradingEngine(settings, registry=default_registry(), client=client)

    with patch("essay_grader.main.GradingEngine", side_effect=build):
        yield client


class TestGradeCommand:
    """Tests for `essay-grader grade`."""

    def test_grade_json(self, fake_engine: FakeLLMClient, essay_file: Path) -> None:
        result = runner.invoke(
            app,
            ["grade", "Evaluate minimum wages.", str(essay_file), "--diagram", "--json"],
        )

        assert result.exit_code == 0, result.output
        body = json.loads(result.output)
        assert body["overallScore"] == 7.0
        assert body["grade"] == "B"
        assert len(body["examiners"]) == 4
        assert fake_engine.closed is True

    def test_grade_table(self, fake_engine: FakeLLMClient, essay_file: Path) -> None:
        result = runner.invoke(app, ["grade", "Evaluate minimum wages.", str(essay_file)])

        assert result.exit_code == 0, result.output
        assert "7.0/10" in result.output
        assert fake_engine.closed is True
        assert "Knowledge" in result.output
        assert "Diagram Missing" in result.output

    def test_missing_file(self, fake_engine: FakeLLMClient, tmp_path: Path) -> None:
        result = runner.invoke(app, ["grade", "Q", str(tmp_path / "missing.txt")])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_unknown_question_type(self, fake_engine: FakeLLMClient, essay_file: Path) -> None:
        result = runner.invoke(
            app, ["grade", "Q", str(essay_file), "--question-type", "99-mark"]
        )

        assert result.exit_code == 1
        assert "Invalid question type: 99-mark" in result.output
        assert fake_engine.closed is True

    def test_not_configured(self, unconfigured_settings: Settings, essay_file: Path) -> None:
        with patch("essay_grader.main.get_settings", return_value=unconfigured_settings):
            result = runner.invoke(app, ["grade", "Q", str(essay_file)])

        assert result.exit_code == 1
        assert "ESSAY_GRADER_AI_API_KEY" in result.output


class TestOtherCommands:
    """Tests for catalog and health."""

    def test_catalog(self, cli_settings: Settings) -> None:
        result = runner.invoke(app, ["catalog", "geography"])

        assert result.exit_code == 0, result.output
        assert "AO4" in result.output
        assert "20-mark" in result.output

    def test_health(self, fake_engine: FakeLLMClient) -> None:
        result = runner.invoke(app, ["health"])

        assert result.exit_code == 0, result.output
        assert "API is reachable" in result.output
        assert fake_engine.closed is True

    def test_health_unconfigured(self, unconfigured_settings: Settings) -> None:
        with patch("essay_grader.main.get_settings", return_value=unconfigured_settings):
            result = runner.invoke(app, ["health"])

        assert result.exit_code == 1
        assert "not configured" in result.output
