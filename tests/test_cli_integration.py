"""CLI integration tests using Click's CliRunner."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner
from conftest import LESSON_MD, FakeGenerationService

from plancraft.cli import main
from plancraft.errors import GenerationConnectionError

LESSON_ID = "fractions-1"


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def lessons_dir(tmp_path: Path) -> Path:
    """Lesson directory seeded with one stored lesson."""
    d = tmp_path / "lessons"
    d.mkdir()
    record = {"id": LESSON_ID, "content": LESSON_MD, "version": 1}
    (d / f"{LESSON_ID}.json").write_text(json.dumps(record), encoding="utf-8")
    return d


def _args(lessons_dir: Path, *args: str) -> list[str]:
    return ["--set", "storage.directory", str(lessons_dir), *args]


def _stored(lessons_dir: Path) -> dict[str, object]:
    return json.loads((lessons_dir / f"{LESSON_ID}.json").read_text(encoding="utf-8"))


class TestMainGroup:
    """Top-level CLI group."""

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "plancraft" in result.output.lower()

    def test_help(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("new", "show", "update", "config", "models"):
            assert command in result.output


class TestNewAndShow:
    """new and show subcommands."""

    def test_new_then_show(self, runner: CliRunner, tmp_path: Path) -> None:
        lessons = tmp_path / "lessons"
        result = runner.invoke(
            main,
            _args(
                lessons,
                "new",
                "decimals-1",
                "--title",
                "Decimals",
                "--student",
                "Ada",
                "--objective",
                "Compare decimals",
            ),
        )
        assert result.exit_code == 0, result.output
        assert "Created lesson" in result.output

        result = runner.invoke(main, _args(lessons, "show", "decimals-1"))
        assert result.exit_code == 0
        assert result.output.startswith("# Decimals\n")
        assert "- Compare decimals" in result.output

    def test_new_refuses_existing(self, runner: CliRunner, lessons_dir: Path) -> None:
        result = runner.invoke(main, _args(lessons_dir, "new", LESSON_ID, "--title", "Other"))
        assert result.exit_code == 1
        assert "already exists" in result.output
        assert _stored(lessons_dir)["content"] == LESSON_MD

    def test_new_force_overwrites(self, runner: CliRunner, lessons_dir: Path) -> None:
        result = runner.invoke(
            main, _args(lessons_dir, "new", LESSON_ID, "--title", "Other", "--force")
        )
        assert result.exit_code == 0
        assert str(_stored(lessons_dir)["content"]).startswith("# Other\n")

    def test_show_missing(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(main, _args(tmp_path, "show", "nope"))
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_invalid_lesson_id(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(main, _args(tmp_path, "show", "../etc"))
        assert result.exit_code == 1
        assert "Invalid lesson id" in result.output


class TestUpdateCommand:
    """update subcommand."""

    @patch("plancraft.cli._build_service")
    def test_accept_saves(
        self, mock_service: MagicMock, runner: CliRunner, lessons_dir: Path
    ) -> None:
        mock_service.return_value = FakeGenerationService([LESSON_MD])
        result = runner.invoke(
            main, _args(lessons_dir, "update", LESSON_ID, "Add 5 practice problems", "-y")
        )
        assert result.exit_code == 0, result.output
        assert "Update Summary" in result.output
        assert "Saved at" in result.output

        stored = _stored(lessons_dir)
        assert stored["version"] == 2
        assert str(stored["content"]).count("::: solution") == 5
        assert "Bring fraction strips." in str(stored["content"])

    @patch("plancraft.cli._build_service")
    def test_decline_keeps_lesson(
        self, mock_service: MagicMock, runner: CliRunner, lessons_dir: Path
    ) -> None:
        mock_service.return_value = FakeGenerationService([LESSON_MD])
        result = runner.invoke(
            main,
            _args(lessons_dir, "update", LESSON_ID, "Add 5 practice problems"),
            input="n\n",
        )
        assert result.exit_code == 0, result.output
        assert "Change discarded" in result.output
        assert _stored(lessons_dir) == {"id": LESSON_ID, "content": LESSON_MD, "version": 1}

    @patch("plancraft.cli._build_service")
    def test_generation_failure(
        self, mock_service: MagicMock, runner: CliRunner, lessons_dir: Path
    ) -> None:
        mock_service.return_value = FakeGenerationService(
            error=GenerationConnectionError("Cannot connect to http://localhost:11434")
        )
        result = runner.invoke(
            main, _args(lessons_dir, "update", LESSON_ID, "Add 5 practice problems", "-y")
        )
        assert result.exit_code == 1
        assert "Could not update the lesson plan" in result.output
        assert _stored(lessons_dir)["version"] == 1

    @patch("plancraft.cli._build_service")
    def test_missing_lesson(
        self, mock_service: MagicMock, runner: CliRunner, tmp_path: Path
    ) -> None:
        mock_service.return_value = FakeGenerationService()
        result = runner.invoke(main, _args(tmp_path, "update", "nope", "Add 5 practice problems"))
        assert result.exit_code == 1
        assert "not found" in result.output


class TestConfigAndModels:
    """config and models subcommands."""

    def test_config_show(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--set", "pipeline.section_title", "Exercises", "config"])
        assert result.exit_code == 0
        assert "section_title" in result.output
        assert "Exercises" in result.output

    def test_profile_option(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--profile", "quality", "config"])
        assert result.exit_code == 0
        assert "16384" in result.output

    def test_models_unreachable(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--set", "ollama.host", "http://127.0.0.1:9", "models"])
        assert result.exit_code == 1
        assert "not reachable" in result.output
