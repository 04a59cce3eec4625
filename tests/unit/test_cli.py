"""Unit tests for the pmagent CLI."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from pmagent.agent import AgentResult
from pmagent.cli import main
from pmagent.config import ENV_OVERRIDES
from pmagent.state_store import TicketStore
from pmagent.tickets import TicketLifecycle


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every command in an empty directory with a clean environment."""
    for variable in ENV_OVERRIDES:
        monkeypatch.delenv(variable, raising=False)
    monkeypatch.setenv("PMAGENT_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def runner() -> CliRunner:
    """Click test runner."""
    return CliRunner()


@pytest.mark.unit
class TestAsk:
    """Tests for the ask command."""

    def test_canned_reply(self, runner: CliRunner) -> None:
        """--canned answers without configuration or a model."""
        result = runner.invoke(main, ["ask", "standup please", "--canned"])

        assert result.exit_code == 0
        assert "[PM@pmagent] Standup summary:" in result.output

    def test_canned_json(self, runner: CliRunner) -> None:
        """--json prints the structured canned reply."""
        result = runner.invoke(main, ["ask", "hello", "--canned", "--json"])
        assert json.loads(result.output)["meta"]["case"] == "default"

    def test_missing_api_key(self, runner: CliRunner) -> None:
        """A real turn without a key exits with a configuration error."""
        result = runner.invoke(main, ["ask", "hello"])

        assert result.exit_code == 1
        assert "OPENAI_API_KEY is not set" in result.output

    def test_prints_reply(self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        """The reply of a successful turn is printed."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        run = AsyncMock(return_value=AgentResult(reply="All done."))
        with patch("pmagent.agent.runner.AgentRunner.run", run):
            result = runner.invoke(main, ["ask", "hello"])

        assert result.exit_code == 0
        assert result.output.strip() == "All done."
        assert run.await_args.args[0] == "hello"

    def test_failed_turn(self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        """Failed turns report the phase and exit non-zero."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        failed = AgentResult(reply="", error="Completion endpoint returned 500", error_phase="openai")
        with patch("pmagent.agent.runner.AgentRunner.run", AsyncMock(return_value=failed)):
            result = runner.invoke(main, ["ask", "hello"])

        assert result.exit_code == 1
        assert "Agent error (openai): Completion endpoint returned 500" in result.output


@pytest.mark.unit
class TestTickets:
    """Tests for the tickets command."""

    def test_requires_store(self, runner: CliRunner) -> None:
        """Listing needs a configured ticket store."""
        result = runner.invoke(main, ["tickets", "col-todo"])
        assert result.exit_code == 1
        assert "PMAGENT_DB_PATH" in result.output

    def test_lists_column(
        self, runner: CliRunner, isolated_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Tickets are printed with position, reference and title."""
        db_path = str(isolated_env / "tickets.db")
        store = TicketStore(db_path)
        TicketLifecycle(store, "acme/portfolio-2026-hal").create_ticket("Fix login", "## Goal\n\nx\n")
        store.close()
        monkeypatch.setenv("PMAGENT_DB_PATH", db_path)
        monkeypatch.setenv("PMAGENT_REPO", "acme/portfolio-2026-hal")

        result = runner.invoke(main, ["tickets", "col-unassigned"])

        assert result.exit_code == 0
        assert "HAL-0001" in result.output
        assert "HAL-0001: Fix login" in result.output

    def test_empty_column(
        self, runner: CliRunner, isolated_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Empty columns say so."""
        monkeypatch.setenv("PMAGENT_DB_PATH", str(isolated_env / "tickets.db"))
        result = runner.invoke(main, ["tickets", "col-done"])
        assert result.output.strip() == "No tickets in col-done"

    def test_unknown_column(
        self, runner: CliRunner, isolated_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Unknown columns exit with an error."""
        monkeypatch.setenv("PMAGENT_DB_PATH", str(isolated_env / "tickets.db"))
        result = runner.invoke(main, ["tickets", "col-backlog"])
        assert result.exit_code == 1
        assert "Unknown column" in result.output

    def test_blank_db_path_requires_store(
        self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A whitespace-only PMAGENT_DB_PATH counts as unset."""
        monkeypatch.setenv("PMAGENT_DB_PATH", "   ")
        result = runner.invoke(main, ["tickets", "col-todo"])
        assert result.exit_code == 1
        assert "PMAGENT_DB_PATH is not set" in result.output
