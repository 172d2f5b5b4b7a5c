"""Tests for smartctx CLI commands."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from smartctx import __version__
from smartctx.cli import app, helpers

runner = CliRunner()


@pytest.fixture
def project(project_root: Path) -> Path:
    auth = project_root / "src" / "auth"
    auth.mkdir(parents=True)
    (auth / "session.js").write_text("export function expire() {}\n")
    (auth / "login.js").write_text("import { expire } from './session';\n")
    (project_root / "README.md").write_text("# demo\n")
    return project_root


@pytest.fixture
def invoke(project: Path, db_path: Path):  # noqa: ANN201
    """Run the CLI against the test project and database."""

    def _invoke(*args: str, **kwargs):  # noqa: ANN202
        return runner.invoke(
            app, ["--project", str(project), "--db", str(db_path), *args], **kwargs
        )

    return _invoke


class TestVersion:
    """Tests for the --version flag."""

    def test_version_shows_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"smartctx v{__version__}" in result.stdout


class TestSelectCommand:
    """Tests for the select command."""

    def test_select_json(self, invoke) -> None:  # noqa: ANN001
        result = invoke("select", "fix session expiry", "--file", "src/auth/login.js", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["session_id"] == 1
        assert data["task_mode"] == "debug"
        scored = data["included"] + data["excluded"]
        assert sorted(f["path"] for f in scored) == [
            "README.md",
            "src/auth/login.js",
            "src/auth/session.js",
        ]

    def test_select_table(self, invoke) -> None:  # noqa: ANN001
        result = invoke("select", "fix session expiry", "--file", "src/auth/login.js")
        assert result.exit_code == 0
        assert "Session 1" in result.stdout
        assert "Budget used:" in result.stdout

    def test_select_only_listed_files(self, invoke) -> None:  # noqa: ANN001
        result = invoke("select", "fix session expiry", "--only", "src/auth/session.js", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [f["path"] for f in data["included"] + data["excluded"]] == ["src/auth/session.js"]

    def test_select_rejects_bad_budget(self, invoke) -> None:  # noqa: ANN001
        result = invoke("select", "fix session expiry", "--budget", "0")
        assert result.exit_code == 1
        assert "Token budget must be positive" in result.stdout

    def test_invalid_config(self, invoke, project: Path) -> None:  # noqa: ANN001
        (project / ".smartctx.yaml").write_text("selection:\n  default_token_budget: 0\n")
        result = invoke("select", "fix session expiry")
        assert result.exit_code == 1
        assert "Configuration error" in result.stdout


class TestExpandCommand:
    """Tests for the expand command."""

    def test_expand_json(self, invoke) -> None:  # noqa: ANN001
        assert invoke("select", "fix session expiry", "--budget", "1", "--json").exit_code == 0
        result = invoke("expand", "1", "--tokens", "500", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["token_budget"] == 501
        assert set(data["added"]) <= {f["path"] for f in data["included"]}

    def test_expand_table(self, invoke) -> None:  # noqa: ANN001
        invoke("select", "fix session expiry", "--json")
        result = invoke("expand", "1")
        assert result.exit_code == 0
        assert "Budget used:" in result.stdout

    def test_expand_unknown_session(self, invoke) -> None:  # noqa: ANN001
        result = invoke("expand", "7")
        assert result.exit_code == 1
        assert "Unknown session: 7" in result.stdout


class TestSearchCommand:
    """Tests for the search command."""

    def test_search_json(self, invoke) -> None:  # noqa: ANN001
        result = invoke("search", "expire", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["results"][0]["path"] == "src/auth/session.js"

    def test_search_without_matches(self, invoke) -> None:  # noqa: ANN001
        result = invoke("search", "kubernetes")
        assert result.exit_code == 0
        assert "No files match" in result.stdout


class TestFeedbackCommands:
    """Tests for override and outcome."""

    def test_override_requires_a_file(self, invoke) -> None:  # noqa: ANN001
        result = invoke("override", "1")
        assert result.exit_code == 1
        assert "at least one of --add, --remove or --keep" in result.stdout

    def test_override_unknown_session(self, invoke) -> None:  # noqa: ANN001
        result = invoke("override", "42", "--add", "src/auth/session.js")
        assert result.exit_code == 1
        assert "Unknown session: 42" in result.stdout

    def test_override_rejects_absolute_path(self, invoke) -> None:  # noqa: ANN001
        invoke("select", "fix session expiry", "--json")
        result = invoke("override", "1", "--add", "/etc/hosts")
        assert result.exit_code == 1
        assert "Path must be project-relative" in result.stdout

    def test_feedback_flow(self, invoke) -> None:  # noqa: ANN001
        assert invoke("select", "fix session expiry", "--json").exit_code == 0

        result = invoke("override", "1", "--add", "config/auth.js", "--json")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["recorded"] == 1

        result = invoke("override", "1", "--add", "config/auth.js")
        assert result.exit_code == 0
        assert "1 already recorded for this session" in result.stdout

        result = invoke("outcome", "1", "--failure", "--json")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["already_recorded"] is False

        result = invoke("outcome", "1", "--success")
        assert result.exit_code == 0
        assert "already recorded" in result.stdout

        result = invoke("insights", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["total_sessions"] == 1
        assert data["override_counts"] == {"added": 1}


class TestInspectCommands:
    """Tests for session, relationships, insights and analyze."""

    def test_session_list_empty(self, invoke) -> None:  # noqa: ANN001
        result = invoke("session")
        assert result.exit_code == 0
        assert "No sessions recorded" in result.stdout

    def test_session_show(self, invoke) -> None:  # noqa: ANN001
        invoke("select", "add export button", "--json")
        result = invoke("session", "1", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["id"] == 1
        assert data["task_mode"] == "feature"

    def test_session_list_json(self, invoke) -> None:  # noqa: ANN001
        invoke("select", "add export button", "--json")
        invoke("select", "fix session expiry", "--json")
        result = invoke("session", "--json")
        assert [s["id"] for s in json.loads(result.stdout)["sessions"]] == [2, 1]

    def test_relationships_none_recorded(self, invoke) -> None:  # noqa: ANN001
        result = invoke("relationships", "src/auth/login.js")
        assert result.exit_code == 0
        assert "No relationships recorded" in result.stdout

    def test_relationships_unknown_type(self, invoke) -> None:  # noqa: ANN001
        result = invoke("relationships", "src/auth/login.js", "--type", "friends")
        assert result.exit_code == 1
        assert "Unknown relationship type" in result.stdout

    def test_insights_unknown_mode(self, invoke) -> None:  # noqa: ANN001
        result = invoke("insights", "--mode", "party")
        assert result.exit_code == 1

    def test_insights_panel(self, invoke) -> None:  # noqa: ANN001
        result = invoke("insights")
        assert result.exit_code == 0

    def test_analyze_outside_git(self, invoke) -> None:  # noqa: ANN001
        result = invoke("analyze", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["commit_limit"] == 100
        assert data["co_change_patterns"] == []

    def test_analyze_rejects_bad_limit(self, invoke) -> None:  # noqa: ANN001
        result = invoke("analyze", "--commits", "0")
        assert result.exit_code == 1
        assert "Commit limit must be positive" in result.stdout


class TestMcpCommand:
    """Tests for the mcp command."""

    def test_serves_stdin(self, invoke) -> None:  # noqa: ANN001
        requests = [
            {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}},
            {"jsonrpc": "2.0", "id": 2, "method": "tools/list"},
        ]
        stdin = "".join(json.dumps(r) + "\n" for r in requests)
        result = invoke("mcp", input=stdin)
        assert result.exit_code == 0
        responses = [
            json.loads(line)
            for line in result.stdout.splitlines()
            if line.startswith('{"jsonrpc"')
        ]
        assert [r["id"] for r in responses] == [1, 2]
        assert len(responses[1]["result"]["tools"]) == 8


class TestGlobalOptions:
    """Tests for the logging options handled by the app callback."""

    def test_log_file_switches_to_json(self, invoke, tmp_path: Path) -> None:  # noqa: ANN001
        log_file = tmp_path / "logs" / "smartctx.log"
        result = invoke("--log-level", "debug", "--log-file", str(log_file), "session")
        assert result.exit_code == 0
        assert helpers.get_log_level() == "DEBUG"
        assert helpers.get_log_file() == log_file
        assert helpers.get_log_format() == "json"
