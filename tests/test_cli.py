import sys
from pathlib import Path

import pytest

from decision_guardian.__main__ import cli, main
from decision_guardian.matching.matcher import FileMatcher
from decision_guardian.scm.local_git import LocalGitProvider
from factories import make_diff

DECISIONS_MD = """\
<!-- DECISION-001 -->
## Decision: Database access goes through the pool

**Status**: Active
**Severity**: Critical

**Files**:
- `src/db/**`

<!-- DECISION-002 -->
## Decision: Secrets stay out of auth code

**Severity**: Warning

**Rules**:
```json
{"pattern": "src/auth/**", "content_rules": [{"mode": "string", "patterns": ["password"]}]}
```
"""


@pytest.fixture
def decisions_file(workspace: Path) -> Path:
    path = workspace / "decisions.md"
    path.write_text(DECISIONS_MD, encoding="utf-8")
    return path


@pytest.fixture
def changed(monkeypatch):
    def set_diffs(diffs) -> None:
        monkeypatch.setattr(LocalGitProvider, "get_file_diffs", lambda self: list(diffs))

    return set_diffs


def test_check_reports_no_violations(cli_runner, decisions_file: Path, changed) -> None:
    changed([make_diff("README.md", {1: "hello"})])

    result = cli_runner.invoke(cli, ["check"])

    assert result.exit_code == 0, result.output
    assert "No decision violations found." in result.output


def test_check_reports_matches(cli_runner, decisions_file: Path, changed) -> None:
    changed(
        [
            make_diff("src/db/pool.ts", {1: "export const pool = 1;"}),
            make_diff("src/auth/login.ts", {4: "const password = read();"}),
        ]
    )

    result = cli_runner.invoke(cli, ["check", "decisions.md"])

    assert result.exit_code == 0, result.output
    assert "DECISION-001" in result.output
    assert "DECISION-002" in result.output
    assert "critical (1)" in result.output
    assert "warning (1)" in result.output


def test_check_fails_on_critical_when_requested(cli_runner, decisions_file: Path, changed) -> None:
    changed([make_diff("src/db/pool.ts", {1: "x"})])

    result = cli_runner.invoke(cli, ["check", "--fail-on-critical"])

    assert result.exit_code == 1


def test_fail_on_critical_from_config(
    cli_runner, workspace: Path, decisions_file: Path, changed
) -> None:
    (workspace / ".decision-guardian.yml").write_text("fail_on_critical: true\n", encoding="utf-8")
    changed([make_diff("src/db/pool.ts", {1: "x"})])

    assert cli_runner.invoke(cli, ["check"]).exit_code == 1
    assert cli_runner.invoke(cli, ["check", "--no-fail-on-critical"]).exit_code == 0


def test_check_falls_back_to_path_matching(
    cli_runner, decisions_file: Path, changed, monkeypatch
) -> None:
    def broken(self, file_diffs):
        raise RuntimeError("diff matching unavailable")

    monkeypatch.setattr(FileMatcher, "find_matches_with_diffs", broken)
    changed(
        [
            make_diff("src/db/pool.ts", {1: "x"}),
            make_diff("src/auth/login.ts", {1: "password"}),
        ]
    )

    result = cli_runner.invoke(cli, ["check"])

    assert result.exit_code == 0, result.output
    assert "DECISION-001" in result.output
    assert "Skipped decisions with content rules" in result.output


def test_check_without_changes(cli_runner, decisions_file: Path, changed) -> None:
    changed([])

    result = cli_runner.invoke(cli, ["check"])

    assert result.exit_code == 0
    assert "No decision violations found." not in result.output


def test_check_missing_decisions_file(cli_runner, workspace: Path) -> None:
    result = cli_runner.invoke(cli, ["check", "nowhere.md"])

    assert result.exit_code == 1
    assert "Decision file not found" in result.output


def test_check_rejects_bad_branch(cli_runner, decisions_file: Path) -> None:
    result = cli_runner.invoke(cli, ["check", "--mode", "branch", "--base", "main;ls"])

    assert result.exit_code == 1
    assert "Invalid base branch" in result.output


def test_validate(cli_runner, decisions_file: Path) -> None:
    result = cli_runner.invoke(cli, ["validate"])

    assert result.exit_code == 0, result.output
    assert "DECISION-001" in result.output
    assert "DECISION-002" in result.output


def test_validate_reports_errors(cli_runner, workspace: Path) -> None:
    (workspace / "broken.md").write_text("<!-- DECISION-009 -->\n**Status**: active\n", encoding="utf-8")

    result = cli_runner.invoke(cli, ["validate", "broken.md"])

    assert result.exit_code == 1
    assert "missing required fields" in result.output


def test_init_writes_template_once(cli_runner, workspace: Path) -> None:
    first = cli_runner.invoke(cli, ["init", "docs/decisions.md"])
    second = cli_runner.invoke(cli, ["init", "docs/decisions.md"])
    validated = cli_runner.invoke(cli, ["validate", "docs/decisions.md"])

    assert first.exit_code == 0, first.output
    assert (workspace / "docs" / "decisions.md").exists()
    assert second.exit_code == 1
    assert "Refusing to overwrite" in second.output
    assert validated.exit_code == 0, validated.output


def test_main_maps_usage_errors_to_exit_code_2(workspace: Path, monkeypatch) -> None:
    monkeypatch.setattr(sys, "argv", ["decision-guardian", "validate", "missing.md"])

    assert main() == 2


def test_main_returns_command_exit_code(workspace: Path, monkeypatch) -> None:
    (workspace / "broken.md").write_text("<!-- DECISION-009 -->\n", encoding="utf-8")
    monkeypatch.setattr(sys, "argv", ["decision-guardian", "validate", "broken.md"])

    assert main() == 1
