import sys
from pathlib import Path
from typing import Iterator

from click.testing import CliRunner
import pytest


def _ensure_paths() -> None:
    tests_dir = Path(__file__).resolve().parent
    for entry in (tests_dir.parent, tests_dir):
        if str(entry) not in sys.path:
            sys.path.insert(0, str(entry))


_ensure_paths()

from decision_guardian.matching.cache import RegexResultCache  # noqa: E402
from decision_guardian.matching.content import ContentMatchers  # noqa: E402
from decision_guardian.matching.evaluator import RuleEvaluator  # noqa: E402
from decision_guardian.matching.sandbox import RegexSandbox  # noqa: E402


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    monkeypatch.setenv("GITHUB_WORKSPACE", str(root))
    monkeypatch.chdir(root)
    return root


@pytest.fixture
def sandbox() -> Iterator[RegexSandbox]:
    with RegexSandbox(timeout_seconds=5.0) as instance:
        yield instance


@pytest.fixture
def content_matchers(sandbox: RegexSandbox) -> ContentMatchers:
    return ContentMatchers(cache=RegexResultCache(), sandbox=sandbox)


@pytest.fixture
def evaluator(content_matchers: ContentMatchers) -> RuleEvaluator:
    return RuleEvaluator(content_matchers=content_matchers)


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()
