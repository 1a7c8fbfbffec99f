import logging
import time
from datetime import date
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from decision_guardian.config import EngineSettings, GuardianConfig, default_config_path, load_config
from decision_guardian.constants import DEFAULT_DECISIONS_PATH
from decision_guardian.decisions.parser import DecisionParser
from decision_guardian.errors import GuardianError, MissingDecisionFileError
from decision_guardian.log import configure_logging
from decision_guardian.matching.cache import RegexResultCache
from decision_guardian.matching.content import ContentMatchers
from decision_guardian.matching.evaluator import RuleEvaluator
from decision_guardian.matching.matcher import FileMatcher
from decision_guardian.matching.sandbox import RegexSandbox
from decision_guardian.models import Decision, DiffMode, ParseResult
from decision_guardian.scm.local_git import LocalGitProvider
from decision_guardian.templates import DECISIONS_TEMPLATE
from decision_guardian.tui import CheckConsoleUI
from decision_guardian.tui.tables import RunStats
from decision_guardian.utils import workspace_root

logger = logging.getLogger(__name__)

MODE_VALUES = [mode.value for mode in DiffMode]


def _load_config(root: Path, config_path: Optional[Path]) -> GuardianConfig:
    if config_path is not None:
        return load_config(root / config_path, required=True)
    return load_config(default_config_path(root))


def _parse_decisions(root: Path, decision_path: Path) -> ParseResult:
    resolved = root / decision_path
    if not resolved.exists():
        raise MissingDecisionFileError(resolved)
    logger.info("Checking: %s", resolved)
    return DecisionParser(root=root).parse_file(decision_path)


def build_matcher(decisions: list[Decision], engine: EngineSettings) -> FileMatcher:
    matchers = ContentMatchers(
        cache=RegexResultCache(max_size=engine.regex_cache_size),
        sandbox=RegexSandbox(
            timeout_seconds=engine.regex_timeout_seconds,
            workers=engine.regex_workers,
        ),
    )
    return FileMatcher(
        decisions,
        evaluator=RuleEvaluator(content_matchers=matchers),
        batch_size=engine.batch_size,
    )


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Flag changes that touch files covered by architecture decisions."""
    configure_logging(verbose)
    ctx.obj = {"verbose": verbose}


@cli.command(help="Check local git changes against recorded decisions.")
@click.argument("decisions", required=False)
@click.option(
    "--mode",
    type=click.Choice(MODE_VALUES, case_sensitive=False),
    default=None,
    help="Which changes to check: staged, branch (base...HEAD) or all (vs HEAD).",
)
@click.option("--base", "base_branch", default=None, help="Base branch for branch mode.")
@click.option(
    "--fail-on-critical/--no-fail-on-critical",
    default=None,
    help="Exit with status 1 when critical decisions match.",
)
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None)
def check(
    decisions: Optional[str],
    mode: Optional[str],
    base_branch: Optional[str],
    fail_on_critical: Optional[bool],
    config_path: Optional[Path],
) -> None:
    ui = CheckConsoleUI(Console())
    root = workspace_root()
    started = time.monotonic()

    try:
        config = _load_config(root, config_path)
        parse_result = _parse_decisions(root, Path(decisions or config.decisions))
    except GuardianError as exc:
        raise click.ClickException(str(exc))

    ui.render_parse_problems(parse_result)
    if not parse_result.decisions:
        logger.warning("No decisions found in the specified path.")
        return
    logger.info("Found %d decisions", len(parse_result.decisions))

    try:
        provider = LocalGitProvider(
            mode=DiffMode((mode or config.mode.value).lower()),
            base_branch=base_branch or config.base_branch,
            cwd=root,
        )
        file_diffs = provider.get_file_diffs()
    except GuardianError as exc:
        raise click.ClickException(str(exc))

    if not file_diffs:
        logger.info("No changed files detected.")
        return
    logger.info("%d files changed", len(file_diffs))

    with build_matcher(parse_result.decisions, config.engine) as matcher:
        try:
            matches = matcher.find_matches_with_diffs(file_diffs)
        except Exception as exc:
            logger.warning("Diff-based matching failed (%s); falling back to path-only matching", exc)
            matches = matcher.find_matches([diff.filename for diff in file_diffs])
        engine_warnings = list(matcher.warnings)

    groups = FileMatcher.group_by_severity(matches)
    ui.render_matches(groups)
    ui.render_engine_warnings(engine_warnings)
    ui.render_summary(
        RunStats(
            files_processed=len(file_diffs),
            decisions_evaluated=len(parse_result.decisions),
            matches_found=len(matches),
            duration_ms=int((time.monotonic() - started) * 1000),
        ),
        groups,
    )

    should_fail = fail_on_critical if fail_on_critical is not None else config.fail_on_critical
    if should_fail and groups.critical:
        logger.error("%d critical violations found", len(groups.critical))
        raise click.exceptions.Exit(1)


@cli.command(help="Parse decision files and report problems.")
@click.argument("decisions", required=False, default=DEFAULT_DECISIONS_PATH)
def validate(decisions: str) -> None:
    ui = CheckConsoleUI(Console())
    root = workspace_root()
    try:
        parse_result = _parse_decisions(root, Path(decisions))
    except GuardianError as exc:
        raise click.ClickException(str(exc))

    ui.render_decisions(parse_result, Path(decisions))
    ui.render_parse_problems(parse_result)
    if not parse_result.is_valid():
        raise click.exceptions.Exit(1)


@cli.command(help="Write a starter decisions file.")
@click.argument("path", required=False, default=DEFAULT_DECISIONS_PATH)
def init(path: str) -> None:
    ui = CheckConsoleUI(Console())
    target = workspace_root() / path
    if target.exists():
        raise click.ClickException(f"Refusing to overwrite existing file: {target}")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(DECISIONS_TEMPLATE.format(today=date.today().isoformat()), encoding="utf-8")
    ui.render_created(target)


def main() -> int:
    try:
        # Without standalone mode click returns the exit code of ctx.exit()/Exit.
        result = cli(standalone_mode=False)
    except click.exceptions.Exit as exc:
        code = exc.exit_code
        return code if isinstance(code, int) else 1
    except click.ClickException as exc:
        exc.show()
        return 2
    return result if isinstance(result, int) else 0


if __name__ == "__main__":
    raise SystemExit(main())
