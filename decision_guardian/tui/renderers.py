from pathlib import Path

from rich.console import Console

from decision_guardian.models import DecisionMatch, ParseResult, SeverityGroups
from decision_guardian.tui.enums import UIStyle
from decision_guardian.tui.sections import UISection
from decision_guardian.tui.tables import DecisionTable, MatchTable, RunStats, SummaryTable


class CheckConsoleUI:
    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_parse_problems(self, result: ParseResult) -> None:
        if result.errors:
            self.console.print(
                UISection.bullets(
                    "parse errors",
                    [f"line {error.line}: {error.message}" for error in result.errors],
                    style=UIStyle.RED.value,
                )
            )
        if result.warnings:
            self.console.print(
                UISection.bullets("parse warnings", result.warnings, style=UIStyle.YELLOW.value)
            )

    def render_decisions(self, result: ParseResult, source: Path) -> None:
        if not result.decisions:
            self.console.print(
                UISection.wrap("decisions", f"No decisions found in {source}", style=UIStyle.YELLOW.value)
            )
            return
        self.console.print(
            UISection.wrap(
                "decisions",
                DecisionTable.decisions_table(result.decisions),
                subtitle=str(source),
            )
        )

    def render_matches(self, groups: SeverityGroups) -> None:
        sections: list[tuple[str, list[DecisionMatch], str]] = [
            ("critical", groups.critical, UIStyle.RED.value),
            ("warning", groups.warning, UIStyle.YELLOW.value),
            ("info", groups.info, UIStyle.CYAN.value),
        ]
        if not any(matches for _, matches, _ in sections):
            self.console.print(
                UISection.wrap("matches", "No decision violations found.", style=UIStyle.GREEN.value)
            )
            return
        for title, matches, style in sections:
            if matches:
                self.console.print(
                    UISection.wrap(
                        f"{title} ({len(matches)})",
                        MatchTable.matches_table(matches),
                        style=style,
                    )
                )

    def render_summary(self, stats: RunStats, groups: SeverityGroups) -> None:
        self.console.print(
            UISection.wrap("summary", SummaryTable.summary_block(stats, groups), style=UIStyle.DIM.value)
        )

    def render_engine_warnings(self, warnings: list[str]) -> None:
        if warnings:
            self.console.print(
                UISection.bullets("evaluation warnings", warnings, style=UIStyle.YELLOW.value)
            )

    def render_created(self, path: Path) -> None:
        self.console.print(
            UISection.wrap("init", f"Created [bold]{path}[/bold]", style=UIStyle.GREEN.value)
        )
