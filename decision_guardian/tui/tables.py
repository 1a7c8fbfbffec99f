from dataclasses import dataclass

from rich.table import Column, Table
from rich.text import Text

from decision_guardian.models import Decision, DecisionMatch, SeverityGroups
from decision_guardian.tui.enums import SEVERITY_STYLE, STATUS_STYLE, UIStyle


@dataclass(frozen=True)
class RunStats:
    files_processed: int
    decisions_evaluated: int
    matches_found: int
    duration_ms: int


class MatchTable:
    @staticmethod
    def matches_table(matches: list[DecisionMatch]) -> Table:
        table = Table(
            Column(header="Decision", no_wrap=True),
            Column(header="File", overflow="fold"),
            Column(header="Matched", overflow="ellipsis", max_width=48),
            Column(header="Title", overflow="ellipsis"),
            expand=True,
            header_style="bold",
        )
        for match in matches:
            style = SEVERITY_STYLE.get(match.decision.severity, UIStyle.WHITE.value)
            table.add_row(
                Text(match.decision.id, style=f"bold {style}"),
                Text(match.file),
                Text(match.matched_pattern, style=UIStyle.DIM.value),
                Text(match.decision.title),
            )
        return table


class SummaryTable:
    @staticmethod
    def summary_block(stats: RunStats, groups: SeverityGroups) -> Table:
        counts = groups.counts()
        breakdown = ", ".join(f"{count} {name}" for name, count in counts.items())

        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold")
        table.add_column()
        table.add_row("Files scanned", str(stats.files_processed))
        table.add_row("Decisions checked", str(stats.decisions_evaluated))
        table.add_row("Matches", f"{stats.matches_found} ({breakdown})")
        table.add_row("Duration", f"{stats.duration_ms}ms")
        return table


def _rules_cell(decision: Decision) -> Text:
    if decision.rules_rejected:
        return Text("rejected", style=UIStyle.RED.value)
    return Text("yes" if decision.rules is not None else "")


class DecisionTable:
    @staticmethod
    def decisions_table(decisions: list[Decision]) -> Table:
        table = Table(
            Column(header="Id", no_wrap=True),
            Column(header="Status", width=11),
            Column(header="Severity", width=9),
            Column(header="Files", justify="right", width=6),
            Column(header="Rules", width=8),
            Column(header="Title", overflow="ellipsis"),
            expand=True,
            header_style="bold",
        )
        for decision in decisions:
            status_style = STATUS_STYLE.get(decision.status, UIStyle.WHITE.value)
            severity_style = SEVERITY_STYLE.get(decision.severity, UIStyle.WHITE.value)
            table.add_row(
                Text(decision.id),
                Text(decision.status.value, style=status_style),
                Text(decision.severity.value, style=severity_style),
                str(len(decision.files)),
                _rules_cell(decision),
                Text(decision.title),
            )
        return table
