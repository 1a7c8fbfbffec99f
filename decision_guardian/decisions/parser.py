"""Parse decision records out of Markdown files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

from decision_guardian.constants import DECISION_FILE_SUFFIXES
from decision_guardian.models import (
    Decision,
    DecisionStatus,
    ParseError,
    ParseResult,
    Severity,
)
from decision_guardian.rules.parser import extract_rules
from decision_guardian.utils import is_under, truncate, workspace_root

_MARKER_RE = re.compile(r"<!--\s*(DECISION-(?:[A-Z0-9]+-)*[A-Z0-9]+)\s*-->", re.IGNORECASE)
_TITLE_RE = re.compile(r"##\s*Decision:\s*(.+)", re.IGNORECASE)
_FILES_HEADER_RE = re.compile(r"\*\*Files\*\*:\s*\n")
_FILE_BACKTICK_RE = re.compile(r"^\s*[-*]\s*`([^`]+)`\s*$")
_FILE_BARE_RE = re.compile(r"^\s*[-*]\s+([^\s`]+)\s*$")
_CONTEXT_RE = re.compile(r"###\s*Context\s*\n([\s\S]+?)(?=\n---+|\n<!--|\Z)")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

STATUS_SYNONYMS: dict[str, DecisionStatus] = {
    "active": DecisionStatus.ACTIVE,
    "enabled": DecisionStatus.ACTIVE,
    "live": DecisionStatus.ACTIVE,
    "deprecated": DecisionStatus.DEPRECATED,
    "obsolete": DecisionStatus.DEPRECATED,
    "superseded": DecisionStatus.SUPERSEDED,
    "replaced": DecisionStatus.SUPERSEDED,
    "archived": DecisionStatus.ARCHIVED,
    "inactive": DecisionStatus.ARCHIVED,
}

SEVERITY_SYNONYMS: dict[str, Severity] = {
    "info": Severity.INFO,
    "informational": Severity.INFO,
    "low": Severity.INFO,
    "warning": Severity.WARNING,
    "warn": Severity.WARNING,
    "medium": Severity.WARNING,
    "critical": Severity.CRITICAL,
    "error": Severity.CRITICAL,
    "high": Severity.CRITICAL,
    "blocker": Severity.CRITICAL,
}


@dataclass(frozen=True)
class _Block:
    raw: str
    line_number: int


def normalize_status(value: str) -> DecisionStatus:
    return STATUS_SYNONYMS.get(value.strip().lower(), DecisionStatus.ACTIVE)


def normalize_severity(value: str) -> Severity:
    return SEVERITY_SYNONYMS.get(value.strip().lower(), Severity.INFO)


class DecisionParser:
    def __init__(self, root: Optional[Path] = None, today: Optional[date] = None) -> None:
        self.root = root if root is not None else workspace_root()
        self.today = today

    def parse_file(self, path: Path) -> ParseResult:
        resolved = (self.root / path).resolve()
        if not is_under(resolved, self.root):
            return ParseResult(
                errors=[ParseError(line=0, message=f"Security: Path traversal detected - {path}")]
            )
        if resolved.is_dir():
            return self.parse_directory(resolved)
        try:
            text = resolved.read_text(encoding="utf-8")
        except OSError as exc:
            return ParseResult(errors=[ParseError(line=0, message=f"Failed to read file: {exc}")])
        return self.parse_content(text, resolved)

    def parse_directory(self, directory: Path) -> ParseResult:
        combined = ParseResult()
        try:
            entries = sorted(directory.iterdir())
        except OSError as exc:
            combined.errors.append(
                ParseError(line=0, message=f"Failed to list directory {directory}: {exc}")
            )
            return combined

        for entry in entries:
            if entry.is_dir():
                if not entry.name.startswith("."):
                    combined.merge(self.parse_directory(entry))
            elif entry.is_file() and entry.suffix.lower() in DECISION_FILE_SUFFIXES:
                try:
                    text = entry.read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError) as exc:
                    combined.errors.append(
                        ParseError(line=0, message=f"Failed to parse {entry.name}: {exc}")
                    )
                    continue
                combined.merge(self.parse_content(text, entry))
        return combined

    def parse_content(self, content: str, source_file: Path) -> ParseResult:
        result = ParseResult()
        for block in _split_blocks(content):
            decision = self._parse_block(block, source_file, result.warnings)
            if not decision.id or not decision.title:
                result.errors.append(
                    ParseError(
                        line=block.line_number,
                        message="Decision missing required fields (id or title)",
                        context=truncate(block.raw),
                    )
                )
                continue
            result.decisions.append(decision)
        return result

    def _parse_block(self, block: _Block, source_file: Path, warnings: list[str]) -> Decision:
        content = block.raw
        marker = _MARKER_RE.search(content)
        decision_id = marker.group(1).upper() if marker else ""
        title_match = _TITLE_RE.search(content)
        title = title_match.group(1).strip() if title_match else ""

        today = self.today or date.today()
        date_value = _extract_field(content, "Date", today.isoformat())
        for warning in _date_warnings(date_value, today):
            warnings.append(f"Decision {decision_id}: {warning}")

        rules = extract_rules(content, source_file, self.root)
        if rules.error:
            warnings.append(f"{decision_id}: {rules.error}")

        context_match = _CONTEXT_RE.search(content)
        return Decision(
            id=decision_id,
            title=title,
            date=date_value,
            status=normalize_status(_extract_field(content, "Status", "active")),
            severity=normalize_severity(_extract_field(content, "Severity", "info")),
            files=tuple(_extract_files(content)),
            rules=rules.rules,
            rules_error=rules.error,
            context=context_match.group(1).strip() if context_match else "",
            source_file=str(source_file),
            line_number=block.line_number,
        )


def _split_blocks(content: str) -> list[_Block]:
    if not content.strip():
        return []
    starts = [match.start() for match in _MARKER_RE.finditer(content)]
    blocks: list[_Block] = []
    for index, start in enumerate(starts):
        end = starts[index + 1] if index + 1 < len(starts) else len(content)
        blocks.append(_Block(raw=content[start:end], line_number=content.count("\n", 0, start) + 1))
    return blocks


def _extract_field(content: str, name: str, default: str) -> str:
    pattern = re.compile(rf"^\*\*{re.escape(name)}\*\*:\s*(.+)$", re.IGNORECASE | re.MULTILINE)
    match = pattern.search(content)
    return match.group(1).strip() if match else default


def _extract_files(content: str) -> list[str]:
    header = _FILES_HEADER_RE.search(content)
    if header is None:
        return []
    files: list[str] = []
    for line in content[header.end() :].split("\n"):
        quoted = _FILE_BACKTICK_RE.match(line)
        bare = _FILE_BARE_RE.match(line)
        if quoted:
            files.append(quoted.group(1).strip())
        elif bare:
            files.append(bare.group(1).strip())
        elif line.strip():
            break
    return files


def _date_warnings(value: str, today: date) -> list[str]:
    if not _ISO_DATE_RE.match(value):
        return [f"Invalid date format '{value}' - use YYYY-MM-DD"]
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        return [f"Invalid date '{value}' (day doesn't exist)"]
    if parsed > today:
        return ["Date is in the future - is this correct?"]
    if parsed < date(today.year - 10, 1, 1):
        return ["Date is >10 years old - consider archiving"]
    return []
