from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from decision_guardian.rules.models import RuleNode


class DecisionStatus(str, Enum):
    ACTIVE = "active"
    DEPRECATED = "deprecated"
    SUPERSEDED = "superseded"
    ARCHIVED = "archived"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class FileStatus(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"


class DiffMode(str, Enum):
    STAGED = "staged"
    BRANCH = "branch"
    ALL = "all"


@dataclass(frozen=True)
class Decision:
    id: str
    title: str
    date: str = ""
    status: DecisionStatus = DecisionStatus.ACTIVE
    severity: Severity = Severity.INFO
    files: tuple[str, ...] = ()
    rules: Optional[RuleNode] = None
    rules_error: Optional[str] = None
    context: str = ""
    source_file: str = ""
    line_number: int = 0

    # Hash on provenance only; rule trees and context text are not rehashed per lookup.
    def __hash__(self) -> int:
        return hash((self.id, self.source_file, self.line_number))

    @property
    def is_active(self) -> bool:
        return self.status == DecisionStatus.ACTIVE

    @property
    def rules_rejected(self) -> bool:
        return self.rules_error is not None

    def has_content_rules(self) -> bool:
        return self.rules is not None and self.rules.has_content_rules()


@dataclass(frozen=True)
class FileDiff:
    filename: str
    status: FileStatus = FileStatus.MODIFIED
    additions: int = 0
    deletions: int = 0
    changes: int = 0
    patch: str = ""
    previous_filename: Optional[str] = None


@dataclass(frozen=True)
class RuleMatchDetails:
    matched: bool
    matched_patterns: tuple[str, ...] = ()
    matched_files: tuple[str, ...] = ()
    rule_depth: int = 0
    error: Optional[str] = None

    @classmethod
    def no_match(cls, depth: int = 0, error: Optional[str] = None) -> "RuleMatchDetails":
        return cls(matched=False, rule_depth=depth, error=error)


@dataclass(frozen=True)
class DecisionMatch:
    file: str
    decision: Decision
    matched_pattern: str
    match_details: Optional[RuleMatchDetails] = None

    def sort_key(self) -> tuple[str, str]:
        return (self.decision.id, self.file)


@dataclass
class SeverityGroups:
    critical: list[DecisionMatch] = field(default_factory=list)
    warning: list[DecisionMatch] = field(default_factory=list)
    info: list[DecisionMatch] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {
            Severity.CRITICAL.value: len(self.critical),
            Severity.WARNING.value: len(self.warning),
            Severity.INFO.value: len(self.info),
        }


@dataclass(frozen=True)
class ParseError:
    line: int
    message: str
    context: Optional[str] = None


@dataclass
class ParseResult:
    decisions: list[Decision] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def merge(self, other: "ParseResult") -> None:
        self.decisions.extend(other.decisions)
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def is_valid(self) -> bool:
        return not self.errors
