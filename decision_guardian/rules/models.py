"""Rule tree data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class MatchMode(str, Enum):
    ANY = "any"
    ALL = "all"


class ContentMode(str, Enum):
    STRING = "string"
    REGEX = "regex"
    LINE_RANGE = "line_range"
    FULL_FILE = "full_file"
    JSON_PATH = "json_path"


@dataclass(frozen=True)
class ContentRule:
    mode: ContentMode
    patterns: tuple[str, ...] = ()
    pattern: Optional[str] = None
    flags: str = ""
    start: Optional[int] = None
    end: Optional[int] = None
    paths: tuple[str, ...] = ()


@dataclass(frozen=True)
class FileRule:
    pattern: str
    exclude: tuple[str, ...] = ()
    content_rules: tuple[ContentRule, ...] = ()

    def has_content_rules(self) -> bool:
        return bool(self.content_rules)


@dataclass(frozen=True)
class RuleCondition:
    match_mode: MatchMode = MatchMode.ANY
    conditions: tuple[Union[FileRule, "RuleCondition"], ...] = field(
        default_factory=tuple
    )

    def has_content_rules(self) -> bool:
        return any(child.has_content_rules() for child in self.conditions)


RuleNode = Union[FileRule, RuleCondition]


def rule_depth(node: RuleNode) -> int:
    """Return the nesting depth of a rule tree; a lone FileRule has depth 0."""
    if isinstance(node, FileRule):
        return 0
    nested = [rule_depth(child) + 1 for child in node.conditions if isinstance(child, RuleCondition)]
    return max(nested, default=0)
