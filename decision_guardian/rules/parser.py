"""Parse rule JSON into typed rule trees and pull rules out of decision Markdown."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from decision_guardian.constants import MAX_RULE_DEPTH
from decision_guardian.errors import RuleDepthError, RuleValidationError
from decision_guardian.matching.regex_safety import validate_regex
from decision_guardian.rules.models import (
    ContentMode,
    ContentRule,
    FileRule,
    MatchMode,
    RuleCondition,
    RuleNode,
)
from decision_guardian.rules.schema import rule_validator, schema_error_message
from decision_guardian.utils import is_foreign_absolute, is_under

_INLINE_RULES_RE = re.compile(r"\*\*Rules\*\*:\s*```json\s+([\s\S]+?)\s+```", re.IGNORECASE)
_EXTERNAL_RULES_RE = re.compile(
    r"\*\*Rules\*\*:\s*(?:\[.*?\]\((.*?)\)|(\S+\.json))", re.IGNORECASE
)


@dataclass(frozen=True)
class RuleParseResult:
    rules: Optional[RuleNode] = None
    error: Optional[str] = None


def parse_rule_tree(payload: Any, max_depth: int = MAX_RULE_DEPTH) -> RuleNode:
    if not isinstance(payload, dict):
        raise RuleValidationError("Rules must be a JSON object")
    error = next(iter(rule_validator().iter_errors(payload)), None)
    if error is not None:
        raise RuleValidationError(schema_error_message(error))
    return _build_node(payload, depth=0, max_depth=max_depth)


def _is_file_rule(raw: dict[str, Any]) -> bool:
    return "pattern" in raw and "conditions" not in raw


def _build_node(raw: dict[str, Any], depth: int, max_depth: int) -> RuleNode:
    if _is_file_rule(raw):
        return _build_file_rule(raw)
    if depth > max_depth:
        raise RuleDepthError(depth, max_depth)

    conditions: list[RuleNode] = []
    for child in raw.get("conditions", []):
        if _is_file_rule(child):
            conditions.append(_build_file_rule(child))
        else:
            conditions.append(_build_node(child, depth + 1, max_depth))
    return RuleCondition(
        match_mode=MatchMode(raw.get("match_mode", MatchMode.ANY.value)),
        conditions=tuple(conditions),
    )


def _build_file_rule(raw: dict[str, Any]) -> FileRule:
    exclude = raw.get("exclude", ())
    if isinstance(exclude, str):
        exclude = (exclude,)
    return FileRule(
        pattern=str(raw["pattern"]),
        exclude=tuple(str(item) for item in exclude),
        content_rules=tuple(_build_content_rule(item) for item in raw.get("content_rules", [])),
    )


def _build_content_rule(raw: dict[str, Any]) -> ContentRule:
    mode = ContentMode(raw["mode"])
    if mode == ContentMode.STRING:
        return ContentRule(mode=mode, patterns=tuple(raw["patterns"]))
    if mode == ContentMode.REGEX:
        pattern = str(raw["pattern"])
        flags = str(raw.get("flags", ""))
        validate_regex(pattern, flags)
        return ContentRule(mode=mode, pattern=pattern, flags=flags)
    if mode == ContentMode.LINE_RANGE:
        start, end = int(raw["start"]), int(raw["end"])
        if start > end:
            raise RuleValidationError("Line range start must be <= end")
        return ContentRule(mode=mode, start=start, end=end)
    if mode == ContentMode.JSON_PATH:
        return ContentRule(mode=mode, paths=tuple(raw["paths"]))
    return ContentRule(mode=mode)


def extract_rules(content: str, source_file: Path, workspace_root: Path) -> RuleParseResult:
    """Extract rules from a decision block.

    Inline rules are a ```json fence after ``**Rules**:``; external rules are a
    Markdown link or bare ``.json`` path resolved relative to the decision file,
    which must stay inside ``workspace_root``.
    """
    inline = _INLINE_RULES_RE.search(content)
    if inline is not None:
        try:
            return RuleParseResult(rules=parse_rule_tree(json.loads(inline.group(1))))
        except (json.JSONDecodeError, RuleValidationError) as exc:
            return RuleParseResult(error=f"Failed to parse inline JSON rules: {exc}")

    link = _EXTERNAL_RULES_RE.search(content)
    if link is None:
        return RuleParseResult()

    relative = link.group(1) or link.group(2)
    resolved = (source_file.parent / relative).resolve()
    if is_foreign_absolute(relative) or not is_under(resolved, workspace_root):
        return RuleParseResult(
            error=(
                f"Security Error: External rule file '{relative}' resolves to a path "
                f"outside the workspace. Resolved: {resolved}, Workspace: {workspace_root}"
            )
        )
    try:
        payload = json.loads(resolved.read_text(encoding="utf-8"))
        return RuleParseResult(rules=parse_rule_tree(payload))
    except (OSError, json.JSONDecodeError, RuleValidationError) as exc:
        return RuleParseResult(error=f"Failed to load external rules from {relative}: {exc}")
