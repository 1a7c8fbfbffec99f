"""Static checks run on user regexes before they are ever executed.

The backtracking check is a star-height analysis: a repeated group that
itself contains a repeated term (``(a+)+``, ``(?:x*)*``) is rejected, as is
any pattern with an excessive number of repetition operators.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from decision_guardian.constants import (
    ALLOWED_REGEX_FLAGS,
    MAX_REGEX_PATTERN_LENGTH,
    MAX_REGEX_REPETITIONS,
)
from decision_guardian.errors import RuleValidationError, UnsafeRegexError

_BRACE_QUANTIFIER_RE = re.compile(r"\{(\d*)(,(\d*))?\}")
_GROUP_PREFIX_RE = re.compile(r"\?(?:P<\w+>|P=\w+\)|<\w+>|<=|<!|[:=!>]|[aiLmsux-]+[:)])")

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}


@dataclass(frozen=True)
class RegexSafetyReport:
    safe: bool
    reason: Optional[str] = None


@dataclass
class _Group:
    height: int = 0


def check_regex_safety(pattern: str) -> RegexSafetyReport:
    stack: list[_Group] = [_Group()]
    repetitions = 0
    # Star height of the term a following quantifier would apply to.
    last_height: Optional[int] = None
    index = 0
    length = len(pattern)

    while index < length:
        char = pattern[index]

        if char == "\\":
            index += 2
            last_height = 0
            continue

        if char == "[":
            index = _skip_class(pattern, index)
            last_height = 0
            continue

        if char == "(":
            stack.append(_Group())
            prefix = _GROUP_PREFIX_RE.match(pattern, index + 1)
            index = prefix.end() if prefix is not None and not prefix.group().endswith(")") else index + 1
            last_height = None
            continue

        if char == ")":
            if len(stack) == 1:
                return RegexSafetyReport(False, "unbalanced parenthesis")
            group = stack.pop()
            stack[-1].height = max(stack[-1].height, group.height)
            last_height = group.height
            index += 1
            continue

        repeating: Optional[bool] = None
        if char in "*+":
            repeating = True
            index += 1
        elif char == "?":
            repeating = False
            index += 1
        elif char == "{":
            quantifier = _BRACE_QUANTIFIER_RE.match(pattern, index)
            if quantifier is not None and (quantifier.group(1) or quantifier.group(3)):
                upper = quantifier.group(3) if quantifier.group(2) else quantifier.group(1)
                repeating = not upper or int(upper) > 1
                index = quantifier.end()

        if repeating is None:
            last_height = 0 if char != "|" else None
            index += 1
            continue

        if last_height is not None and repeating:
            repetitions += 1
            height = last_height + 1
            if height > 1:
                return RegexSafetyReport(False, "nested quantifier")
            stack[-1].height = max(stack[-1].height, height)
        # A quantifier cannot itself be quantified; a trailing "?" or "+" is a modifier.
        last_height = None

    if len(stack) != 1:
        return RegexSafetyReport(False, "unbalanced parenthesis")
    if repetitions > MAX_REGEX_REPETITIONS:
        return RegexSafetyReport(False, "too many repetitions")
    return RegexSafetyReport(True)


def is_safe_regex(pattern: str) -> bool:
    return check_regex_safety(pattern).safe


def _skip_class(pattern: str, start: int) -> int:
    index = start + 1
    if index < len(pattern) and pattern[index] == "^":
        index += 1
    if index < len(pattern) and pattern[index] == "]":
        index += 1
    while index < len(pattern):
        char = pattern[index]
        if char == "\\":
            index += 2
            continue
        if char == "]":
            return index + 1
        index += 1
    return index


def flags_are_allowed(flags: str) -> bool:
    return all(flag in ALLOWED_REGEX_FLAGS for flag in flags)


def compile_flags(flags: str) -> tuple[int, bool]:
    """Translate JS-style flags into ``re`` flags plus a sticky (anchored) marker.

    ``g`` and ``u`` have no effect on a single existence test.
    """
    value = 0
    for flag in flags:
        value |= _FLAG_MAP.get(flag, 0)
    return value, "y" in flags


def validate_regex(pattern: str, flags: str = "") -> None:
    if len(pattern) > MAX_REGEX_PATTERN_LENGTH:
        raise RuleValidationError(
            f"Regex pattern too long ({len(pattern)} > {MAX_REGEX_PATTERN_LENGTH} chars)"
        )
    report = check_regex_safety(pattern)
    if not report.safe:
        raise UnsafeRegexError(pattern, report.reason or "unsafe")
    if not flags_are_allowed(flags):
        raise RuleValidationError(f"Invalid regex flags: {flags}")
    compiled_flags, _ = compile_flags(flags)
    try:
        re.compile(pattern, compiled_flags)
    except re.error as exc:
        raise RuleValidationError(f"Invalid regex pattern syntax: {pattern} ({exc})") from exc
