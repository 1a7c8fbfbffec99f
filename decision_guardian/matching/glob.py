"""Glob pattern compilation.

Supported syntax: ``*`` and ``?`` within one path segment, ``**`` across
segments, ``[abc]``/``[!abc]`` character classes, ``{a,b}`` alternation and
``{1..3}`` ranges, backslash escapes, and a leading ``!`` marking an exclusion.
Dotfiles are matched like any other name and matching is case-sensitive.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from decision_guardian.constants import GLOB_SPECIAL_CHARS

_RANGE_RE = re.compile(r"^(-?\d+)\.\.(-?\d+)$|^([a-zA-Z])\.\.([a-zA-Z])$")
_MAX_RANGE_ITEMS = 1000


@dataclass(frozen=True)
class CompiledGlob:
    source: str
    body: str
    negated: bool
    regexes: tuple[re.Pattern, ...]

    def matches(self, path: str) -> bool:
        """Match ``path`` against the pattern body, ignoring the negation marker."""
        return any(regex.fullmatch(path) is not None for regex in self.regexes)


def has_magic(segment: str) -> bool:
    return any(char in GLOB_SPECIAL_CHARS for char in segment)


def split_negation(pattern: str) -> tuple[bool, str]:
    if pattern.startswith("!"):
        return True, pattern[1:]
    return False, pattern


def trie_segments(pattern: str) -> list[str]:
    return pattern.split("/")


@lru_cache(maxsize=4096)
def compile_glob(pattern: str) -> CompiledGlob:
    negated, body = split_negation(pattern)
    regexes = tuple(
        re.compile(_translate(expanded)) for expanded in dict.fromkeys(expand_braces(body))
    )
    return CompiledGlob(source=pattern, body=body, negated=negated, regexes=regexes)


def glob_matches(path: str, pattern: str) -> bool:
    return compile_glob(pattern).matches(path)


def expand_braces(pattern: str) -> list[str]:
    group = _find_brace_group(pattern)
    if group is None:
        return [pattern]

    start, end = group
    prefix, body, suffix = pattern[:start], pattern[start + 1 : end], pattern[end + 1 :]
    alternatives = _split_top_level(body)
    if len(alternatives) == 1:
        expanded_range = _expand_range(body)
        if expanded_range is None:
            return [
                f"{prefix}{{{inner}}}{rest}"
                for inner in expand_braces(body)
                for rest in expand_braces(suffix)
            ]
        alternatives = expanded_range

    results: list[str] = []
    for alternative in alternatives:
        results.extend(expand_braces(prefix + alternative + suffix))
    return results


def _find_brace_group(pattern: str) -> Optional[tuple[int, int]]:
    depth = 0
    start = -1
    index = 0
    while index < len(pattern):
        char = pattern[index]
        if char == "\\":
            index += 2
            continue
        if char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                return start, index
        index += 1
    return None


def _split_top_level(body: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    index = 0
    while index < len(body):
        char = body[index]
        if char == "\\" and index + 1 < len(body):
            current.append(body[index : index + 2])
            index += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        elif char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            index += 1
            continue
        current.append(char)
        index += 1
    parts.append("".join(current))
    return parts


def _expand_range(body: str) -> Optional[list[str]]:
    match = _RANGE_RE.match(body)
    if match is None:
        return None
    if match.group(1) is not None:
        first, last = int(match.group(1)), int(match.group(2))
        step = 1 if last >= first else -1
        if abs(last - first) >= _MAX_RANGE_ITEMS:
            return None
        return [str(value) for value in range(first, last + step, step)]
    first_char, last_char = ord(match.group(3)), ord(match.group(4))
    step = 1 if last_char >= first_char else -1
    return [chr(value) for value in range(first_char, last_char + step, step)]


def _collapse_globstars(segments: list[str]) -> list[str]:
    collapsed: list[str] = []
    for segment in segments:
        if segment == "**" and collapsed and collapsed[-1] == "**":
            continue
        collapsed.append(segment)
    return collapsed


def _translate(body: str) -> str:
    segments = _collapse_globstars(body.split("/"))
    if segments == ["**"]:
        return ".*"

    parts: list[str] = []
    last_index = len(segments) - 1
    for index, segment in enumerate(segments):
        if segment == "**":
            if index == 0:
                parts.append("(?:.*/)?")
            elif index == last_index:
                parts.append("(?:/.*)?")
            else:
                parts.append("/(?:.*/)?")
            continue
        if index > 0 and segments[index - 1] != "**":
            parts.append("/")
        parts.append(_translate_segment(segment))
    return "".join(parts)


def _translate_segment(segment: str) -> str:
    out: list[str] = []
    index = 0
    length = len(segment)
    while index < length:
        char = segment[index]
        if char == "\\" and index + 1 < length:
            out.append(re.escape(segment[index + 1]))
            index += 2
        elif char == "*":
            while index < length and segment[index] == "*":
                index += 1
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
            index += 1
        elif char == "[":
            translated, index = _translate_class(segment, index)
            out.append(translated)
        else:
            out.append(re.escape(char))
            index += 1
    return "".join(out)


def _translate_class(segment: str, start: int) -> tuple[str, int]:
    index = start + 1
    negate = index < len(segment) and segment[index] in "!^"
    if negate:
        index += 1
    members_start = index
    # A leading "]" is a literal member, not the end of the class.
    if index < len(segment) and segment[index] == "]":
        index += 1
    while index < len(segment) and segment[index] != "]":
        index += 1
    if index >= len(segment):
        return re.escape("["), start + 1

    members = segment[members_start:index]
    escaped = "".join(char if char == "-" else re.escape(char) for char in members)
    translated = f"[^/{escaped}]" if negate else f"[{escaped}]"
    try:
        re.compile(translated)
    except re.error:
        # Unusable classes such as "[z-a]" match literally.
        return re.escape(segment[start : index + 1]), index + 1
    return translated, index + 1
