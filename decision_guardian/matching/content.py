"""Content predicates evaluated against the added lines of a diff."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional

from decision_guardian.constants import MAX_CONTENT_BYTES, MAX_REGEX_PATTERN_LENGTH
from decision_guardian.errors import RegexExecutionError, RegexTimeoutError
from decision_guardian.matching.cache import RegexResultCache
from decision_guardian.matching.diff import parse_patch
from decision_guardian.matching.regex_safety import (
    check_regex_safety,
    compile_flags,
    flags_are_allowed,
)
from decision_guardian.matching.sandbox import RegexSandbox
from decision_guardian.models import FileDiff
from decision_guardian.rules.models import ContentMode, ContentRule

logger = logging.getLogger(__name__)

_INDEX_SUFFIX_RE = re.compile(r"\[[^\]]*\]$")


@dataclass(frozen=True)
class ContentMatchResult:
    matched: bool
    matched_patterns: tuple[str, ...] = ()


NO_MATCH = ContentMatchResult(matched=False)


class ContentMatchers:
    def __init__(
        self,
        cache: Optional[RegexResultCache] = None,
        sandbox: Optional[RegexSandbox] = None,
        max_content_bytes: int = MAX_CONTENT_BYTES,
        max_pattern_length: int = MAX_REGEX_PATTERN_LENGTH,
    ) -> None:
        self.cache = cache if cache is not None else RegexResultCache()
        self.sandbox = sandbox if sandbox is not None else RegexSandbox()
        self.max_content_bytes = max_content_bytes
        self.max_pattern_length = max_pattern_length
        self._dispatch: dict[ContentMode, Callable[[ContentRule, FileDiff], ContentMatchResult]] = {
            ContentMode.STRING: self.match_string,
            ContentMode.REGEX: self.match_regex,
            ContentMode.LINE_RANGE: self.match_line_range,
            ContentMode.FULL_FILE: self.match_full_file,
            ContentMode.JSON_PATH: self.match_json_path,
        }

    def close(self) -> None:
        self.sandbox.close()

    def match(self, rule: ContentRule, file_diff: FileDiff) -> ContentMatchResult:
        handler = self._dispatch.get(rule.mode)
        if handler is None:
            raise ValueError(f"Unhandled content match mode: {rule.mode}")
        return handler(rule, file_diff)

    def match_string(self, rule: ContentRule, file_diff: FileDiff) -> ContentMatchResult:
        added = parse_patch(file_diff.patch).added_lines
        found = tuple(
            pattern
            for pattern in rule.patterns
            if any(pattern in line for line in added)
        )
        return ContentMatchResult(matched=bool(found), matched_patterns=found)

    def match_regex(self, rule: ContentRule, file_diff: FileDiff) -> ContentMatchResult:
        pattern = rule.pattern or ""
        flags = rule.flags or ""
        if not pattern:
            return NO_MATCH

        report = check_regex_safety(pattern)
        if not report.safe:
            logger.warning(
                "Unsafe regex pattern rejected (%s): %s",
                report.reason,
                pattern,
                extra={"pattern": pattern},
            )
            return NO_MATCH

        if not flags_are_allowed(flags):
            logger.warning("Invalid regex flags rejected: %s", flags, extra={"flags": flags})
            return NO_MATCH

        if len(pattern) > self.max_pattern_length:
            logger.warning(
                "Regex pattern too long (%d > %d chars)",
                len(pattern),
                self.max_pattern_length,
            )
            return NO_MATCH

        content = parse_patch(file_diff.patch).added_text()
        size = len(content.encode("utf-8"))
        if size > self.max_content_bytes:
            logger.warning(
                "Content of %s exceeds size limit (%d > %d bytes), regex skipped",
                file_diff.filename,
                size,
                self.max_content_bytes,
            )
            return NO_MATCH

        key = RegexResultCache.make_key(pattern, flags, content)
        cached = self.cache.get(key)
        if cached is None:
            cached = self._run_regex(pattern, flags, content)
            if cached is None:
                return NO_MATCH
            self.cache.put(key, cached)

        return ContentMatchResult(matched=cached, matched_patterns=(pattern,) if cached else ())

    def _run_regex(self, pattern: str, flags: str, content: str) -> Optional[bool]:
        compiled_flags, anchored = compile_flags(flags)
        try:
            return self.sandbox.search(pattern, content, flags=compiled_flags, anchored=anchored)
        except RegexTimeoutError as exc:
            logger.warning(
                "Regex timed out after %.2fs, treated as no match: %s",
                exc.timeout_seconds,
                pattern,
                extra={"pattern": pattern},
            )
        except RegexExecutionError as exc:
            logger.warning("Regex check failed for pattern %s: %s", pattern, exc.detail)
        return None

    def match_line_range(self, rule: ContentRule, file_diff: FileDiff) -> ContentMatchResult:
        if rule.start is None or rule.end is None:
            return NO_MATCH
        numbers = parse_patch(file_diff.patch).added_line_numbers
        matched = any(rule.start <= number <= rule.end for number in numbers)
        if not matched:
            return NO_MATCH
        return ContentMatchResult(matched=True, matched_patterns=(f"lines {rule.start}-{rule.end}",))

    def match_full_file(self, rule: ContentRule, file_diff: FileDiff) -> ContentMatchResult:
        return ContentMatchResult(matched=True, matched_patterns=("full_file",))

    def match_json_path(self, rule: ContentRule, file_diff: FileDiff) -> ContentMatchResult:
        # Line-based approximation: looks for the last key of each path being
        # assigned on an added line, not a structural JSON comparison.
        content = parse_patch(file_diff.patch).added_text()
        found = tuple(path for path in rule.paths if _json_key_regex(path).search(content))
        return ContentMatchResult(matched=bool(found), matched_patterns=found)


def json_path_key(path: str) -> str:
    key = path.rsplit(".", 1)[-1] or path
    key = _INDEX_SUFFIX_RE.sub("", key)
    return key.strip("\"'")


@lru_cache(maxsize=512)
def _json_key_regex(path: str) -> re.Pattern:
    key = re.escape(json_path_key(path))
    return re.compile(rf"(?:\"{key}\"|'{key}'|(?<![\w\"'-]){key})\s*:")
