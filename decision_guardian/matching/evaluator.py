"""Recursive evaluation of decision rule trees against a changeset."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Optional

from decision_guardian.constants import MAX_RULE_DEPTH
from decision_guardian.matching.content import ContentMatchers
from decision_guardian.matching.glob import compile_glob
from decision_guardian.models import FileDiff, RuleMatchDetails
from decision_guardian.rules.models import FileRule, MatchMode, RuleCondition, RuleNode
from decision_guardian.utils import normalize_path

logger = logging.getLogger(__name__)


class RuleEvaluator:
    def __init__(
        self,
        content_matchers: Optional[ContentMatchers] = None,
        max_depth: int = MAX_RULE_DEPTH,
    ) -> None:
        self.content_matchers = content_matchers or ContentMatchers()
        self.max_depth = max_depth

    def close(self) -> None:
        self.content_matchers.close()

    def evaluate(
        self,
        rules: RuleNode,
        file_diffs: Sequence[FileDiff],
        depth: int = 0,
    ) -> RuleMatchDetails:
        if isinstance(rules, FileRule):
            return self.evaluate_file_rule(rules, file_diffs, depth)

        # Trees deeper than this are rejected by the rule parser; this only
        # guards hand-built trees.
        if depth > self.max_depth:
            message = f"Rule nesting exceeds max depth of {self.max_depth}"
            logger.warning(message)
            return RuleMatchDetails.no_match(depth, error=message)

        if not rules.conditions:
            return RuleMatchDetails.no_match(depth)

        results = [self.evaluate(child, file_diffs, depth + 1) for child in rules.conditions]
        errors = "; ".join(result.error for result in results if result.error)

        if rules.match_mode == MatchMode.ALL:
            matched = all(result.matched for result in results)
        else:
            matched = any(result.matched for result in results)

        if not matched:
            return RuleMatchDetails.no_match(depth, error=errors or None)

        fired = [result for result in results if result.matched]
        return RuleMatchDetails(
            matched=True,
            matched_patterns=tuple(sorted(p for result in fired for p in result.matched_patterns)),
            matched_files=tuple(sorted({f for result in fired for f in result.matched_files})),
            rule_depth=depth,
            error=errors or None,
        )

    def evaluate_file_rule(
        self,
        rule: FileRule,
        file_diffs: Sequence[FileDiff],
        depth: int = 0,
    ) -> RuleMatchDetails:
        try:
            candidates = [diff for diff in file_diffs if self.path_matches(rule, diff.filename)]
            if not candidates:
                return RuleMatchDetails.no_match(depth)

            if not rule.content_rules:
                return RuleMatchDetails(
                    matched=True,
                    matched_patterns=(rule.pattern,),
                    matched_files=tuple(sorted(normalize_path(d.filename) for d in candidates)),
                    rule_depth=depth,
                )

            patterns: set[str] = set()
            files: list[str] = []
            for diff in candidates:
                fired = self._evaluate_content_rules(rule, diff)
                if fired is not None:
                    patterns.update(fired)
                    files.append(normalize_path(diff.filename))

            if not files:
                return RuleMatchDetails.no_match(depth)
            return RuleMatchDetails(
                matched=True,
                matched_patterns=tuple(sorted(patterns)),
                matched_files=tuple(sorted(files)),
                rule_depth=depth,
            )
        except Exception as exc:
            logger.warning('Rule evaluation failed for pattern "%s": %s', rule.pattern, exc)
            return RuleMatchDetails.no_match(depth, error=str(exc))

    def _evaluate_content_rules(self, rule: FileRule, diff: FileDiff) -> Optional[list[str]]:
        """Return the fired predicates if every content rule matches, else None."""
        fired: list[str] = []
        for content_rule in rule.content_rules:
            result = self.content_matchers.match(content_rule, diff)
            if not result.matched:
                return None
            fired.extend(result.matched_patterns)
        return fired

    @staticmethod
    def path_matches(rule: FileRule, filename: str) -> bool:
        path = normalize_path(filename)
        if not compile_glob(normalize_path(rule.pattern)).matches(path):
            return False
        return not any(compile_glob(normalize_path(p)).matches(path) for p in rule.exclude)
