"""Match changed files against active decisions.

Path patterns go through the trie pre-filter and are then re-checked with
full glob semantics. Decisions carrying a rule tree are additionally
evaluated against the whole changeset, in bounded batches.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from decision_guardian.constants import PATH_CHUNK_SIZE, RULE_BATCH_SIZE
from decision_guardian.matching.evaluator import RuleEvaluator
from decision_guardian.matching.glob import compile_glob
from decision_guardian.matching.trie import PatternTrie
from decision_guardian.models import (
    Decision,
    DecisionMatch,
    FileDiff,
    RuleMatchDetails,
    SeverityGroups,
    Severity,
)
from decision_guardian.utils import normalize_path

logger = logging.getLogger(__name__)

_EVIDENCE_PREVIEW = 3


class FileMatcher:
    def __init__(
        self,
        decisions: Iterable[Decision],
        evaluator: Optional[RuleEvaluator] = None,
        batch_size: int = RULE_BATCH_SIZE,
    ) -> None:
        self.decisions = [_normalize_decision(decision) for decision in decisions]
        # A decision whose rule tree was rejected contributes no matches.
        self.rejected_decisions = [d for d in self.decisions if d.is_active and d.rules_rejected]
        for decision in self.rejected_decisions:
            logger.warning(
                "Decision %s skipped, its rules were rejected: %s",
                decision.id,
                decision.rules_error,
                extra={"decision_id": decision.id},
            )
        self.active_decisions = [d for d in self.decisions if d.is_active and not d.rules_rejected]
        self.trie = PatternTrie(self.active_decisions)
        self.evaluator = evaluator or RuleEvaluator()
        self.batch_size = max(1, batch_size)
        self.warnings: list[str] = []
        self._order = {decision: index for index, decision in enumerate(self.active_decisions)}

    def __enter__(self) -> "FileMatcher":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def close(self) -> None:
        self.evaluator.close()

    def find_matches_with_diffs(self, file_diffs: Sequence[FileDiff]) -> list[DecisionMatch]:
        self._reset_warnings()
        diffs = [_normalize_diff(diff) for diff in file_diffs]
        path_hits = self._collect_path_hits(diff.filename for diff in diffs)

        matches: dict[tuple[str, Decision], DecisionMatch] = {}
        for decision, hits in path_hits.items():
            if decision.rules is not None:
                continue
            for file, pattern in hits:
                matches[(file, decision)] = _path_match(file, decision, pattern)

        rule_decisions = [d for d in self.active_decisions if d.rules is not None]
        for decision, details in self._evaluate_rule_decisions(rule_decisions, diffs):
            for match in self._rule_matches(decision, details, path_hits.get(decision, [])):
                matches.setdefault((match.file, decision), match)

        return self._sorted(matches.values())

    def find_matches(self, filenames: Sequence[str]) -> list[DecisionMatch]:
        """Path-only matching for when no diff content is available."""
        self._reset_warnings()
        skipped = [d.id for d in self.active_decisions if d.has_content_rules()]
        logger.warning(
            "Diff content unavailable; matching on file paths only (%d files)",
            len(filenames),
        )
        if skipped:
            message = "Skipped decisions with content rules (no diff content): " + ", ".join(skipped)
            logger.warning(message)
            self.warnings.append(message)

        normalized = [normalize_path(name) for name in filenames]
        path_hits: dict[Decision, list[tuple[str, str]]] = {}
        for start in range(0, len(normalized), PATH_CHUNK_SIZE):
            chunk_hits = self._collect_path_hits(normalized[start : start + PATH_CHUNK_SIZE])
            for decision, hits in chunk_hits.items():
                path_hits.setdefault(decision, []).extend(hits)

        matches: dict[tuple[str, Decision], DecisionMatch] = {}
        for decision, hits in path_hits.items():
            if decision.rules is not None:
                continue
            for file, pattern in hits:
                matches[(file, decision)] = _path_match(file, decision, pattern)

        rule_decisions = [
            d for d in self.active_decisions if d.rules is not None and not d.has_content_rules()
        ]
        diffs = [FileDiff(filename=name) for name in normalized]
        for decision, details in self._evaluate_rule_decisions(rule_decisions, diffs):
            for match in self._rule_matches(decision, details, path_hits.get(decision, [])):
                matches.setdefault((match.file, decision), match)

        return self._sorted(matches.values())

    def _reset_warnings(self) -> None:
        self.warnings = [
            f"{decision.id}: rules rejected, decision skipped" for decision in self.rejected_decisions
        ]

    @staticmethod
    def match_decision_files(file: str, decision: Decision) -> Optional[str]:
        """Return the last inclusion pattern matching ``file``, or None.

        Any matching ``!`` exclusion rejects the file outright.
        """
        matched: Optional[str] = None
        for pattern in decision.files:
            compiled = compile_glob(pattern)
            if not compiled.matches(file):
                continue
            if compiled.negated:
                return None
            matched = pattern
        return matched

    @staticmethod
    def group_by_severity(matches: Iterable[DecisionMatch]) -> SeverityGroups:
        groups = SeverityGroups()
        for match in matches:
            if match.decision.severity == Severity.CRITICAL:
                groups.critical.append(match)
            elif match.decision.severity == Severity.WARNING:
                groups.warning.append(match)
            else:
                groups.info.append(match)
        return groups

    def _collect_path_hits(self, files: Iterable[str]) -> dict[Decision, list[tuple[str, str]]]:
        hits: dict[Decision, list[tuple[str, str]]] = {}
        broken: set[Decision] = set()
        for file in files:
            for decision in self.trie.find_candidates(file):
                if decision in broken:
                    continue
                try:
                    pattern = self.match_decision_files(file, decision)
                except re.error as exc:
                    broken.add(decision)
                    self._record_failure(decision, f"invalid file pattern ({exc})")
                    continue
                if pattern is not None:
                    hits.setdefault(decision, []).append((file, pattern))
        return hits

    def _record_failure(self, decision: Decision, error: str) -> None:
        message = f"{decision.id}: {error}"
        if message in self.warnings:
            return
        logger.warning(
            "Decision %s skipped: %s",
            decision.id,
            error,
            extra={"decision_id": decision.id},
        )
        self.warnings.append(message)

    def _evaluate_rule_decisions(
        self, decisions: Sequence[Decision], diffs: Sequence[FileDiff]
    ) -> list[tuple[Decision, RuleMatchDetails]]:
        if not decisions:
            return []

        results: list[tuple[Decision, RuleMatchDetails]] = []
        total_batches = (len(decisions) + self.batch_size - 1) // self.batch_size
        with ThreadPoolExecutor(
            max_workers=min(self.batch_size, len(decisions)),
            thread_name_prefix="rule-eval",
        ) as executor:
            for number, start in enumerate(range(0, len(decisions), self.batch_size), start=1):
                logger.debug("Processing rule batch %d/%d", number, total_batches)
                batch = decisions[start : start + self.batch_size]
                futures = [
                    (decision, executor.submit(self._evaluate_decision, decision, diffs))
                    for decision in batch
                ]
                failures = 0
                for decision, future in futures:
                    details, error = future.result()
                    if error is not None:
                        failures += 1
                        self.warnings.append(f"{decision.id}: {error}")
                    elif details is not None and details.matched:
                        results.append((decision, details))
                if failures:
                    logger.warning(
                        "%d decision evaluations failed in this batch", failures
                    )
        return results

    def _evaluate_decision(
        self, decision: Decision, diffs: Sequence[FileDiff]
    ) -> tuple[Optional[RuleMatchDetails], Optional[str]]:
        if decision.rules is None:
            return None, None
        try:
            details = self.evaluator.evaluate(decision.rules, diffs)
        except Exception as exc:
            logger.warning(
                "Decision %s evaluation failed, treated as no match: %s",
                decision.id,
                exc,
                extra={"decision_id": decision.id},
            )
            return None, str(exc)
        if details.error:
            logger.debug("Decision %s evaluated with errors: %s", decision.id, details.error)
        return details, None

    def _rule_matches(
        self,
        decision: Decision,
        details: RuleMatchDetails,
        path_hits: list[tuple[str, str]],
    ) -> list[DecisionMatch]:
        if decision.files:
            return [
                DecisionMatch(
                    file=file,
                    decision=decision,
                    matched_pattern=pattern,
                    match_details=dataclasses.replace(
                        details,
                        matched_patterns=tuple(sorted({pattern, *details.matched_patterns})),
                        matched_files=(file,),
                    ),
                )
                for file, pattern in path_hits
            ]

        summary = ", ".join(details.matched_patterns[:_EVIDENCE_PREVIEW])
        return [
            DecisionMatch(file=file, decision=decision, matched_pattern=summary, match_details=details)
            for file in details.matched_files
        ]

    def _sorted(self, matches: Iterable[DecisionMatch]) -> list[DecisionMatch]:
        return sorted(matches, key=lambda m: (self._order.get(m.decision, 0), m.file))


def _path_match(file: str, decision: Decision, pattern: str) -> DecisionMatch:
    return DecisionMatch(
        file=file,
        decision=decision,
        matched_pattern=pattern,
        match_details=RuleMatchDetails(
            matched=True,
            matched_patterns=(pattern,),
            matched_files=(file,),
        ),
    )


def _normalize_decision(decision: Decision) -> Decision:
    files = tuple(normalize_path(pattern) for pattern in decision.files)
    if files == decision.files:
        return decision
    return dataclasses.replace(decision, files=files)


def _normalize_diff(diff: FileDiff) -> FileDiff:
    filename = normalize_path(diff.filename)
    if filename == diff.filename:
        return diff
    return dataclasses.replace(diff, filename=filename)
