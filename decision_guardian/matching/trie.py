"""Path-segment trie used to pre-filter decisions per changed file.

The trie is a superset filter: every decision whose patterns could match a
path is returned, but candidates still need an exact glob check.
"""

from __future__ import annotations

from collections.abc import Iterable

from decision_guardian.matching.glob import has_magic, split_negation, trie_segments
from decision_guardian.models import Decision


class _TrieNode:
    __slots__ = ("children", "decisions", "wildcard_decisions")

    def __init__(self) -> None:
        self.children: dict[str, _TrieNode] = {}
        self.decisions: list[Decision] = []
        self.wildcard_decisions: list[Decision] = []


class PatternTrie:
    def __init__(self, decisions: Iterable[Decision] = ()) -> None:
        self._root = _TrieNode()
        self._size = 0
        for decision in decisions:
            self.add(decision)

    @classmethod
    def build(cls, decisions: Iterable[Decision]) -> "PatternTrie":
        return cls(decisions)

    def __len__(self) -> int:
        return self._size

    def add(self, decision: Decision) -> None:
        inserted = False
        for pattern in decision.files:
            negated, _ = split_negation(pattern)
            # Exclusions can only remove matches, so they never create candidates.
            if negated:
                continue
            self._insert(self._root, trie_segments(pattern), decision)
            inserted = True
        if inserted:
            self._size += 1

    def _insert(self, node: _TrieNode, parts: list[str], decision: Decision) -> None:
        while parts:
            part, parts = parts[0], parts[1:]
            if part == "**":
                node.wildcard_decisions.append(decision)
                if not parts:
                    return
                continue
            if has_magic(part):
                node.wildcard_decisions.append(decision)
                return
            child = node.children.get(part)
            if child is None:
                child = _TrieNode()
                node.children[part] = child
            node = child
        node.decisions.append(decision)

    def find_candidates(self, path: str) -> set[Decision]:
        """Return every decision that may match ``path`` (already normalized)."""
        candidates: set[Decision] = set()
        node = self._root
        for part in path.split("/"):
            candidates.update(node.wildcard_decisions)
            child = node.children.get(part)
            if child is None:
                return candidates
            node = child
        candidates.update(node.wildcard_decisions)
        candidates.update(node.decisions)
        return candidates
