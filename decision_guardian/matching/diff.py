"""Unified-diff hunk parsing.

Only hunk bodies are interpreted; file headers and anything outside a hunk
are skipped. Line numbers come from the ``@@ -a,b +c,d @@`` headers so they
stay correct across several hunks.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Optional

_HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


class ChangeKind(str, Enum):
    ADD = "add"
    DELETE = "del"
    NORMAL = "normal"


@dataclass(frozen=True)
class DiffLine:
    kind: ChangeKind
    content: str
    old_lineno: Optional[int] = None
    new_lineno: Optional[int] = None


@dataclass(frozen=True)
class ParsedPatch:
    lines: tuple[DiffLine, ...] = ()

    @property
    def added_lines(self) -> list[str]:
        return [line.content for line in self.lines if line.kind == ChangeKind.ADD]

    @property
    def added_line_numbers(self) -> list[int]:
        return [
            line.new_lineno
            for line in self.lines
            if line.kind == ChangeKind.ADD and line.new_lineno is not None
        ]

    def added_text(self) -> str:
        return "\n".join(self.added_lines)


EMPTY_PATCH = ParsedPatch()


@lru_cache(maxsize=256)
def parse_patch(patch: Optional[str]) -> ParsedPatch:
    if not patch:
        return EMPTY_PATCH

    lines: list[DiffLine] = []
    old_line = new_line = 0
    old_remaining = new_remaining = 0

    for raw in patch.split("\n"):
        line = raw[:-1] if raw.endswith("\r") else raw
        header = _HUNK_HEADER_RE.match(line)
        if header is not None:
            old_line = int(header.group(1))
            old_remaining = int(header.group(2)) if header.group(2) is not None else 1
            new_line = int(header.group(3))
            new_remaining = int(header.group(4)) if header.group(4) is not None else 1
            continue
        if old_remaining <= 0 and new_remaining <= 0:
            continue
        if line.startswith("\\"):
            continue

        marker, content = line[:1], line[1:]
        if marker == "+":
            lines.append(DiffLine(ChangeKind.ADD, content, new_lineno=new_line))
            new_line += 1
            new_remaining -= 1
        elif marker == "-":
            lines.append(DiffLine(ChangeKind.DELETE, content, old_lineno=old_line))
            old_line += 1
            old_remaining -= 1
        elif marker in (" ", ""):
            lines.append(
                DiffLine(ChangeKind.NORMAL, content, old_lineno=old_line, new_lineno=new_line)
            )
            old_line += 1
            new_line += 1
            old_remaining -= 1
            new_remaining -= 1

    return ParsedPatch(lines=tuple(lines))
