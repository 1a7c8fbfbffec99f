"""Collect changed files and patches from a local git checkout."""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from decision_guardian.errors import GitCommandError, InvalidBranchNameError
from decision_guardian.models import DiffMode, FileDiff, FileStatus
from decision_guardian.utils import normalize_path

logger = logging.getLogger(__name__)

_BRANCH_NAME_RE = re.compile(r"^[A-Za-z0-9\-_./]+$")
_DIFF_HEADER_RE = re.compile(r"^diff --git a/(.+?) b/(.+?)$", re.MULTILINE)
_FILE_SECTION_RE = re.compile(r"(?=^diff --git )", re.MULTILINE)

_STATUS_CODES = {
    "A": FileStatus.ADDED,
    "M": FileStatus.MODIFIED,
    "D": FileStatus.REMOVED,
    "R": FileStatus.RENAMED,
}


@dataclass(frozen=True)
class NumstatEntry:
    filename: str
    additions: int
    deletions: int


def is_valid_branch_name(name: str) -> bool:
    return 0 < len(name) < 256 and _BRANCH_NAME_RE.match(name) is not None


class LocalGitProvider:
    def __init__(
        self,
        mode: DiffMode = DiffMode.STAGED,
        base_branch: str = "main",
        cwd: Optional[Path] = None,
    ) -> None:
        if not is_valid_branch_name(base_branch):
            raise InvalidBranchNameError(base_branch)
        self.mode = mode
        self.base_branch = base_branch
        self.cwd = cwd or Path.cwd()

    def diff_args(self) -> list[str]:
        if self.mode == DiffMode.BRANCH:
            return [f"{self.base_branch}...HEAD"]
        if self.mode == DiffMode.ALL:
            return ["HEAD"]
        return ["--cached"]

    def get_changed_files(self) -> list[str]:
        output = self._git(["diff", *self.diff_args(), "--name-only"])
        return [normalize_path(line.strip()) for line in output.splitlines() if line.strip()]

    def get_file_diffs(self) -> list[FileDiff]:
        args = self.diff_args()
        entries = parse_numstat(self._git(["diff", *args, "--numstat"]))
        statuses = parse_name_status(self._git(["diff", *args, "--name-status"]))
        patches = split_patches(self._git(["diff", *args, "-U3"], strip=False))
        logger.debug("git diff %s: %d files", " ".join(args), len(entries))

        diffs: list[FileDiff] = []
        for entry in entries:
            status, previous = statuses.get(entry.filename, (FileStatus.MODIFIED, None))
            diffs.append(
                FileDiff(
                    filename=entry.filename,
                    status=status,
                    additions=entry.additions,
                    deletions=entry.deletions,
                    changes=entry.additions + entry.deletions,
                    patch=patches.get(entry.filename, ""),
                    previous_filename=previous,
                )
            )
        return diffs

    def _git(self, args: list[str], strip: bool = True) -> str:
        try:
            completed = subprocess.run(
                ["git", *args],
                cwd=self.cwd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
        except OSError as exc:
            raise GitCommandError(args, str(exc)) from exc
        if completed.returncode != 0:
            raise GitCommandError(args, completed.stderr.strip())
        # Patch text keeps trailing whitespace, which may belong to an added line.
        return completed.stdout.strip() if strip else completed.stdout


def parse_numstat(output: str) -> list[NumstatEntry]:
    entries: list[NumstatEntry] = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 3:
            continue
        additions = 0 if parts[0] == "-" else int(parts[0])
        deletions = 0 if parts[1] == "-" else int(parts[1])
        entries.append(NumstatEntry(_numstat_path(parts[2]), additions, deletions))
    return entries


def _numstat_path(raw: str) -> str:
    # Renames are reported as "old => new" or "dir/{old => new}/file".
    if "{" in raw and " => " in raw:
        raw = re.sub(r"\{[^}]*? => ([^}]*)\}", r"\1", raw).replace("//", "/")
    elif " => " in raw:
        raw = raw.split(" => ", 1)[1]
    return normalize_path(raw)


def parse_name_status(output: str) -> dict[str, tuple[FileStatus, Optional[str]]]:
    statuses: dict[str, tuple[FileStatus, Optional[str]]] = {}
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 2:
            continue
        status = _STATUS_CODES.get(parts[0][:1], FileStatus.MODIFIED)
        if status == FileStatus.RENAMED and len(parts) >= 3:
            statuses[normalize_path(parts[2])] = (status, normalize_path(parts[1]))
        else:
            statuses[normalize_path(parts[1])] = (status, None)
    return statuses


def split_patches(output: str) -> dict[str, str]:
    patches: dict[str, str] = {}
    for section in _FILE_SECTION_RE.split(output):
        header = _DIFF_HEADER_RE.search(section)
        if header is None:
            continue
        hunk_start = section.find("\n@@")
        if hunk_start != -1:
            patches[normalize_path(header.group(2))] = section[hunk_start + 1 :]
    return patches
