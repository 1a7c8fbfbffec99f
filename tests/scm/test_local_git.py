import shutil
import subprocess
from pathlib import Path

import pytest

from decision_guardian.errors import GitCommandError, InvalidBranchNameError
from decision_guardian.matching.diff import parse_patch
from decision_guardian.models import DiffMode, FileStatus
from decision_guardian.scm.local_git import (
    LocalGitProvider,
    NumstatEntry,
    is_valid_branch_name,
    parse_name_status,
    parse_numstat,
    split_patches,
)

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

DIFF_OUTPUT = """\
diff --git a/src/app.py b/src/app.py
index 83db48f..bf269f4 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1,2 +1,3 @@
 import os
+import sys
 
diff --git a/docs/new.md b/docs/new.md
new file mode 100644
index 0000000..e69de29
diff --git a/README.md b/README.md
--- a/README.md
+++ b/README.md
@@ -1 +1 @@
-old
+new"""


def test_parse_numstat_handles_binary_and_renames() -> None:
    output = "3\t1\tsrc/app.py\n-\t-\tassets/logo.png\n2\t0\tsrc/{old => new}/mod.py\n0\t0\ta.txt => b.txt"

    assert parse_numstat(output) == [
        NumstatEntry("src/app.py", 3, 1),
        NumstatEntry("assets/logo.png", 0, 0),
        NumstatEntry("src/new/mod.py", 2, 0),
        NumstatEntry("b.txt", 0, 0),
    ]


def test_parse_numstat_rename_from_root_directory() -> None:
    assert parse_numstat("1\t1\t{ => lib}/util.py") == [NumstatEntry("lib/util.py", 1, 1)]


def test_parse_name_status() -> None:
    output = "A\tdocs/new.md\nM\tsrc/app.py\nD\told.txt\nR087\tsrc/a.py\tsrc/b.py"

    assert parse_name_status(output) == {
        "docs/new.md": (FileStatus.ADDED, None),
        "src/app.py": (FileStatus.MODIFIED, None),
        "old.txt": (FileStatus.REMOVED, None),
        "src/b.py": (FileStatus.RENAMED, "src/a.py"),
    }


def test_split_patches_keeps_only_hunks() -> None:
    patches = split_patches(DIFF_OUTPUT)

    assert set(patches) == {"src/app.py", "README.md"}
    assert patches["src/app.py"].startswith("@@ -1,2 +1,3 @@")
    assert "+import sys" in patches["src/app.py"]
    assert patches["README.md"] == "@@ -1 +1 @@\n-old\n+new"


@pytest.mark.parametrize("name", ["main", "release/1.2", "feature_x-y"])
def test_valid_branch_names(name: str) -> None:
    assert is_valid_branch_name(name)


@pytest.mark.parametrize("name", ["", "main;rm -rf /", "a b", "$(whoami)", "x" * 256])
def test_invalid_branch_names(name: str) -> None:
    assert not is_valid_branch_name(name)
    with pytest.raises(InvalidBranchNameError):
        LocalGitProvider(mode=DiffMode.BRANCH, base_branch=name)


def test_diff_args_per_mode(tmp_path: Path) -> None:
    assert LocalGitProvider(DiffMode.STAGED, cwd=tmp_path).diff_args() == ["--cached"]
    assert LocalGitProvider(DiffMode.ALL, cwd=tmp_path).diff_args() == ["HEAD"]
    assert LocalGitProvider(DiffMode.BRANCH, "develop", cwd=tmp_path).diff_args() == ["develop...HEAD"]


def _git(cwd: Path, *args: str) -> None:
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True)


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    _git(tmp_path, "init", "-q")
    _git(tmp_path, "config", "user.email", "dev@example.com")
    _git(tmp_path, "config", "user.name", "Dev")
    _git(tmp_path, "config", "commit.gpgsign", "false")
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("import os\n", encoding="utf-8")
    _git(tmp_path, "add", ".")
    _git(tmp_path, "commit", "-q", "-m", "initial")
    return tmp_path


@requires_git
def test_staged_changes(git_repo: Path) -> None:
    (git_repo / "src" / "app.py").write_text("import os\npassword = 'x'\n", encoding="utf-8")
    (git_repo / "notes.md").write_text("hello\n", encoding="utf-8")
    _git(git_repo, "add", ".")

    provider = LocalGitProvider(DiffMode.STAGED, cwd=git_repo)
    diffs = {diff.filename: diff for diff in provider.get_file_diffs()}

    assert sorted(provider.get_changed_files()) == ["notes.md", "src/app.py"]
    assert diffs["src/app.py"].additions == 1
    assert diffs["src/app.py"].status == FileStatus.MODIFIED
    assert "+password = 'x'" in diffs["src/app.py"].patch
    assert diffs["notes.md"].status == FileStatus.ADDED


@requires_git
def test_patch_keeps_trailing_whitespace_of_last_added_line(git_repo: Path) -> None:
    (git_repo / "src" / "app.py").write_text("import os\nsecret = 1\n   \n", encoding="utf-8")
    _git(git_repo, "add", ".")

    (diff,) = LocalGitProvider(DiffMode.STAGED, cwd=git_repo).get_file_diffs()

    assert diff.patch.endswith("+   \n")
    assert parse_patch(diff.patch).added_lines == ["secret = 1", "   "]
    assert parse_patch(diff.patch).added_line_numbers == [2, 3]


@requires_git
def test_git_failure_raises(tmp_path: Path) -> None:
    provider = LocalGitProvider(DiffMode.BRANCH, "missing-branch", cwd=tmp_path)

    with pytest.raises(GitCommandError):
        provider.get_file_diffs()
