from decision_guardian.matching.diff import EMPTY_PATCH, ChangeKind, parse_patch

MULTI_HUNK = "\n".join(
    [
        "diff --git a/src/app.py b/src/app.py",
        "--- a/src/app.py",
        "+++ b/src/app.py",
        "@@ -1,2 +1,3 @@",
        " import os",
        "+import sys",
        " ",
        "@@ -10,2 +11,2 @@ def main():",
        " def main():",
        "-    return 0",
        "+    return 1",
        "\\ No newline at end of file",
    ]
)


def test_parse_patch_tracks_line_numbers_across_hunks() -> None:
    parsed = parse_patch(MULTI_HUNK)

    assert parsed.added_lines == ["import sys", "    return 1"]
    assert parsed.added_line_numbers == [2, 12]
    assert parsed.added_text() == "import sys\n    return 1"


def test_parse_patch_skips_file_headers() -> None:
    parsed = parse_patch(MULTI_HUNK)

    assert all("a/src/app.py" not in line.content for line in parsed.lines)
    deleted = [line for line in parsed.lines if line.kind == ChangeKind.DELETE]
    assert [(line.content, line.old_lineno) for line in deleted] == [("    return 0", 11)]


def test_parse_patch_handles_crlf() -> None:
    parsed = parse_patch("@@ -0,0 +1,2 @@\r\n+first\r\n+second\r\n")

    assert parsed.added_lines == ["first", "second"]
    assert parsed.added_line_numbers == [1, 2]


def test_header_without_counts_defaults_to_one_line() -> None:
    parsed = parse_patch("@@ -3 +3 @@\n-old\n+new\n+ignored beyond hunk")

    assert parsed.added_lines == ["new"]


def test_empty_patch() -> None:
    assert parse_patch("") is EMPTY_PATCH
    assert parse_patch(None) is EMPTY_PATCH
    assert EMPTY_PATCH.added_lines == []
