"""Tests for the unified diff added-line index."""

from __future__ import annotations

from leakscope.scanner.diff_index import index_added_lines, index_added_lines_by_commit


class TestIndexAddedLines:
    """Tests for index_added_lines."""

    def test_sample_diff_coordinates(self, sample_diff: str):
        """Added lines are numbered from the hunk header's new-file start."""
        assert index_added_lines(sample_diff) == {
            ("app/config.py", 2),
            ("app/config.py", 4),
            ("app/config.py", 23),
            ("new.env", 1),
            ("new.env", 2),
        }

    def test_size_matches_plus_lines(self, sample_diff: str):
        """One coordinate per '+' line, headers excluded."""
        plus_lines = [
            line
            for line in sample_diff.splitlines()
            if line.startswith("+") and not line.startswith("+++")
        ]
        assert len(index_added_lines(sample_diff)) == len(plus_lines)

    def test_empty_diff(self):
        """An empty diff adds nothing."""
        assert index_added_lines("") == set()

    def test_hunk_header_without_lengths(self):
        """Omitted hunk lengths default to one line."""
        diff = (
            "diff --git a/a.txt b/a.txt\n"
            "--- a/a.txt\n"
            "+++ b/a.txt\n"
            "@@ -3 +3 @@\n"
            "-old\n"
            "+new\n"
        )
        assert index_added_lines(diff) == {("a.txt", 3)}

    def test_removed_lines_do_not_advance_counter(self):
        """Deletions leave the new-file counter alone."""
        diff = (
            "diff --git a/a.txt b/a.txt\n"
            "--- a/a.txt\n"
            "+++ b/a.txt\n"
            "@@ -10,4 +10,3 @@\n"
            " keep\n"
            "-gone 1\n"
            "-gone 2\n"
            "+added\n"
            " keep too\n"
        )
        assert index_added_lines(diff) == {("a.txt", 11)}

    def test_counter_resets_per_file(self):
        """Each file's counter starts from its own hunk header."""
        diff = (
            "diff --git a/one.py b/one.py\n"
            "--- a/one.py\n"
            "+++ b/one.py\n"
            "@@ -1,1 +1,2 @@\n"
            " a\n"
            "+b\n"
            "diff --git a/two.py b/two.py\n"
            "--- a/two.py\n"
            "+++ b/two.py\n"
            "@@ -5,0 +6,1 @@\n"
            "+c\n"
        )
        assert index_added_lines(diff) == {("one.py", 2), ("two.py", 6)}

    def test_content_that_looks_like_headers(self):
        """Hunk bodies are bounded by the header, so '+++'/'---' content is content."""
        diff = (
            "diff --git a/notes.md b/notes.md\n"
            "--- a/notes.md\n"
            "+++ b/notes.md\n"
            "@@ -1,1 +1,3 @@\n"
            "--- removed rule\n"
            "+++ added heading\n"
            "+@@ not a header @@\n"
            "+plain\n"
        )
        assert index_added_lines(diff) == {
            ("notes.md", 1),
            ("notes.md", 2),
            ("notes.md", 3),
        }

    def test_no_newline_marker_ignored(self):
        """The '\\ No newline' marker is neither context nor an addition."""
        diff = (
            "diff --git a/a.txt b/a.txt\n"
            "--- a/a.txt\n"
            "+++ b/a.txt\n"
            "@@ -1 +1,2 @@\n"
            " first\n"
            "\\ No newline at end of file\n"
            "+second\n"
        )
        assert index_added_lines(diff) == {("a.txt", 2)}

    def test_binary_section_skipped(self):
        """Binary sections have no textual header pair and are skipped."""
        diff = (
            "diff --git a/img.png b/img.png\n"
            "index 1111111..2222222 100644\n"
            "Binary files a/img.png and b/img.png differ\n"
            "diff --git a/a.txt b/a.txt\n"
            "--- a/a.txt\n"
            "+++ b/a.txt\n"
            "@@ -0,0 +1 @@\n"
            "+hello\n"
        )
        assert index_added_lines(diff) == {("a.txt", 1)}

    def test_plus_header_without_minus_header_is_ignored(self):
        """A stray '+++' line without its '---' partner starts no file."""
        diff = "+++ b/ghost.txt\n@@ -0,0 +1 @@\n+boo\n"
        assert index_added_lines(diff) == set()

    def test_malformed_hunk_header_skipped(self):
        """A broken hunk header does not abort the rest of the diff."""
        diff = (
            "diff --git a/bad.txt b/bad.txt\n"
            "--- a/bad.txt\n"
            "+++ b/bad.txt\n"
            "@@ -x,y +z @@\n"
            "+ignored\n"
            "diff --git a/good.txt b/good.txt\n"
            "--- a/good.txt\n"
            "+++ b/good.txt\n"
            "@@ -1,0 +2,1 @@\n"
            "+kept\n"
        )
        assert index_added_lines(diff) == {("good.txt", 2)}

    def test_truncated_hunk_recovers_at_next_file(self):
        """A hunk shorter than its header claims ends at the next header."""
        diff = (
            "diff --git a/a.txt b/a.txt\n"
            "--- a/a.txt\n"
            "+++ b/a.txt\n"
            "@@ -1,5 +1,9 @@\n"
            "+only one\n"
            "diff --git a/b.txt b/b.txt\n"
            "--- a/b.txt\n"
            "+++ b/b.txt\n"
            "@@ -0,0 +1 @@\n"
            "+b line\n"
        )
        assert index_added_lines(diff) == {("a.txt", 1), ("b.txt", 1)}

    def test_path_with_spaces_and_tab_suffix(self):
        """git appends a tab after paths containing spaces."""
        diff = (
            "diff --git a/my file.txt b/my file.txt\n"
            "--- a/my file.txt\t\n"
            "+++ b/my file.txt\t\n"
            "@@ -0,0 +1 @@\n"
            "+x\n"
        )
        assert index_added_lines(diff) == {("my file.txt", 1)}

    def test_renamed_file_uses_new_path(self):
        """Renames are indexed under the new path."""
        diff = (
            "diff --git a/old/name.py b/new/name.py\n"
            "similarity index 90%\n"
            "rename from old/name.py\n"
            "rename to new/name.py\n"
            "--- a/old/name.py\n"
            "+++ b/new/name.py\n"
            "@@ -1,2 +1,2 @@\n"
            " a\n"
            "-b\n"
            "+c\n"
        )
        assert index_added_lines(diff) == {("new/name.py", 2)}


class TestIndexAddedLinesByCommit:
    """Tests for index_added_lines_by_commit."""

    def test_lines_keyed_by_commit(self):
        log = (
            "\0bbbb\n"
            "\n"
            "diff --git a/a.txt b/a.txt\n"
            "--- a/a.txt\n"
            "+++ b/a.txt\n"
            "@@ -0,0 +1 @@\n"
            "+header\n"
            "\0aaaa\n"
            "\n"
            "diff --git a/a.txt b/a.txt\n"
            "--- a/a.txt\n"
            "+++ b/a.txt\n"
            "@@ -1,0 +2 @@\n"
            "+secret\n"
        )
        assert index_added_lines_by_commit(log) == {("bbbb", "a.txt", 1), ("aaaa", "a.txt", 2)}

    def test_commit_without_patch(self):
        """Merge commits print only their marker line."""
        log = "\0cccc\n\0dddd\n\ndiff --git a/b b/b\n--- /dev/null\n+++ b/b\n@@ -0,0 +1 @@\n+x\n"
        assert index_added_lines_by_commit(log) == {("dddd", "b", 1)}

    def test_text_before_first_marker_ignored(self):
        assert index_added_lines_by_commit("+++ b/a\n@@ -0,0 +1 @@\n+x\n") == set()
