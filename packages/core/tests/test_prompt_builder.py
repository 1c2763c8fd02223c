"""Tests for payload construction and the chunking policy."""

import pytest

from difflens_core.errors import NoChangesDetected, PayloadTooLarge
from difflens_core.models import Changeset, ChangedFile, DiffHunk, FileStatus, LineKind
from difflens_core.prompt import (
    INSTRUCTIONS,
    SYSTEM_PROMPT,
    build_payloads,
    render_file_block,
    serialize_changeset,
)


def make_hunk(start: int, n_lines: int = 3, tag: str = "x") -> DiffHunk:
    lines = [(LineKind.CONTEXT, f"{tag} context {start}")]
    lines += [(LineKind.ADDED, f"{tag} added {start}.{i}") for i in range(n_lines - 1)]
    return DiffHunk(old_range=(start, 1), new_range=(start, n_lines), lines=tuple(lines))


def make_file(path: str, n_hunks: int = 1, n_lines: int = 3) -> ChangedFile:
    return ChangedFile(
        path=path,
        hunks=tuple(make_hunk(10 * (i + 1), n_lines, tag=path) for i in range(n_hunks)),
    )


def hunk_texts(changeset: Changeset) -> list[str]:
    return [h.to_text() for f in changeset.files for h in f.hunks]


class TestSinglePayload:
    def test_small_changeset_gives_one_payload(self):
        changeset = Changeset(files=(make_file("a.py"), make_file("b.py", n_hunks=2)))
        payloads = build_payloads(changeset, max_chars=len(serialize_changeset(changeset)))
        assert len(payloads) == 1
        assert payloads[0].chunk_index == 1
        assert payloads[0].chunk_count == 1
        assert payloads[0].files == ("a.py", "b.py")

    def test_payload_contains_every_hunk_verbatim(self):
        changeset = Changeset(files=(make_file("a.py", n_hunks=3), make_file("b.py")))
        (payload,) = build_payloads(changeset)
        for text in hunk_texts(changeset):
            assert text in payload.prompt

    def test_payload_wraps_diff_in_instructions(self):
        (payload,) = build_payloads(Changeset(files=(make_file("a.py"),)))
        assert payload.prompt.startswith(INSTRUCTIONS)
        assert payload.system == SYSTEM_PROMPT
        assert "### File: a.py\n```diff\n" in payload.prompt
        assert "part 1 of" not in payload.prompt

    def test_instructions_request_structured_sections(self):
        sections = [
            "## Summary",
            "### File:",
            "**Breaking Change**",
            "**Severity**",
            "**Impact**",
            "**Suggestions**",
            "### Priority Fixes",
        ]
        for section in sections:
            assert section in INSTRUCTIONS

    def test_file_order_preserved(self):
        changeset = Changeset(files=(make_file("z.py"), make_file("a.py")))
        (payload,) = build_payloads(changeset)
        assert payload.prompt.index("### File: z.py") < payload.prompt.index("### File: a.py")


class TestChunking:
    def test_splits_at_file_boundaries(self):
        files = tuple(make_file(f"f{i}.py") for i in range(4))
        changeset = Changeset(files=files)
        one_file = len(render_file_block(files[0]))
        payloads = build_payloads(changeset, max_chars=one_file * 2)

        assert len(payloads) == 2
        assert [p.files for p in payloads] == [("f0.py", "f1.py"), ("f2.py", "f3.py")]
        assert [(p.chunk_index, p.chunk_count) for p in payloads] == [(1, 2), (2, 2)]

    def test_chunk_note_added_when_split(self):
        files = tuple(make_file(f"f{i}.py") for i in range(2))
        payloads = build_payloads(Changeset(files=files), max_chars=len(render_file_block(files[0])))
        assert "part 1 of 2" in payloads[0].prompt
        assert "part 2 of 2" in payloads[1].prompt

    def test_every_hunk_lands_intact_in_exactly_one_payload(self):
        files = (make_file("big.py", n_hunks=6, n_lines=8), make_file("small.py"), make_file("mid.py", n_hunks=2))
        changeset = Changeset(files=files)
        budget = len(render_file_block(files[0], files[0].hunks[:2], "9/9"))
        payloads = build_payloads(changeset, max_chars=budget)

        assert len(payloads) > 1
        for text in hunk_texts(changeset):
            assert sum(text in p.prompt for p in payloads) == 1

    def test_oversized_file_repeats_identity_header(self):
        big = make_file("big.py", n_hunks=4, n_lines=8)
        budget = len(render_file_block(big, big.hunks[:2], "9/9"))
        payloads = build_payloads(Changeset(files=(big,)), max_chars=budget)

        assert len(payloads) == 2
        assert "### File: big.py (part 1/2, modified)" in payloads[0].prompt
        assert "### File: big.py (part 2/2, modified)" in payloads[1].prompt

    def test_diff_text_of_each_payload_within_budget(self):
        files = (make_file("big.py", n_hunks=5, n_lines=6), make_file("b.py"), make_file("c.py"))
        budget = len(render_file_block(files[0], files[0].hunks[:2], "9/9"))
        for payload in build_payloads(Changeset(files=files), max_chars=budget):
            assert len(payload.prompt) - len(INSTRUCTIONS) <= budget + 200  # chunk note

    def test_tail_of_split_file_shares_payload_with_next_file(self):
        big = make_file("big.py", n_hunks=3, n_lines=8)
        small = make_file("s.py", n_lines=1)
        budget = len(render_file_block(big, big.hunks[:2], "9/9"))
        payloads = build_payloads(Changeset(files=(big, small)), max_chars=budget)
        assert payloads[-1].files == ("big.py", "s.py")


class TestErrors:
    def test_empty_changeset_raises_no_changes(self):
        with pytest.raises(NoChangesDetected):
            build_payloads(Changeset())

    def test_single_hunk_over_budget_raises(self):
        big = make_file("huge.py", n_hunks=1, n_lines=50)
        with pytest.raises(PayloadTooLarge) as exc_info:
            build_payloads(Changeset(files=(big,)), max_chars=100)
        assert exc_info.value.path == "huge.py"
        assert exc_info.value.hunk_header.startswith("@@ -10,1 +10,50 @@")
        assert "huge.py" in str(exc_info.value)

    def test_non_positive_budget_rejected(self):
        with pytest.raises(ValueError):
            build_payloads(Changeset(files=(make_file("a.py"),)), max_chars=0)


def test_pure_rename_serialized_without_diff_fence():
    renamed = ChangedFile(path="new.py", old_path="old.py", status=FileStatus.RENAMED)
    block = render_file_block(renamed)
    assert block.startswith("### File: new.py (renamed from old.py)")
    assert "```diff" not in block
