"""Data models shared by every stage of the review pipeline.

Diff-side types (DiffHunk, ChangedFile, Changeset) are independent of git's
textual format: the patch parser builds them, the prompt builder serialises
them back. Review-side types (ReviewFinding, ReviewReport) are what the parser
produces from model output and the renderer turns into markdown.

All types are frozen: a Changeset is built once per run and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class FileStatus(str, Enum):
    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    RENAMED = "renamed"


class LineKind(str, Enum):
    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"


_LINE_MARKERS = {LineKind.CONTEXT: " ", LineKind.ADDED: "+", LineKind.REMOVED: "-"}


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class FindingKind(str, Enum):
    """Tag distinguishing parsed findings from the raw-text parse fallback."""

    STRUCTURED = "structured"
    RAW_TEXT = "raw_text"


# ---------------------------------------------------------------------------
# Diff side
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DiffHunk:
    """One contiguous block of changed lines.

    ``old_range`` and ``new_range`` are (start_line, line_count) pairs taken
    from the ``@@`` header. ``lines`` keeps the source order exactly.
    """

    old_range: tuple[int, int]
    new_range: tuple[int, int]
    lines: tuple[tuple[LineKind, str], ...] = ()
    header: str = ""

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def range_header(self) -> str:
        old_start, old_count = self.old_range
        new_start, new_count = self.new_range
        text = f"@@ -{old_start},{old_count} +{new_start},{new_count} @@"
        return f"{text} {self.header}" if self.header else text

    def to_text(self) -> str:
        """Render the hunk back to unified-diff text."""
        body = [f"{_LINE_MARKERS[kind]}{text}" for kind, text in self.lines]
        return "\n".join([self.range_header, *body])


@dataclass(frozen=True)
class ChangedFile:
    path: str
    status: FileStatus = FileStatus.MODIFIED
    hunks: tuple[DiffHunk, ...] = ()
    old_path: str | None = None  # set for renames

    def __post_init__(self):
        if not self.hunks and self.status is not FileStatus.RENAMED:
            raise ValueError(f"{self.path}: only a pure rename may have no hunks")

    @property
    def line_count(self) -> int:
        return sum(h.line_count for h in self.hunks)


@dataclass(frozen=True)
class Changeset:
    """Everything under review for one run, in diff output order."""

    files: tuple[ChangedFile, ...] = ()

    @property
    def total_line_count(self) -> int:
        return sum(f.line_count for f in self.files)

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]

    def __len__(self) -> int:
        return len(self.files)


@dataclass(frozen=True)
class Payload:
    """One bounded LLM request. ``chunk_index`` is 1-based."""

    system: str
    prompt: str
    chunk_index: int = 1
    chunk_count: int = 1
    files: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Review side
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReviewFinding:
    file: str
    description: str
    is_breaking: bool = False
    severity: Severity = Severity.LOW
    suggestion: str | None = None
    kind: FindingKind = FindingKind.STRUCTURED

    @property
    def is_raw_text(self) -> bool:
        return self.kind is FindingKind.RAW_TEXT


@dataclass(frozen=True)
class ReviewReport:
    summary: str = ""
    findings: tuple[ReviewFinding, ...] = ()
    priority_fixes: tuple[str, ...] = ()
    incomplete: bool = False
    notes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def breaking_findings(self) -> list[ReviewFinding]:
        return [f for f in self.findings if f.is_breaking]

    @property
    def files(self) -> list[str]:
        """Files with at least one finding, in first-seen order."""
        seen: dict[str, None] = {}
        for f in self.findings:
            seen.setdefault(f.file, None)
        return list(seen)
