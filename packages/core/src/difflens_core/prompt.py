"""Prompt construction: Changeset → bounded LLM payloads.

The diff is serialised file by file. When the whole serialisation fits in
``max_chars`` it goes out as one payload; otherwise it is packed greedily into
the fewest ordered payloads that each fit, splitting only between files or,
for a file that is too big on its own, between hunks. A hunk is never cut.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from difflens_core.errors import NoChangesDetected, PayloadTooLarge
from difflens_core.models import Changeset, ChangedFile, DiffHunk, FileStatus, Payload

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 24_000

SYSTEM_PROMPT = (
    "You are an expert code reviewer specializing in identifying breaking changes "
    "and potential issues in code modifications."
)

INSTRUCTIONS = """You are a senior code reviewer. Analyze the following git diffs to identify potential \
breaking changes that could affect the behavior of the software. For each change, determine:
1. Whether it's a breaking change (yes/no)
2. The severity (low/medium/high/critical)
3. What behavior might be affected
4. Suggestions to prevent or mitigate the breaking change

Please provide a structured analysis in exactly the following format:

## Summary
[Overall assessment. State clearly whether the changes contain breaking changes.]

## Detailed Analysis
### File: [filename]
- **Breaking Change**: [yes/no]
- **Severity**: [low/medium/high/critical]
- **Impact**: [description of what might break]
- **Suggestions**: [how to prevent/mitigate]

Repeat the four bullet points once per issue when a file has several issues.

### Priority Fixes
1. [most important fix first]

Here are the diffs to analyze:

"""

CHUNK_NOTE = (
    "This change set was too large for one request. You are reviewing part {index} of {count}; "
    "review only the diffs below. Files marked (part i/n) continue in other parts.\n\n"
)


@dataclass(frozen=True)
class _Segment:
    path: str
    text: str

    @property
    def size(self) -> int:
        return len(self.text)


def _file_title(changed: ChangedFile, part: str | None = None) -> str:
    details = []
    if part:
        details.append(f"part {part}")
        details.append(changed.status.value)
    if changed.status is FileStatus.RENAMED and changed.old_path:
        details.append(f"renamed from {changed.old_path}")
    elif changed.status in (FileStatus.ADDED, FileStatus.DELETED) and not part:
        details.append(changed.status.value)
    suffix = f" ({', '.join(details)})" if details else ""
    return f"### File: {changed.path}{suffix}"


def render_file_block(changed: ChangedFile, hunks: tuple[DiffHunk, ...] | None = None, part: str | None = None) -> str:
    """Serialise a file (or a run of its hunks) as a fenced diff block."""
    hunks = changed.hunks if hunks is None else hunks
    title = _file_title(changed, part)
    if not hunks:
        return f"{title}\n_Renamed with no content change._\n\n"
    body = "\n".join(h.to_text() for h in hunks)
    return f"{title}\n```diff\n{body}\n```\n\n"


def serialize_changeset(changeset: Changeset) -> str:
    return "".join(render_file_block(f) for f in changeset.files)


def _split_file(changed: ChangedFile, max_chars: int) -> list[_Segment]:
    """Split one oversized file at hunk boundaries, repeating its header per part."""
    width = len(str(len(changed.hunks)))
    placeholder = f"{'9' * width}/{'9' * width}"

    groups: list[list[DiffHunk]] = []
    current: list[DiffHunk] = []
    for hunk in changed.hunks:
        alone = len(render_file_block(changed, (hunk,), placeholder))
        if alone > max_chars:
            raise PayloadTooLarge(changed.path, hunk.range_header, alone, max_chars)
        if current and len(render_file_block(changed, tuple(current + [hunk]), placeholder)) > max_chars:
            groups.append(current)
            current = []
        current.append(hunk)
    if current:
        groups.append(current)

    return [
        _Segment(changed.path, render_file_block(changed, tuple(group), f"{i}/{len(groups)}"))
        for i, group in enumerate(groups, 1)
    ]


def _segments(changeset: Changeset, max_chars: int) -> list[_Segment]:
    segments: list[_Segment] = []
    for changed in changeset.files:
        block = render_file_block(changed)
        if len(block) <= max_chars:
            segments.append(_Segment(changed.path, block))
        else:
            logger.debug("Splitting %s (%d chars) at hunk boundaries", changed.path, len(block))
            segments.extend(_split_file(changed, max_chars))
    return segments


def _pack(segments: list[_Segment], max_chars: int) -> list[list[_Segment]]:
    """Greedily pack ordered segments into the fewest groups of at most max_chars."""
    groups: list[list[_Segment]] = []
    current: list[_Segment] = []
    size = 0
    for seg in segments:
        if current and size + seg.size > max_chars:
            groups.append(current)
            current, size = [], 0
        current.append(seg)
        size += seg.size
    if current:
        groups.append(current)
    return groups


def build_prompt(diff_text: str, chunk_index: int = 1, chunk_count: int = 1) -> str:
    note = CHUNK_NOTE.format(index=chunk_index, count=chunk_count) if chunk_count > 1 else ""
    return f"{INSTRUCTIONS}{note}{diff_text}"


def build_payloads(changeset: Changeset, max_chars: int = DEFAULT_MAX_CHARS) -> list[Payload]:
    """Render a Changeset into one or more payloads whose diff text fits max_chars.

    Raises NoChangesDetected for an empty changeset and PayloadTooLarge when a
    single hunk cannot fit.
    """
    if not changeset.files:
        raise NoChangesDetected()
    if max_chars <= 0:
        raise ValueError(f"max_chars must be positive, got {max_chars}")

    groups = _pack(_segments(changeset, max_chars), max_chars)
    count = len(groups)
    payloads = []
    for index, group in enumerate(groups, 1):
        diff_text = "".join(seg.text for seg in group)
        payloads.append(
            Payload(
                system=SYSTEM_PROMPT,
                prompt=build_prompt(diff_text, index, count),
                chunk_index=index,
                chunk_count=count,
                files=tuple(dict.fromkeys(seg.path for seg in group)),
            )
        )
    if count > 1:
        logger.info("Diff split into %d payloads (budget %d chars)", count, max_chars)
    return payloads
