"""Unified diff parsing.

Turns the text printed by ``git diff`` into ChangedFile objects. Hunk bodies
are consumed by the line counts in their ``@@`` header rather than by prefix
sniffing, so a removed line that happens to read ``--- foo`` is never taken
for a file header.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from difflens_core.models import ChangedFile, DiffHunk, FileStatus, LineKind

logger = logging.getLogger(__name__)

FILE_HEADER = re.compile(r'^diff --git ("?a/.+?"?) ("?b/.+"?)$')
HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@ ?(.*)$")
OLD_PATH = re.compile(r"^--- (.+)$")
NEW_PATH = re.compile(r"^\+\+\+ (.+)$")
RENAME_FROM = re.compile(r"^rename from (.+)$")
RENAME_TO = re.compile(r"^rename to (.+)$")

_KINDS = {" ": LineKind.CONTEXT, "+": LineKind.ADDED, "-": LineKind.REMOVED}


@dataclass
class _FileState:
    path: str
    old_path: str | None = None
    status: FileStatus = FileStatus.MODIFIED
    binary: bool = False
    hunks: list[DiffHunk] = field(default_factory=list)


@dataclass
class _HunkState:
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    header: str
    old_left: int = 0
    new_left: int = 0
    lines: list[tuple[LineKind, str]] = field(default_factory=list)

    @property
    def done(self) -> bool:
        return self.old_left <= 0 and self.new_left <= 0

    def build(self) -> DiffHunk:
        return DiffHunk(
            old_range=(self.old_start, self.old_count),
            new_range=(self.new_start, self.new_count),
            lines=tuple(self.lines),
            header=self.header,
        )


# C-style escapes git uses in quoted paths, besides \ooo octal bytes.
_ESCAPES = {"a": 7, "b": 8, "t": 9, "n": 10, "v": 11, "f": 12, "r": 13, '"': 34, "\\": 92}
_OCTAL = re.compile(r"[0-7]{3}")


def _unquote(path: str) -> str:
    """Undo git's path quoting: ``"caf\\303\\251.py"`` becomes ``café.py``."""
    path = path.strip()
    if not (len(path) >= 2 and path[0] == path[-1] == '"'):
        return path
    body = path[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        if body[i] == "\\" and i + 1 < len(body):
            if _OCTAL.match(body, i + 1):
                out.append(int(body[i + 1 : i + 4], 8))
                i += 4
                continue
            if body[i + 1] in _ESCAPES:
                out.append(_ESCAPES[body[i + 1]])
                i += 2
                continue
        out.extend(body[i].encode("utf-8"))
        i += 1
    return out.decode("utf-8", errors="replace")


def _diff_path(raw: str, prefix: str) -> str:
    path = _unquote(raw)
    return path[len(prefix) :] if path.startswith(prefix) else path


def parse_unified_diff(diff_text: str) -> list[ChangedFile]:
    """Parse ``git diff`` output into ChangedFile objects, in output order.

    Binary files and mode-only changes carry no hunks to review and are
    dropped. Pure renames are kept with an empty hunk list.
    """
    files: list[ChangedFile] = []
    current: _FileState | None = None
    hunk: _HunkState | None = None

    def close_hunk():
        nonlocal hunk
        if hunk is not None and current is not None:
            current.hunks.append(hunk.build())
        hunk = None

    def close_file():
        nonlocal current
        close_hunk()
        if current is None:
            return
        if current.binary:
            logger.debug("Skipping binary file: %s", current.path)
        elif not current.hunks and current.status is not FileStatus.RENAMED:
            logger.debug("Skipping %s: no content change", current.path)
        else:
            files.append(
                ChangedFile(
                    path=current.path,
                    status=current.status,
                    hunks=tuple(current.hunks),
                    old_path=current.old_path,
                )
            )
        current = None

    for line in diff_text.splitlines():
        if hunk is not None and not hunk.done:
            if line.startswith("\\"):
                # "\ No newline at end of file"
                continue
            kind = _KINDS.get(line[:1], LineKind.CONTEXT)
            text = line[1:] if line[:1] in _KINDS else line
            hunk.lines.append((kind, text))
            if kind is not LineKind.ADDED:
                hunk.old_left -= 1
            if kind is not LineKind.REMOVED:
                hunk.new_left -= 1
            continue

        file_match = FILE_HEADER.match(line)
        if file_match:
            close_file()
            old_path = _diff_path(file_match.group(1), "a/")
            new_path = _diff_path(file_match.group(2), "b/")
            current = _FileState(path=new_path, old_path=old_path if old_path != new_path else None)
            continue

        if current is None:
            continue

        hunk_match = HUNK_HEADER.match(line)
        if hunk_match:
            close_hunk()
            old_count = int(hunk_match.group(2) if hunk_match.group(2) is not None else 1)
            new_count = int(hunk_match.group(4) if hunk_match.group(4) is not None else 1)
            hunk = _HunkState(
                old_start=int(hunk_match.group(1)),
                old_count=old_count,
                new_start=int(hunk_match.group(3)),
                new_count=new_count,
                header=hunk_match.group(5).strip(),
                old_left=old_count,
                new_left=new_count,
            )
            continue

        if line.startswith("\\"):
            continue
        if line.startswith("new file mode"):
            current.status = FileStatus.ADDED
            continue
        if line.startswith("deleted file mode"):
            current.status = FileStatus.DELETED
            continue
        if line.startswith("Binary files") or line.startswith("GIT binary patch"):
            current.binary = True
            continue

        rename_from = RENAME_FROM.match(line)
        if rename_from:
            current.status = FileStatus.RENAMED
            current.old_path = _unquote(rename_from.group(1))
            continue
        rename_to = RENAME_TO.match(line)
        if rename_to:
            current.status = FileStatus.RENAMED
            current.path = _unquote(rename_to.group(1))
            continue

        new_path = NEW_PATH.match(line)
        if new_path:
            path = _diff_path(new_path.group(1), "b/")
            if path != "/dev/null":
                current.path = path
            continue
        old_path = OLD_PATH.match(line)
        if old_path and current.status is FileStatus.DELETED:
            path = _diff_path(old_path.group(1), "a/")
            if path != "/dev/null":
                current.path = path

    close_file()
    return files
