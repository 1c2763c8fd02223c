"""Review parsing and aggregation.

The model is asked for a fixed markdown layout (## Summary, ### File blocks
with Breaking Change / Severity / Impact / Suggestions bullets, and a Priority
Fixes list). Models drift from that layout, so parsing is tolerant: headings
and field labels are matched case-insensitively with or without bold markers,
missing fields are fine, and a response with no recognisable structure at all
becomes a single raw-text finding instead of being dropped.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from difflens_core.models import FindingKind, Payload, ReviewFinding, ReviewReport, Severity

logger = logging.getLogger(__name__)

_HEADING = re.compile(r"^\s*(#{1,6})\s+(.*?)\s*#*\s*$")
_FILE_TITLE = re.compile(r"^\**\s*file\s*\**\s*:\s*(.+?)\s*$", re.IGNORECASE)
# "**File: a.py**" or "- File: a.py" written as a plain line instead of a heading
_FILE_LINE = re.compile(r"^\s*(?:[-*+]\s+)?\**\s*file\s*\**\s*:\s*(.+?)\s*$", re.IGNORECASE)
_FIELD = re.compile(
    r"^\s*(?:[-*+]\s+)?\**\s*"
    r"(?P<key>breaking[ _-]?change|severity|impact|suggestions?)"
    r"\s*\**\s*:\s*\**\s*(?P<value>.*?)\s*$",
    re.IGNORECASE,
)
_LIST_ITEM = re.compile(r"^\s*(?:\d+[.)]|[-*+])\s+(.*?)\s*$")
_RULE = re.compile(r"^\s*([-*_])(?:\s*\1){2,}\s*$")
# "src/a.py (part 1/2, modified)" → "src/a.py"
_PART_SUFFIX = re.compile(r"\s+\((?:part \d+/\d+|renamed from|added|deleted|modified)[^)]*\)\s*$", re.IGNORECASE)

_SEVERITY_ALIASES = {
    "low": Severity.LOW,
    "minor": Severity.LOW,
    "nitpick": Severity.LOW,
    "medium": Severity.MEDIUM,
    "moderate": Severity.MEDIUM,
    "major": Severity.HIGH,
    "high": Severity.HIGH,
    "critical": Severity.CRITICAL,
    "blocker": Severity.CRITICAL,
}

_FIELD_KEYS = {"breaking": "breaking", "severity": "severity", "impact": "impact", "suggestion": "suggestions"}


def _field_key(raw_key: str) -> str:
    key = raw_key.lower()
    for prefix, name in _FIELD_KEYS.items():
        if key.startswith(prefix):
            return name
    return key


def _strip_markup(text: str) -> str:
    return text.strip().strip("*`").strip()


def parse_severity(value: str) -> Severity:
    word = re.sub(r"[^a-z]", " ", value.lower()).split()
    for token in word:
        if token in _SEVERITY_ALIASES:
            return _SEVERITY_ALIASES[token]
    logger.debug("Unknown severity %r, defaulting to low", value)
    return Severity.LOW


def parse_breaking(value: str) -> bool:
    return _strip_markup(value).lower().startswith(("yes", "true"))


def clean_file_path(title: str) -> str:
    path = _strip_markup(_PART_SUFFIX.sub("", _strip_markup(title)))
    return path.strip("[]")


@dataclass
class _Draft:
    """A finding being assembled from field lines."""

    file: str
    fields: dict[str, list[str]] = field(default_factory=dict)
    title: str = ""
    last_key: str | None = None
    prose: list[str] = field(default_factory=list)

    def set(self, key: str, value: str):
        self.fields[key] = [value] if value else []
        self.last_key = key

    def extend(self, line: str):
        if self.last_key is None:
            self.prose.append(line.strip())
        else:
            self.fields[self.last_key].append(line.strip())

    def value(self, key: str) -> str:
        return "\n".join(v for v in self.fields.get(key, []) if v).strip()

    def is_empty(self) -> bool:
        return not self.fields and not self.prose

    def build(self) -> ReviewFinding:
        body = "\n".join(part for part in ("\n".join(self.prose), self.value("impact")) if part)
        description = body or self.title or "(no impact description)"
        if self.title and body:
            description = f"{self.title}: {body}"
        suggestion = self.value("suggestions") or None
        return ReviewFinding(
            file=self.file,
            description=description,
            is_breaking=parse_breaking(self.value("breaking")),
            severity=parse_severity(self.value("severity")),
            suggestion=suggestion,
        )


def _payload_files(payload: Payload | None) -> str:
    return ", ".join(payload.files) if payload is not None and payload.files else ""


def _raw_fallback(raw: str, payload: Payload | None) -> ReviewReport:
    files = _payload_files(payload)
    chunk = ""
    if payload is not None and payload.chunk_count > 1:
        chunk = f" (part {payload.chunk_index}/{payload.chunk_count})"
    logger.warning("Could not parse model response%s; keeping it as raw text", chunk)
    finding = ReviewFinding(
        file=files,
        description=raw.strip() or "(empty response)",
        is_breaking=False,
        severity=Severity.LOW,
        kind=FindingKind.RAW_TEXT,
    )
    return ReviewReport(
        summary="",
        findings=(finding,),
        notes=(f"Model response{chunk} did not follow the expected format and is shown unparsed.",),
    )


def parse_review(raw: str, payload: Payload | None = None) -> ReviewReport:
    """Parse one model response into a ReviewReport fragment. Never raises."""
    summary_lines: list[str] = []
    priority_fixes: list[str] = []
    findings: list[ReviewFinding] = []
    section: str | None = None
    draft: _Draft | None = None

    def flush():
        nonlocal draft
        if draft is not None and not draft.is_empty():
            findings.append(draft.build())
        draft = None

    for line in (raw or "").splitlines():
        heading = _HEADING.match(line)
        if heading:
            level = len(heading.group(1))
            title = _strip_markup(heading.group(2))
            lowered = title.lower()
            file_title = _FILE_TITLE.match(title)
            if file_title:
                flush()
                section = "file"
                draft = _Draft(file=clean_file_path(file_title.group(1)))
                continue
            if lowered.startswith("summary") or lowered.endswith("summary"):
                flush()
                section = "summary"
                continue
            if lowered.startswith("priority fix"):
                flush()
                section = "priority"
                continue
            if lowered.startswith("detailed analysis"):
                flush()
                section = "analysis"
                continue
            if section == "file" and draft is not None and level >= 4:
                # "#### Issue 2: ..." starts another finding in the same file.
                current_file = draft.file
                flush()
                draft = _Draft(file=current_file, title=title)
                continue
            if section in ("analysis", "file") and level >= 3:
                # "### src/foo.py" without the "File:" label.
                flush()
                section = "file"
                draft = _Draft(file=clean_file_path(title))
                continue
            flush()
            section = None
            continue

        if section == "summary":
            summary_lines.append(line)
        elif section == "priority":
            item = _LIST_ITEM.match(line)
            if item:
                priority_fixes.append(item.group(1))
            elif line.strip() and priority_fixes:
                priority_fixes[-1] = f"{priority_fixes[-1]} {line.strip()}"
        elif section in ("analysis", "file"):
            file_line = _FILE_LINE.match(line)
            if file_line:
                flush()
                section = "file"
                draft = _Draft(file=clean_file_path(file_line.group(1)))
                continue
            field_match = _FIELD.match(line)
            if field_match:
                key = _field_key(field_match.group("key"))
                if draft is None:
                    # Fields with no file named: attribute them to the chunk.
                    section = "file"
                    draft = _Draft(file=_payload_files(payload) or "(unknown)")
                elif key in draft.fields:
                    current_file = draft.file
                    flush()
                    draft = _Draft(file=current_file)
                draft.set(key, field_match.group("value"))
            elif draft is not None and line.strip() and not _RULE.match(line):
                draft.extend(line)

    flush()
    summary = "\n".join(summary_lines).strip()

    if not summary and not findings:
        return _raw_fallback(raw or "", payload)
    return ReviewReport(summary=summary, findings=tuple(findings), priority_fixes=tuple(priority_fixes))


def aggregate(fragments: list[ReviewReport], incomplete_note: str | None = None) -> ReviewReport:
    """Merge per-chunk fragments in chunk order.

    Findings and priority fixes are concatenated. Findings are not
    de-duplicated, so overlapping chunks can report the same issue twice.
    """
    findings = tuple(f for fragment in fragments for f in fragment.findings)
    fixes = tuple(p for fragment in fragments for p in fragment.priority_fixes)
    notes = [n for fragment in fragments for n in fragment.notes]

    summaries = [fragment.summary for fragment in fragments]
    if len(fragments) == 1:
        summary = summaries[0]
    else:
        parts = [
            f"Part {i}/{len(fragments)}: {' '.join(s.split())}" for i, s in enumerate(summaries, 1) if s.strip()
        ]
        summary = " ".join(parts)

    incomplete = any(fragment.incomplete for fragment in fragments)
    if incomplete_note:
        notes.append(incomplete_note)
        incomplete = True

    return ReviewReport(
        summary=summary,
        findings=findings,
        priority_fixes=fixes,
        incomplete=incomplete,
        notes=tuple(notes),
    )
