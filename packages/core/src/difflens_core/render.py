"""Serialise a ReviewReport to the markdown layout the parser reads back."""

from __future__ import annotations

import re

from difflens_core.models import ReviewFinding, ReviewReport


def _fence(text: str) -> str:
    """A backtick fence longer than any backtick run inside text."""
    longest = max((len(run) for run in re.findall(r"`+", text)), default=0)
    return "`" * max(3, longest + 1)


def _finding_lines(finding: ReviewFinding) -> list[str]:
    lines = [
        f"- **Breaking Change**: {'Yes' if finding.is_breaking else 'No'}",
        f"- **Severity**: {finding.severity.label}",
    ]
    if finding.is_raw_text:
        lines.append("- **Impact**: Unparsed model output, shown verbatim:")
        lines.append("")
        fence = _fence(finding.description)
        lines.append(f"{fence}text")
        lines.extend(finding.description.splitlines())
        lines.append(fence)
        return lines
    lines.append(f"- **Impact**: {finding.description}")
    if finding.suggestion:
        lines.append(f"- **Suggestions**: {finding.suggestion}")
    return lines


def render_report(report: ReviewReport) -> str:
    """Render the report as markdown.

    Findings keep their order; consecutive findings for the same file share a
    ``### File:`` block.
    """
    lines = ["## Summary", report.summary.strip() or "_No summary provided._", ""]

    # Notes get their own section so they never read back as summary text.
    if report.incomplete or report.notes:
        lines.append("## Notes")
    if report.incomplete:
        lines.append("> **Incomplete analysis.** Some parts of the change set were not reviewed.")
    for note in report.notes:
        lines.append(f"> {note}")
    if report.incomplete or report.notes:
        lines.append("")

    lines.append("## Detailed Analysis")
    if not report.findings:
        lines.append("_No findings._")
        lines.append("")
    previous_file: str | None = None
    for finding in report.findings:
        if finding.file != previous_file:
            if previous_file is not None:
                lines.append("")
            lines.append(f"### File: {finding.file or '(unknown)'}")
            previous_file = finding.file
        else:
            lines.append("")
        lines.extend(_finding_lines(finding))
    if report.findings:
        lines.append("")

    lines.append("### Priority Fixes")
    if report.priority_fixes:
        lines.extend(f"{i}. {fix}" for i, fix in enumerate(report.priority_fixes, 1))
    else:
        lines.append("_None._")

    return "\n".join(lines) + "\n"
