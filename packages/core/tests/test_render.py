"""Tests for markdown rendering of review reports."""

from difflens_core.models import FindingKind, ReviewFinding, ReviewReport, Severity
from difflens_core.parser import parse_review
from difflens_core.render import render_report

REPORT = ReviewReport(
    summary="Two breaking changes.",
    findings=(
        ReviewFinding(
            file="a.py",
            description="Return type changed.",
            is_breaking=True,
            severity=Severity.HIGH,
            suggestion="Keep the old type.",
        ),
        ReviewFinding(file="a.py", description="Comment typo.", severity=Severity.LOW),
        ReviewFinding(file="b.py", description="Flag removed.", is_breaking=True, severity=Severity.CRITICAL),
    ),
    priority_fixes=("Restore the return type.", "Re-add the flag."),
)


def test_section_structure():
    text = render_report(REPORT)
    assert text.startswith("## Summary\nTwo breaking changes.\n")
    assert text.index("## Detailed Analysis") < text.index("### File: a.py") < text.index("### File: b.py")
    assert text.index("### File: b.py") < text.index("### Priority Fixes")


def test_consecutive_findings_share_file_block():
    assert render_report(REPORT).count("### File: a.py") == 1


def test_finding_fields():
    text = render_report(REPORT)
    assert "- **Breaking Change**: Yes\n- **Severity**: High\n- **Impact**: Return type changed." in text
    assert "- **Suggestions**: Keep the old type." in text
    assert "- **Breaking Change**: No\n- **Severity**: Low" in text


def test_priority_fixes_numbered():
    text = render_report(REPORT)
    assert "1. Restore the return type.\n2. Re-add the flag." in text


def test_rendered_report_parses_back():
    reparsed = parse_review(render_report(REPORT))
    assert reparsed.summary == REPORT.summary
    assert reparsed.findings == REPORT.findings
    assert reparsed.priority_fixes == REPORT.priority_fixes


def test_incomplete_report_is_marked():
    report = ReviewReport(summary="Partial.", incomplete=True, notes=("Stopped at part 2/3.",))
    text = render_report(report)
    assert "Incomplete analysis" in text
    assert "> Stopped at part 2/3." in text


def test_empty_report():
    text = render_report(ReviewReport())
    assert "_No summary provided._" in text
    assert "_No findings._" in text
    assert "### Priority Fixes\n_None._" in text


def test_raw_text_finding_shown_verbatim():
    raw = ReviewFinding(file="c.py", description="free text\nmore text", kind=FindingKind.RAW_TEXT)
    text = render_report(ReviewReport(findings=(raw,)))
    assert "### File: c.py" in text
    assert "```text\nfree text\nmore text\n```" in text


def test_raw_text_fence_outlasts_backticks_in_reply():
    reply = "Looks fine.\n```python\nx = 1\n```\nDone."
    raw = ReviewFinding(file="c.py", description=reply, kind=FindingKind.RAW_TEXT)
    text = render_report(ReviewReport(findings=(raw,)))
    assert "````text\n" + reply + "\n````" in text


def test_notes_do_not_read_back_as_summary():
    report = ReviewReport(summary="Partial.", incomplete=True, notes=("Stopped at part 2/3.",))
    reparsed = parse_review(render_report(report))
    assert reparsed.summary == "Partial."
