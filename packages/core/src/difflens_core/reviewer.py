"""Core review orchestration: diff → payloads → model → report."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from rich.console import Console
from rich.markup import escape

from difflens_core.errors import DiffLensError, NoChangesDetected, PayloadTooLarge
from difflens_core.git.diff_source import collect_changes
from difflens_core.models import ReviewReport
from difflens_core.parser import aggregate, parse_review
from difflens_core.prompt import DEFAULT_MAX_CHARS, build_payloads
from difflens_core.providers.anthropic import AnthropicReviewer
from difflens_core.providers.moonshot import MoonshotReviewer
from difflens_core.providers.openai import OpenAIReviewer

console = Console(stderr=True)
logger = logging.getLogger(__name__)

_PROVIDERS = {
    "anthropic": AnthropicReviewer,
    "openai": OpenAIReviewer,
    "moonshot": MoonshotReviewer,
}


@dataclass
class ReviewResult:
    """Outcome of run_review.

    ``error`` holds the failure that stopped the run early, if any. When it is
    set, ``report`` still contains whatever chunks completed before it, marked
    incomplete.
    """

    repo_path: str
    files: list[str] = field(default_factory=list)
    chunk_count: int = 0
    completed_chunks: int = 0
    report: ReviewReport = field(default_factory=ReviewReport)
    error: DiffLensError | None = None
    no_changes: bool = False
    interrupted: bool = False
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


def _get_reviewer(config: dict):
    model = config["model"]
    cls = _PROVIDERS.get(model)
    if cls is None:
        raise ValueError(f"Unknown model provider: {model!r}. Choose one of: {', '.join(_PROVIDERS)}.")
    return cls(
        api_key=config[f"{model}_api_key"],
        timeout=config.get("timeout"),
        max_attempts=config.get("max_attempts"),
        model=config.get("model_name"),
    )


def run_review(repo_path: str, config: dict, reviewer=None) -> ReviewResult:
    """Run the full review pipeline for the unstaged changes in repo_path.

    NotAGitRepository and GitCommandError propagate: there is nothing to
    report without a readable repository. "No changes" returns a result with
    ``no_changes`` set. Payload, transport and interrupt failures stop the
    run but still return the chunks reviewed so far.
    """
    start = time.monotonic()
    result = ReviewResult(repo_path=str(repo_path))

    console.print("[dim]Validating git repository...[/dim]")
    try:
        changeset = collect_changes(repo_path, exclude=config.get("exclude", []))
    except NoChangesDetected:
        console.print("[green]No unstaged changes found in the repository. Nothing to review.[/green]")
        result.no_changes = True
        return result

    result.files = changeset.paths
    console.print(f"Found {len(changeset)} modified file(s):")
    for path in changeset.paths:
        console.print(f"  - {escape(path)}")

    try:
        payloads = build_payloads(changeset, max_chars=config.get("max_chars", DEFAULT_MAX_CHARS))
    except PayloadTooLarge as e:
        result.error = e
        result.report = aggregate([], incomplete_note=str(e))
        result.elapsed_seconds = time.monotonic() - start
        return result

    result.chunk_count = len(payloads)
    fragments: list[ReviewReport] = []
    incomplete_note: str | None = None

    owns_reviewer = reviewer is None
    if owns_reviewer:
        reviewer = _get_reviewer(config)
    try:
        for payload in payloads:
            label = f" (part {payload.chunk_index}/{payload.chunk_count})" if payload.chunk_count > 1 else ""
            console.print(f"\n[bold]Analyzing changes with {reviewer.NAME}{label}...[/bold]")
            try:
                raw = reviewer.submit(payload)
            except KeyboardInterrupt:
                result.interrupted = True
                incomplete_note = (
                    f"Analysis interrupted during part {payload.chunk_index}/{payload.chunk_count}; "
                    "remaining parts were skipped."
                )
                console.print("[yellow]Interrupted. Rendering partial results.[/yellow]")
                break
            except DiffLensError as e:
                result.error = e
                incomplete_note = (
                    f"Stopped at part {payload.chunk_index}/{payload.chunk_count}: {e}. Results are incomplete."
                )
                console.print(f"[red]{escape(str(e))}[/red]")
                break
            fragments.append(parse_review(raw, payload))
            result.completed_chunks += 1
    finally:
        if owns_reviewer:
            reviewer.close()

    result.report = aggregate(fragments, incomplete_note=incomplete_note)
    result.elapsed_seconds = time.monotonic() - start
    return result
