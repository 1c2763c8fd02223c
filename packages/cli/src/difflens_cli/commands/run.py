"""run command: review unstaged changes of a local repository."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.markdown import Markdown
from rich.rule import Rule

from difflens_core.config import API_KEY_ENV, PROVIDERS, api_key_for, load_config
from difflens_core.errors import DiffLensError
from difflens_core.render import render_report
from difflens_core.reviewer import ReviewResult, run_review

console = Console()
err_console = Console(stderr=True)


def _print_report(text: str, plain: bool) -> None:
    if plain:
        click.echo(text, nl=False)
        return
    console.print(Rule("CODE REVIEW ANALYSIS"))
    console.print(Markdown(text))
    console.print(Rule())


def _report_outcome(result: ReviewResult) -> None:
    if result.error is not None:
        err_console.print(f"[red]Error: {escape(str(result.error))}[/red]", soft_wrap=True)
        if result.completed_chunks:
            err_console.print(
                f"[yellow]Partial review: {result.completed_chunks}/{result.chunk_count} part(s) analysed.[/yellow]"
            )
        return
    if result.interrupted:
        err_console.print(
            f"[yellow]Review interrupted after {result.completed_chunks}/{result.chunk_count} part(s).[/yellow]"
        )
        return
    breaking = len(result.report.breaking_findings)
    err_console.print(
        f"\n[green]Code review completed![/green] "
        f"{len(result.files)} file(s) · {len(result.report.findings)} finding(s) · "
        f"{breaking} breaking · {result.elapsed_seconds:.1f}s"
    )


@click.command("run")
@click.argument("directory", type=click.Path(file_okay=False, dir_okay=True))
@click.option(
    "--model",
    type=click.Choice(list(PROVIDERS)),
    default=None,
    help="AI model provider. Overrides config file.",
)
@click.option("--max-chars", type=click.IntRange(min=1), default=None, help="Diff characters per LLM request.")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None, help="Seconds per LLM request.")
@click.option(
    "--output",
    "-o",
    "output_path",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Also write the markdown report to this file.",
)
@click.option("--plain", is_flag=True, help="Print the raw markdown instead of rendering it.")
@click.pass_context
def run_cmd(
    ctx,
    directory: str,
    model: str | None,
    max_chars: int | None,
    timeout: float | None,
    output_path: str | None,
    plain: bool,
):
    """Analyse unstaged changes in DIRECTORY for potential breaking changes.

    Collects `git diff` for tracked files, sends it to the configured model
    and prints a structured review.

    \b
    Required environment variables (one, matching --model):
      MOONSHOT_API_KEY     Required when using --model moonshot (default)
      ANTHROPIC_API_KEY    Required when using --model anthropic
      OPENAI_API_KEY       Required when using --model openai
    """
    config_path = ctx.obj.get("config_path", ".difflens.yml") if ctx.obj else ".difflens.yml"
    config = load_config(
        config_path,
        cli_overrides={"model": model, "max_chars": max_chars, "timeout": timeout},
    )

    if not Path(directory).is_dir():
        raise click.UsageError(f"'{directory}' is not a valid directory")
    if config["model"] not in PROVIDERS:
        raise click.UsageError(f"Unknown model provider {config['model']!r}. Choose one of: {', '.join(PROVIDERS)}.")
    if not api_key_for(config):
        env_var = API_KEY_ENV[config["model"]]
        raise click.UsageError(
            f"{env_var} environment variable is not set.\n" f"Please set it with: export {env_var}=your_api_key_here"
        )

    err_console.print(f"Starting code review for: {directory}")
    try:
        result = run_review(directory, config)
    except DiffLensError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]", soft_wrap=True)
        ctx.exit(1)

    if result.no_changes:
        return

    text = render_report(result.report)
    _print_report(text, plain)
    if output_path:
        Path(output_path).write_text(text, encoding="utf-8")
        err_console.print(f"[dim]Report written to {output_path}[/dim]")

    _report_outcome(result)
    if result.error is not None:
        ctx.exit(1)
