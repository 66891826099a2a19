"""CLI commands for vidcontinuity using Typer and Rich.

Implements 4 CLI commands:
- extract: Extract a visual state from a segment prompt
- context: Render a visual state file into a continuity block
- validate: Validate one segment context against the previous state
- chain: Validate a whole run of segments and print a report
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vidcontinuity.orchestrator.report import build_continuity_report, score_label
from vidcontinuity.schemas.continuity import (
    ChainSegment,
    ContinuityValidationResult,
    IssueType,
    ValidationOptions,
)
from vidcontinuity.schemas.visual_state import ExtractionOptions, SegmentVisualState
from vidcontinuity.services.continuity_validator import validate_continuity, validate_segment_chain
from vidcontinuity.services.llm import get_adapter
from vidcontinuity.services.visual_state_extractor import (
    build_continuity_context,
    extract_visual_state,
    is_visual_state_valid,
)

app = typer.Typer(name="vidcontinuity", help="Visual continuity tools for multi-segment video generation")
console = Console()

_SEVERITY_STYLES = {
    "low": "blue",
    "medium": "yellow",
    "high": "red",
    "critical": "bold red",
}


def _read_text(path: Path) -> str:
    """Read a UTF-8 text file, exiting with a readable error on failure."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(code=1)
    except UnicodeDecodeError:
        console.print(f"[red]Error:[/red] {path} is not UTF-8 text")
        raise typer.Exit(code=1)
    except OSError as e:
        console.print(f"[red]Error:[/red] Cannot read {path}: {e.strerror or e}")
        raise typer.Exit(code=1)


def _load_json(path: Path) -> Any:
    """Read a JSON file, exiting with a readable error on failure."""
    text = _read_text(path)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] Invalid JSON in {path}: {e}")
        raise typer.Exit(code=1)



def _load_state(path: Path) -> SegmentVisualState:
    try:
        return SegmentVisualState.model_validate(_load_json(path))
    except ValidationError as e:
        console.print(f"[red]Error:[/red] {path} is not a visual state: {e}")
        raise typer.Exit(code=1)


def _parse_allowed(allow: Optional[list[str]]) -> set[IssueType]:
    allowed = set()
    for value in allow or []:
        try:
            allowed.add(IssueType(value))
        except ValueError:
            choices = ", ".join(t.value for t in IssueType)
            console.print(f"[red]Error:[/red] Unknown issue type: {value}")
            console.print(f"Allowed: {choices}")
            raise typer.Exit(code=1)
    return allowed


def _issues_table(validation: ContinuityValidationResult, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Type", style="cyan")
    table.add_column("Severity")
    table.add_column("Description")
    table.add_column("Suggestion", style="dim")
    for issue in validation.issues:
        style = _SEVERITY_STYLES.get(issue.severity.value, "white")
        table.add_row(
            issue.type.value,
            f"[{style}]{issue.severity.value}[/{style}]",
            issue.description,
            issue.suggestion,
        )
    return table


@app.command()
def extract(
    prompt: str = typer.Argument(..., help="Segment generation prompt"),
    character: Optional[list[str]] = typer.Option(None, "--character", "-c", help="Character to track (repeatable)"),
    focus: Optional[list[str]] = typer.Option(None, "--focus", "-f", help="Focus area (repeatable)"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Override the extraction model"),
):
    """Extract the end-of-segment visual state from a prompt and print it as JSON."""
    options = ExtractionOptions(character_ids=character or [], focus_areas=focus or [])
    adapter = get_adapter(model) if model else None

    state = asyncio.run(extract_visual_state(prompt, options, adapter=adapter))

    if not is_visual_state_valid(state):
        console.print("[yellow]Warning:[/yellow] extracted state looks incomplete", style="dim")
    console.print_json(state.model_dump_json())


@app.command()
def context(
    state_file: Path = typer.Argument(..., help="Visual state JSON file"),
):
    """Render a visual state into the continuity block for the next prompt."""
    state = _load_state(state_file)
    console.print(build_continuity_context(state), markup=False, highlight=False)


@app.command()
def validate(
    state_file: Path = typer.Argument(..., help="Previous segment's visual state JSON file"),
    context_file: Path = typer.Argument(..., help="Text file with the current segment's context"),
    strict: bool = typer.Option(False, "--strict", help="Use strict penalties and threshold"),
    allow: Optional[list[str]] = typer.Option(None, "--allow", "-a", help="Issue type to ignore (repeatable)"),
    auto_correct: bool = typer.Option(False, "--auto-correct", help="Generate a correction for the next prompt"),
):
    """Validate continuity between a previous state and the current context.

    Exits with code 1 when the pair is not valid.
    """
    previous_state = _load_state(state_file)
    current_context = _read_text(context_file)

    options = ValidationOptions(
        strict_mode=strict,
        allowed_discrepancies=_parse_allowed(allow),
        auto_correct=auto_correct,
    )
    result = asyncio.run(validate_continuity(previous_state, current_context, options))

    if result.issues:
        console.print(_issues_table(result, "Continuity Issues"))
    else:
        console.print("[green]No continuity issues found.[/green]")

    status = "[green]VALID[/green]" if result.is_valid else "[red]INVALID[/red]"
    console.print(
        f"Score: [bold]{result.overall_score}[/bold]/100 "
        f"({score_label(result.overall_score)}) {status}"
    )
    if result.auto_correction:
        console.print(Panel(result.auto_correction, title="Auto-correction"))

    if not result.is_valid:
        raise typer.Exit(code=1)


@app.command()
def chain(
    segments_file: Path = typer.Argument(
        ..., help='JSON list of {"visualState": {...}, "context": "..."} objects'
    ),
    strict: bool = typer.Option(False, "--strict", help="Use strict penalties and threshold"),
    allow: Optional[list[str]] = typer.Option(None, "--allow", "-a", help="Issue type to ignore (repeatable)"),
):
    """Validate every adjacent pair in a run of segments and print a report."""
    data = _load_json(segments_file)
    if not isinstance(data, list):
        console.print(f"[red]Error:[/red] {segments_file} must contain a JSON list")
        raise typer.Exit(code=1)
    try:
        segments = [ChainSegment.model_validate(item) for item in data]
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid segment entry: {e}")
        raise typer.Exit(code=1)

    options = ValidationOptions(strict_mode=strict, allowed_discrepancies=_parse_allowed(allow))
    results = asyncio.run(validate_segment_chain(segments, options))
    report = build_continuity_report(results, total_segments=len(segments))

    table = Table(title="Segment Continuity")
    table.add_column("Segment", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Valid")
    table.add_column("Issues", justify="right")
    for summary in report.validations:
        valid = "[green]yes[/green]" if summary.is_valid else "[red]no[/red]"
        table.add_row(str(summary.segment_number), str(summary.score), valid, str(summary.issue_count))
    console.print(table)

    if report.average_score is None:
        console.print("[yellow]Fewer than two segments - nothing to validate.[/yellow]")
        return

    by_type = ", ".join(f"{k}: {v}" for k, v in sorted(report.issues_by_type.items())) or "none"
    console.print(Panel(
        f"Average score: [bold]{report.average_score}[/bold]/100 ({report.label})\n"
        f"Valid segments: {report.valid_segments}/{report.validated_segments}\n"
        f"Issues by type: {by_type}",
        title="Continuity Report",
    ))


if __name__ == "__main__":
    app()
