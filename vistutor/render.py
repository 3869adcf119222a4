#!/usr/bin/env python3
"""
Terminal rendering for sections, exercises and outputs (rich).

Images and widgets cannot be shown in a terminal, so they are written to
an artifacts directory and the path is displayed instead.
"""

from pathlib import Path
from typing import Optional

import pandas as pd
from rich.console import Group, RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from .tutorial.datasets import DatasetContext
from .tutorial.state import (
    ExecutionFault,
    ExerciseBlock,
    ExerciseStatus,
    LockState,
    Output,
    OutputKind,
    ProgressSummary,
    Section,
)

TABLE_PREVIEW_ROWS = 10

STATUS_STYLES = {
    ExerciseStatus.IDLE: 'dim',
    ExerciseStatus.RUNNING: 'cyan',
    ExerciseStatus.SUCCEEDED: 'green',
    ExerciseStatus.FAILED: 'red',
}


def frame_table(frame: pd.DataFrame, max_rows: int = TABLE_PREVIEW_ROWS) -> Table:
    """Preview of a DataFrame as a rich table"""
    table = Table(caption=f"{frame.shape[0]} rows x {frame.shape[1]} columns")
    show_index = not isinstance(frame.index, pd.RangeIndex)
    if show_index:
        table.add_column(str(frame.index.name or ''), style="dim")
    for column in frame.columns:
        table.add_column(str(column))
    for index, row in frame.head(max_rows).iterrows():
        cells = [str(value) for value in row.tolist()]
        table.add_row(*([str(index)] + cells if show_index else cells))
    return table


def save_artifact(output: Output, path: Path) -> Path:
    """Write an image or widget output to disk"""
    path.parent.mkdir(parents=True, exist_ok=True)
    if output.kind == OutputKind.IMAGE:
        path = path.with_suffix('.png')
        path.write_bytes(output.value)
        return path
    return output.value.save(path.with_suffix('.html'))


def render_output(output: Output, artifact_path: Optional[Path] = None) -> RenderableType:
    """
    Renderable for an exercise output.

    Args:
        output: The output to show
        artifact_path: Where to save images/widgets (suffix is set here)
    """
    parts = []
    if output.stdout and output.kind != OutputKind.TEXT:
        parts.append(Text(output.stdout.rstrip('\n')))

    if output.kind == OutputKind.TEXT:
        parts.append(Text(output.value.rstrip('\n') if output.value else '(no output)'))
    elif output.kind == OutputKind.TABLE:
        parts.append(frame_table(output.value))
    else:
        label = 'static image' if output.kind == OutputKind.IMAGE else f"interactive {output.value.kind}"
        if artifact_path is not None:
            saved = save_artifact(output, artifact_path)
            parts.append(Text.assemble((f"[{label}] ", "bold"), str(saved)))
        else:
            parts.append(Text(f"[{label}]", style="bold"))

    for warning in output.warnings:
        parts.append(Text(f"warning: {warning}", style="yellow"))

    border = "yellow" if output.degraded else "green"
    return Panel(Group(*parts), title="Output", border_style=border)


def render_fault(fault: ExecutionFault) -> RenderableType:
    body = Text(fault.describe(), style="red")
    if fault.stdout:
        body = Group(Text(fault.stdout.rstrip('\n')), body)
    return Panel(body, title="[red]Error[/red]", border_style="red")


def render_exercise(exercise: ExerciseBlock) -> RenderableType:
    """Code plus status badge for one exercise"""
    status = exercise.status.value + (' (edited)' if exercise.edited else '')
    style = STATUS_STYLES[exercise.status]
    code = Syntax(exercise.code or '# (empty)', 'python', line_numbers=True)
    return Panel(
        code,
        title=f"[bold]{exercise.id}[/bold]",
        subtitle=f"[{style}]{status}[/{style}]",
        border_style="cyan",
    )


def render_section(section: Section, lock: LockState) -> RenderableType:
    """Narrative and exercises, or a locked placeholder"""
    heading = f"{section.position + 1}. {section.title}"
    if lock == LockState.LOCKED:
        return Panel(
            Text("Complete the previous section to unlock.", style="dim"),
            title=f"[dim]{heading} (locked)[/dim]",
            border_style="dim",
        )

    parts = [Markdown(section.narrative)] if section.narrative else []
    for exercise in section.exercises:
        parts.append(render_exercise(exercise))
        if exercise.fault is not None and exercise.status == ExerciseStatus.FAILED:
            parts.append(render_fault(exercise.fault))
    return Panel(Group(*parts), title=f"[bold blue]{heading}[/bold blue]", border_style="blue")


def sections_table(sections, lock_states, completed) -> Table:
    table = Table(title="Sections")
    table.add_column("#", justify="right")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Exercises", justify="right")
    table.add_column("State")
    for section in sections:
        lock = lock_states[section.id]
        if section.id in completed:
            state = "[green]completed[/green]"
        elif lock == LockState.UNLOCKED:
            state = "unlocked"
        else:
            state = "[dim]locked[/dim]"
        table.add_row(str(section.position + 1), section.id, section.title, str(len(section.exercises)), state)
    return table


def datasets_table(context: DatasetContext) -> Table:
    table = Table(title="Datasets")
    table.add_column("Name", style="cyan")
    table.add_column("Rows", justify="right")
    table.add_column("Columns")
    for name in context:
        info = context.describe(name)
        table.add_row(name, str(info['rows']), ', '.join(info['columns']))
    return table


def render_progress(summary: ProgressSummary) -> RenderableType:
    return Text.assemble(
        ("Progress: ", "bold"),
        f"{summary.completed_sections}/{summary.total_sections} sections complete "
        f"({summary.completion_rate():.0%}), ",
        f"{summary.unlocked_sections} unlocked, ",
        f"{summary.succeeded_exercises}/{summary.total_exercises} exercises passing",
        (f", {summary.failed_exercises} failing" if summary.failed_exercises else ""),
    )
