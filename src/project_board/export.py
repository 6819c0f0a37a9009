"""CSV and Markdown exports of board tasks."""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence
from datetime import datetime

from project_board.models import ColumnView, TaskView

CSV_HEADER = ("ID", "Title", "Description", "Column", "Created", "Updated", "Branch", "PR")
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
EXPORT_FORMATS = ("csv", "markdown")


def export_csv(tasks: Sequence[TaskView], columns: Sequence[ColumnView]) -> str:
    """Render tasks as CSV; fields with commas, quotes, or newlines are quoted."""

    names = _column_names(columns)
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for task in tasks:
        writer.writerow(
            (
                task.id,
                task.title,
                task.description or "",
                names.get(task.column_id, "Unknown"),
                _timestamp(task.created_at),
                _timestamp(task.updated_at),
                task.branch_name or "",
                task.pr_url or "",
            ),
        )
    return buffer.getvalue()


def export_markdown(tasks: Sequence[TaskView], columns: Sequence[ColumnView]) -> str:
    """Render one ``##`` section per column with a bullet per task."""

    lines = ["# ProjectBoard Export", ""]
    for column in columns:
        column_tasks = [task for task in tasks if task.column_id == column.id]
        lines.append(f"## {column.name} ({len(column_tasks)})")
        lines.append("")
        for task in column_tasks:
            lines.append(f"- **#{task.id}**: {task.title}")
            if task.description:
                lines.append(f"  - {task.description}")
            if task.branch_name:
                lines.append(f"  - Branch: `{task.branch_name}`")
            if task.pr_url:
                lines.append(f"  - PR: {task.pr_url}")
        if column_tasks:
            lines.append("")
    return "\n".join(lines).rstrip("\n") + "\n"


def render_export(
    export_format: str,
    tasks: Sequence[TaskView],
    columns: Sequence[ColumnView],
) -> str:
    if export_format == "csv":
        return export_csv(tasks, columns)
    if export_format == "markdown":
        return export_markdown(tasks, columns)
    raise ValueError(
        f"Unsupported export format: {export_format!r}. "
        f"Expected one of: {', '.join(EXPORT_FORMATS)}.",
    )


def _column_names(columns: Sequence[ColumnView]) -> dict[int, str]:
    return {column.id: column.name for column in columns}


def _timestamp(value: datetime) -> str:
    return value.strftime(TIMESTAMP_FORMAT)
