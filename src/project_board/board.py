"""Interactive read-only board view.

The view holds its own snapshot of columns and tasks and reloads it only
when the user presses ``r``; it never performs lifecycle operations.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from itertools import zip_longest

import click
from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from project_board.models import ColumnView, ReviewState, TaskView
from project_board.repository import BoardRepository

HELP_TEXT = "ProjectBoard - use ← → (or h/l) to navigate, 'r' to refresh, 'q' to quit"

KEY_LEFT = "\x1b[D"
KEY_RIGHT = "\x1b[C"
LEFT_KEYS = {KEY_LEFT, "h"}
RIGHT_KEYS = {KEY_RIGHT, "l"}
REFRESH_KEYS = {"r", "R"}
QUIT_KEYS = {"q", "Q", "\x1b", "\x03"}


@dataclass(slots=True)
class BoardSnapshot:
    """Columns in pipeline order with their tasks, newest first."""

    columns: list[ColumnView]
    tasks_by_column: dict[int, list[TaskView]] = field(default_factory=dict)

    @classmethod
    def load(cls, store: BoardRepository) -> BoardSnapshot:
        columns = store.get_columns()
        grouped: dict[int, list[TaskView]] = {column.id: [] for column in columns}
        for task in store.get_tasks():
            grouped.setdefault(task.column_id, []).append(task)
        return cls(columns=columns, tasks_by_column=grouped)

    def tasks_in(self, column: ColumnView) -> list[TaskView]:
        return self.tasks_by_column.get(column.id, [])


class BoardView:
    """Keyboard-driven rendering of a board snapshot."""

    def __init__(
        self,
        loader: Callable[[], BoardSnapshot],
        *,
        console: Console | None = None,
        read_key: Callable[[], str] = click.getchar,
    ) -> None:
        self._loader = loader
        self._console = console or Console()
        self._read_key = read_key
        self.snapshot = loader()
        self.selected_column = 0

    def next_column(self) -> None:
        if self.selected_column < len(self.snapshot.columns) - 1:
            self.selected_column += 1

    def previous_column(self) -> None:
        if self.selected_column > 0:
            self.selected_column -= 1

    def refresh(self) -> None:
        self.snapshot = self._loader()
        if self.snapshot.columns:
            self.selected_column = min(self.selected_column, len(self.snapshot.columns) - 1)
        else:
            self.selected_column = 0

    def handle_key(self, key: str) -> bool:
        """Apply one key press; returns False when the view should close."""

        if key in QUIT_KEYS:
            return False
        if key in LEFT_KEYS:
            self.previous_column()
        elif key in RIGHT_KEYS:
            self.next_column()
        elif key in REFRESH_KEYS:
            self.refresh()
        return True

    def render(self) -> RenderableType:
        header = Panel(Text(HELP_TEXT, style="cyan"), title="Help", title_align="left")
        table = Table(expand=True, show_lines=False)
        column_tasks = [self.snapshot.tasks_in(column) for column in self.snapshot.columns]
        for index, (column, tasks) in enumerate(zip(self.snapshot.columns, column_tasks)):
            selected = index == self.selected_column
            table.add_column(
                f"{column.name} ({len(tasks)})",
                header_style="bold green" if selected else "bold",
                ratio=1,
                overflow="fold",
            )
        for row in zip_longest(*column_tasks):
            table.add_row(*(_task_cell(task) for task in row))
        return Group(header, table)

    def run(self) -> None:
        with self._console.screen():
            while True:
                self._console.clear()
                self._console.print(self.render())
                if not self.handle_key(self._read_key()):
                    break


def _task_cell(task: TaskView | None) -> Text:
    if task is None:
        return Text("")
    cell = Text()
    cell.append(f"#{task.id} ", style="yellow")
    cell.append(task.title)
    if task.review_state is ReviewState.MANUAL:
        cell.append(" (manual review)", style="dim")
    return cell
