"""CLI entrypoint for project-board."""

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import rich_click as click

from project_board import __version__
from project_board.controllers import (
    AddCommand,
    BoardCliController,
    BoardLocation,
    CommentCommand,
    DoneCommand,
    ExportCommand,
    IdeaCommand,
    IdeaIdCommand,
    ListCommand,
    MoveCommand,
    TaskIdCommand,
)
from project_board.errors import BoardError
from project_board.export import EXPORT_FORMATS

click.rich_click.USE_MARKDOWN = True
BOARD_CONTROLLER = BoardCliController()

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="pb")
@click.option(
    "--repo",
    "repo_path",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Git working tree holding the board. Defaults to PB_REPO_PATH or the current directory.",
)
@click.option(
    "--db-path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="SQLite DB path. Defaults to `<repo>/.projectboard/board.sqlite`.",
)
@click.pass_context
def pb(ctx: click.Context, repo_path: Path | None, db_path: Path | None) -> None:
    """Git-aware kanban board for the terminal."""

    _configure_logging()
    ctx.obj = BoardLocation(repo_path=repo_path, db_path=db_path)


@pb.command("init")
@click.pass_obj
def init_board(location: BoardLocation) -> None:
    """Create the board for the current git working tree."""

    with _board_errors():
        _emit_lines(BOARD_CONTROLLER.init(location))


@pb.command("add")
@click.argument("title")
@click.option("-d", "--description", default=None, help="Optional task description.")
@click.pass_obj
def add_task(location: BoardLocation, title: str, description: str | None) -> None:
    """Add a task to the Backlog."""

    with _board_errors():
        _emit_lines(
            BOARD_CONTROLLER.add(
                AddCommand(title=title, description=description, location=location),
            ),
        )


@pb.command("list")
@click.argument("column", required=False)
@click.pass_obj
def list_tasks(location: BoardLocation, column: str | None) -> None:
    """List tasks, optionally only those in one column."""

    with _board_errors():
        _emit_lines(BOARD_CONTROLLER.list_tasks(ListCommand(column=column, location=location)))


@pb.command("move")
@click.argument("task_id", type=int)
@click.argument("column")
@click.pass_obj
def move_task(location: BoardLocation, task_id: int, column: str) -> None:
    """Move a task to another column without touching git."""

    with _board_errors():
        _emit_lines(
            BOARD_CONTROLLER.move(
                MoveCommand(task_id=task_id, column=column, location=location),
            ),
        )


@pb.command("comment")
@click.argument("task_id", type=int)
@click.argument("text")
@click.pass_obj
def comment_task(location: BoardLocation, task_id: int, text: str) -> None:
    """Comment on a task; the author comes from git config."""

    with _board_errors():
        _emit_lines(
            BOARD_CONTROLLER.comment(
                CommentCommand(task_id=task_id, text=text, location=location),
            ),
        )


@pb.command("idea")
@click.argument("content")
@click.pass_obj
def create_idea(location: BoardLocation, content: str) -> None:
    """Capture an idea outside the board columns."""

    with _board_errors():
        _emit_lines(BOARD_CONTROLLER.idea(IdeaCommand(content=content, location=location)))


@pb.command("ideas")
@click.pass_obj
def list_ideas(location: BoardLocation) -> None:
    """List captured ideas, newest first."""

    with _board_errors():
        _emit_lines(BOARD_CONTROLLER.ideas(location))


@pb.command("drop-idea")
@click.argument("idea_id", type=int)
@click.pass_obj
def drop_idea(location: BoardLocation, idea_id: int) -> None:
    """Delete an idea without creating a task."""

    with _board_errors():
        _emit_lines(BOARD_CONTROLLER.drop_idea(IdeaIdCommand(idea_id=idea_id, location=location)))


@pb.command("promote")
@click.argument("idea_id", type=int)
@click.pass_obj
def promote_idea(location: BoardLocation, idea_id: int) -> None:
    """Turn an idea into a Backlog task."""

    with _board_errors():
        _emit_lines(BOARD_CONTROLLER.promote(IdeaIdCommand(idea_id=idea_id, location=location)))


@pb.command("start")
@click.argument("task_id", type=int)
@click.pass_obj
def start_task(location: BoardLocation, task_id: int) -> None:
    """Create and check out the task branch, then move the task to Doing."""

    with _board_errors():
        _emit_lines(BOARD_CONTROLLER.start(TaskIdCommand(task_id=task_id, location=location)))


@pb.command("done")
@click.argument("task_id", type=int)
@click.option(
    "-m",
    "--message",
    default=None,
    help="Commit message. Defaults to `Closes #<id>: <title>`.",
)
@click.pass_obj
def done_task(location: BoardLocation, task_id: int, message: str | None) -> None:
    """Commit staged changes, push the branch, and move the task to Done."""

    with _board_errors():
        _emit_lines(
            BOARD_CONTROLLER.done(
                DoneCommand(task_id=task_id, message=message, location=location),
            ),
        )


@pb.command("submit")
@click.argument("task_id", type=int)
@click.pass_obj
def submit_task(location: BoardLocation, task_id: int) -> None:
    """Push the branch, request a review, and move the task to Review.

    Set `GITHUB_TOKEN` to open a pull request; without it a compare link is
    stored for manual follow-up.
    """

    with _board_errors():
        _emit_lines(BOARD_CONTROLLER.submit(TaskIdCommand(task_id=task_id, location=location)))


@pb.command("review")
@click.argument("task_id", type=int)
@click.pass_obj
def review_task(location: BoardLocation, task_id: int) -> None:
    """Show review status; a merged pull request moves the task to Done."""

    with _board_errors():
        _emit_lines(BOARD_CONTROLLER.review(TaskIdCommand(task_id=task_id, location=location)))


@pb.command("board")
@click.pass_obj
def show_board(location: BoardLocation) -> None:
    """Open the interactive board view."""

    with _board_errors():
        BOARD_CONTROLLER.board(location)


@pb.command("export")
@click.option(
    "-f",
    "--format",
    "export_format",
    type=click.Choice(EXPORT_FORMATS),
    default="csv",
    show_default=True,
    help="Output format.",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Write to this file instead of stdout.",
)
@click.pass_obj
def export_tasks(location: BoardLocation, export_format: str, output: Path | None) -> None:
    """Export all tasks as CSV or Markdown."""

    with _board_errors():
        rendered = BOARD_CONTROLLER.export(
            ExportCommand(export_format=export_format, output=output, location=location),
        )
    click.echo(rendered, nl=False)


@contextmanager
def _board_errors() -> Iterator[None]:
    try:
        yield
    except BoardError as error:
        logger.debug("Command failed with %s", error.code)
        raise click.ClickException(error.message) from error
    except ValueError as error:
        raise click.ClickException(str(error)) from error


def _configure_logging() -> None:
    level = os.getenv("PB_LOG_LEVEL", "WARNING").strip().upper()
    logging.basicConfig(
        level=level if isinstance(logging.getLevelName(level), int) else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    pb()
