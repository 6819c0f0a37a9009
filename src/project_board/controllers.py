"""Controllers for board CLI commands."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from project_board.board import BoardSnapshot, BoardView
from project_board.config import Settings
from project_board.errors import (
    AlreadyInitializedError,
    NotARepositoryError,
    NotFoundError,
    NotInitializedError,
)
from project_board.export import render_export
from project_board.lifecycle import TaskLifecycleEngine
from project_board.models import ReviewState, TaskView, TransitionOutcome
from project_board.repository import BoardRepository
from project_board.review import build_review_client
from project_board.review.base import ReviewClient
from project_board.review.github import GitHubReviewClient
from project_board.vcs.git_repo import GitRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BoardLocation:
    """Working tree and database overrides shared by every command."""

    repo_path: Path | None = None
    db_path: Path | None = None


@dataclass(slots=True)
class AddCommand:
    """CLI inputs for add command."""

    title: str
    description: str | None = None
    location: BoardLocation | None = None


@dataclass(slots=True)
class ListCommand:
    """CLI inputs for list command."""

    column: str | None = None
    location: BoardLocation | None = None


@dataclass(slots=True)
class MoveCommand:
    """CLI inputs for move command."""

    task_id: int
    column: str
    location: BoardLocation | None = None


@dataclass(slots=True)
class CommentCommand:
    """CLI inputs for comment command."""

    task_id: int
    text: str
    location: BoardLocation | None = None


@dataclass(slots=True)
class IdeaCommand:
    """CLI inputs for idea creation."""

    content: str
    location: BoardLocation | None = None


@dataclass(slots=True)
class IdeaIdCommand:
    """CLI inputs for commands addressing one idea (promote, drop-idea)."""

    idea_id: int
    location: BoardLocation | None = None


@dataclass(slots=True)
class TaskIdCommand:
    """CLI inputs for commands addressing one task (start, submit, review)."""

    task_id: int
    location: BoardLocation | None = None


@dataclass(slots=True)
class DoneCommand:
    """CLI inputs for done command."""

    task_id: int
    message: str | None = None
    location: BoardLocation | None = None


@dataclass(slots=True)
class ExportCommand:
    """CLI inputs for export command."""

    export_format: str = "csv"
    output: Path | None = None
    location: BoardLocation | None = None


class BoardCliController:
    """Coordinates board command execution."""

    def init(self, location: BoardLocation | None = None) -> list[str]:
        settings = _settings(location)
        GitRepository.open(settings.repo_path, settings=settings.git)
        db_path = settings.effective_db_path
        if db_path.exists():
            raise AlreadyInitializedError(
                f"ProjectBoard already initialized in this repository ({db_path})",
            )
        db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with BoardRepository(
                db_path,
                busy_timeout_ms=settings.busy_timeout_ms,
            ) as repository:
                repository.init_schema()
                engine = TaskLifecycleEngine(repository)
                project, columns, warnings = engine.initialize(
                    project_name=settings.repo_path.name or "project",
                    repo_path=settings.repo_path,
                )
        except Exception:
            logger.warning("Board initialization failed; removing %s", db_path)
            _remove_database(db_path)
            raise

        lines = [
            f"Initialized ProjectBoard for {project.name}",
            "Created default columns: " + ", ".join(column.name for column in columns),
            f"   Database: {db_path}",
            "   Use 'pb add \"Task title\"' to create your first task",
        ]
        return _with_warnings(lines, warnings)

    def add(self, command: AddCommand) -> list[str]:
        with _board(command.location) as engine:
            outcome = engine.add_task(command.title, command.description)
        task = _task(outcome)
        lines = [f"Created task #{task.id}: {task.title}"]
        if task.description:
            lines.append(f"   Description: {task.description}")
        lines.append(f"   Column: {outcome.column_to}")
        return _with_warnings(lines, outcome.warnings)

    def list_tasks(self, command: ListCommand) -> list[str]:
        settings = _settings(command.location)
        with _repository(settings) as repository:
            if command.column is not None:
                column = repository.get_column_by_name(command.column)
                if column is None:
                    raise NotFoundError.column(command.column)
                tasks = repository.get_tasks(column.id)
                lines = [f"{column.name} ({len(tasks)} tasks)"]
                for task in tasks:
                    lines.extend(_task_lines(task))
                return lines

            lines = []
            for column in repository.get_columns():
                tasks = repository.get_tasks(column.id)
                if lines:
                    lines.append("")
                lines.append(f"{column.name} ({len(tasks)} tasks)")
                if not tasks:
                    lines.append("  (no tasks)")
                for task in tasks:
                    lines.extend(_task_lines(task))
            return lines

    def move(self, command: MoveCommand) -> list[str]:
        with _board(command.location) as engine:
            outcome = engine.move(command.task_id, command.column)
        task = _task(outcome)
        lines = [
            f"Moved task #{task.id}: {outcome.column_from} → {outcome.column_to}",
            f"   {task.title}",
        ]
        return _with_warnings(lines, outcome.warnings)

    def comment(self, command: CommentCommand) -> list[str]:
        with _board(command.location) as engine:
            outcome = engine.comment(command.task_id, command.text)
        task = _task(outcome)
        comment = outcome.comment
        lines = [f"Added comment to task #{task.id}: {task.title}"]
        if comment is not None:
            lines.append(f"   {comment.author}: {comment.text}")
        return _with_warnings(lines, outcome.warnings)

    def idea(self, command: IdeaCommand) -> list[str]:
        with _board(command.location) as engine:
            outcome = engine.create_idea(command.content)
        idea = outcome.idea
        lines = [f"Created idea #{idea.id}: {idea.content}"] if idea is not None else []
        return _with_warnings(lines, outcome.warnings)

    def ideas(self, location: BoardLocation | None = None) -> list[str]:
        settings = _settings(location)
        with _repository(settings) as repository:
            ideas = repository.get_ideas()
        if not ideas:
            return ["No ideas yet. Add one with 'pb idea \"...\"'."]
        return [f"Ideas ({len(ideas)})"] + [f"  #{idea.id}: {idea.content}" for idea in ideas]

    def drop_idea(self, command: IdeaIdCommand) -> list[str]:
        with _board(command.location) as engine:
            outcome = engine.delete_idea(command.idea_id)
        lines = [f"Deleted idea #{command.idea_id}"]
        return _with_warnings(lines, outcome.warnings)

    def promote(self, command: IdeaIdCommand) -> list[str]:
        with _board(command.location) as engine:
            outcome = engine.promote(command.idea_id)
        task = _task(outcome)
        lines = [
            f"Promoted idea #{command.idea_id} to task #{task.id}: {task.title}",
            f"   Column: {outcome.column_to}",
        ]
        return _with_warnings(lines, outcome.warnings)

    def start(self, command: TaskIdCommand) -> list[str]:
        with _board(command.location, needs_git=True) as engine:
            outcome = engine.start(command.task_id)
        task = _task(outcome)
        lines = [f"Started task #{task.id}: {task.title}"]
        lines.extend(f"   {note}" for note in outcome.notes)
        lines.append(f"   Moved to: {outcome.column_to}")
        return _with_warnings(lines, outcome.warnings)

    def done(self, command: DoneCommand) -> list[str]:
        with _board(command.location, needs_git=True) as engine:
            outcome = engine.done(command.task_id, command.message)
        task = _task(outcome)
        lines = [f"   {note}" for note in outcome.notes]
        lines.insert(0, f"Completed task #{task.id}: {task.title}")
        lines.append(f"   Moved to: {outcome.column_to}")
        return _with_warnings(lines, outcome.warnings)

    def submit(self, command: TaskIdCommand) -> list[str]:
        with _board(command.location, needs_git=True, needs_review=True) as engine:
            outcome = engine.submit(command.task_id)
        task = _task(outcome)
        lines = [f"Submitted task #{task.id} for review: {task.title}"]
        lines.extend(f"   {note}" for note in outcome.notes)
        lines.append(f"   Moved to: {outcome.column_to}")
        return _with_warnings(lines, outcome.warnings)

    def review(self, command: TaskIdCommand) -> list[str]:
        with _board(command.location, needs_review=True) as engine:
            outcome = engine.review(command.task_id)
        task = _task(outcome)
        lines = [f"Review for task #{task.id}: {task.title}"]
        if task.pr_url:
            lines.append(f"   PR: {task.pr_url}")
            if outcome.review_status is not None:
                lines.append(f"   Status: {outcome.review_status.value}")
        lines.extend(f"   {note}" for note in outcome.notes)
        if outcome.column_to:
            lines.append(f"   Moved to: {outcome.column_to}")
        return _with_warnings(lines, outcome.warnings)

    def board(self, location: BoardLocation | None = None) -> None:
        settings = _settings(location)
        with _repository(settings) as repository:
            view = BoardView(lambda: BoardSnapshot.load(repository))
            view.run()

    def export(self, command: ExportCommand) -> str:
        settings = _settings(command.location)
        with _repository(settings) as repository:
            tasks = repository.get_tasks()
            columns = repository.get_columns()
        rendered = render_export(command.export_format, tasks, columns)
        if command.output is None:
            return rendered
        command.output.parent.mkdir(parents=True, exist_ok=True)
        command.output.write_text(rendered, encoding="utf-8")
        return f"Exported {len(tasks)} tasks to {command.output}\n"


def _settings(location: BoardLocation | None) -> Settings:
    location = location or BoardLocation()
    settings = Settings.from_env(repo_path=location.repo_path, db_path=location.db_path)
    settings.validate()
    return settings


@contextmanager
def _repository(settings: Settings) -> Iterator[BoardRepository]:
    db_path = settings.effective_db_path
    if not db_path.exists():
        raise NotInitializedError("ProjectBoard not initialized. Run 'pb init' first.")
    repository = BoardRepository(db_path, busy_timeout_ms=settings.busy_timeout_ms)
    try:
        repository.init_schema()
        yield repository
    finally:
        repository.close()


def _remove_database(db_path: Path) -> None:
    for path in (db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
        path.unlink(missing_ok=True)


@contextmanager
def _review_client(settings: Settings) -> Iterator[ReviewClient]:
    client = build_review_client(settings.review)
    try:
        yield client
    finally:
        if isinstance(client, GitHubReviewClient):
            client.close()


@contextmanager
def _board(
    location: BoardLocation | None,
    *,
    needs_git: bool = False,
    needs_review: bool = False,
) -> Iterator[TaskLifecycleEngine]:
    settings = _settings(location)
    with _repository(settings) as repository:
        vcs = _open_vcs(settings, required=needs_git)
        if not needs_review:
            yield TaskLifecycleEngine(repository, vcs=vcs)
            return
        with _review_client(settings) as review_client:
            yield TaskLifecycleEngine(
                repository,
                vcs=vcs,
                review_client=review_client,
                base_branch=settings.review.base_branch,
            )


def _open_vcs(settings: Settings, *, required: bool) -> GitRepository | None:
    try:
        return GitRepository.open(settings.repo_path, settings=settings.git)
    except NotARepositoryError:
        if required:
            raise
        logger.info("No git working tree at %s", settings.repo_path)
        return None


def _task(outcome: TransitionOutcome) -> TaskView:
    if outcome.task is None:
        raise RuntimeError("Lifecycle operation returned no task")
    return outcome.task


def _task_lines(task: TaskView) -> list[str]:
    lines = [f"  #{task.id}: {task.title}"]
    if task.description:
        lines.append(f"      {task.description}")
    if task.branch_name:
        lines.append(f"      Branch: {task.branch_name}")
    if task.pr_url:
        suffix = " (manual follow-up)" if task.review_state is ReviewState.MANUAL else ""
        lines.append(f"      PR: {task.pr_url}{suffix}")
    return lines


def _with_warnings(lines: list[str], warnings: list[str]) -> list[str]:
    return lines + [f"Warning: {warning}" for warning in warnings]
