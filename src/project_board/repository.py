"""SQLModel-backed storage facade for board entities."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from project_board.errors import NotFoundError, PersistenceError
from project_board.models import (
    DEFAULT_COLUMNS,
    ActivityEntry,
    ActivityEvent,
    ColumnView,
    CommentView,
    IdeaView,
    ProjectView,
    ReviewState,
    TaskView,
)
from project_board.storage.alembic_runner import upgrade_head
from project_board.storage.common import build_sqlite_engine, to_utc_aware, utc_now
from project_board.storage.sqlmodel_models import (
    ActivityLog,
    BoardColumn,
    Comment,
    Idea,
    Project,
    Task,
)

logger = logging.getLogger(__name__)


class BoardRepository:
    """Persistence facade for projects, columns, tasks, comments, ideas, and activity."""

    def __init__(self, db_path: Path, *, busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=busy_timeout_ms)

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def __enter__(self) -> BoardRepository:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def init_schema(self) -> None:
        """Run schema migrations up to head."""

        try:
            upgrade_head(self.db_path)
        except SQLAlchemyError as error:
            raise PersistenceError(f"Failed to migrate board database: {error}") from error

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with Session(self.engine) as session:
            try:
                yield session
            except SQLAlchemyError as error:
                session.rollback()
                logger.warning("Board store operation failed: %s", error)
                raise PersistenceError(f"Board store operation failed: {error}") from error

    # Projects

    def create_project(self, name: str, repo_path: str) -> ProjectView:
        with self._session() as session:
            row = Project(name=name, repo_path=repo_path)
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_project_view(row)

    def get_project(self) -> ProjectView | None:
        with self._session() as session:
            row = session.exec(select(Project).order_by(col(Project.id))).first()
            return _to_project_view(row) if row is not None else None

    # Columns

    def create_default_columns(self) -> list[ColumnView]:
        """Create the fixed pipeline columns; existing ones are kept."""

        with self._session() as session:
            existing = {row.name for row in session.exec(select(BoardColumn)).all()}
            for order, name in enumerate(DEFAULT_COLUMNS):
                if name not in existing:
                    session.add(BoardColumn(name=name, order=order))
            session.commit()
        return self.get_columns()

    def get_columns(self) -> list[ColumnView]:
        with self._session() as session:
            rows = session.exec(
                select(BoardColumn).order_by(col(BoardColumn.order), col(BoardColumn.id)),
            ).all()
            return [_to_column_view(row) for row in rows]

    def get_column(self, column_id: int) -> ColumnView | None:
        with self._session() as session:
            row = session.get(BoardColumn, column_id)
            return _to_column_view(row) if row is not None else None

    def get_column_by_name(self, name: str) -> ColumnView | None:
        """Resolve a column by exact name, then case-insensitively."""

        with self._session() as session:
            row = session.exec(select(BoardColumn).where(BoardColumn.name == name)).one_or_none()
            if row is None:
                row = session.exec(
                    select(BoardColumn).where(
                        func.lower(BoardColumn.name) == name.strip().lower(),
                    ),
                ).first()
            return _to_column_view(row) if row is not None else None

    # Tasks

    def create_task(self, title: str, description: str | None, column_id: int) -> TaskView:
        now = utc_now()
        with self._session() as session:
            row = Task(
                title=title,
                description=description,
                column_id=column_id,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_task_view(row)

    def get_task(self, task_id: int) -> TaskView | None:
        with self._session() as session:
            row = session.get(Task, task_id)
            return _to_task_view(row) if row is not None else None

    def get_tasks(self, column_id: int | None = None) -> list[TaskView]:
        """Tasks ordered by column order, newest first within a column."""

        with self._session() as session:
            statement = select(Task).join(BoardColumn, col(Task.column_id) == col(BoardColumn.id))
            if column_id is not None:
                statement = statement.where(Task.column_id == column_id)
            statement = statement.order_by(
                col(BoardColumn.order),
                col(Task.created_at).desc(),
                col(Task.id).desc(),
            )
            return [_to_task_view(row) for row in session.exec(statement).all()]

    def update_task(
        self,
        task_id: int,
        *,
        column_id: int | None = None,
        branch_name: str | None = None,
        pr_url: str | None = None,
        review_state: ReviewState | None = None,
    ) -> TaskView:
        """Apply the given field changes to one task in a single transaction.

        ``branch_name`` is write-once: a different value for a task that
        already records a branch is rejected.
        """

        with self._session() as session:
            row = session.get(Task, task_id)
            if row is None:
                raise NotFoundError.task(task_id)
            if branch_name is not None:
                if row.branch_name and row.branch_name != branch_name:
                    raise ValueError(
                        f"Task #{task_id} already records branch {row.branch_name!r}",
                    )
                row.branch_name = branch_name
            if column_id is not None:
                row.column_id = column_id
            if pr_url is not None:
                row.pr_url = pr_url
            if review_state is not None:
                row.review_state = review_state.value
            row.updated_at = utc_now()
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_task_view(row)

    def update_task_column(self, task_id: int, column_id: int) -> TaskView:
        return self.update_task(task_id, column_id=column_id)

    # Comments

    def create_comment(self, task_id: int, author: str, text: str) -> CommentView:
        """Append a comment and refresh the task's ``updated_at`` together."""

        now = utc_now()
        with self._session() as session:
            task = session.get(Task, task_id)
            if task is None:
                raise NotFoundError.task(task_id)
            row = Comment(task_id=task_id, author=author, text=text, created_at=now)
            task.updated_at = now
            session.add(row)
            session.add(task)
            session.commit()
            session.refresh(row)
            return _to_comment_view(row)

    def get_comments(self, task_id: int) -> list[CommentView]:
        with self._session() as session:
            rows = session.exec(
                select(Comment)
                .where(Comment.task_id == task_id)
                .order_by(col(Comment.created_at), col(Comment.id)),
            ).all()
            return [_to_comment_view(row) for row in rows]

    # Ideas

    def create_idea(self, content: str) -> IdeaView:
        with self._session() as session:
            row = Idea(content=content, created_at=utc_now())
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_idea_view(row)

    def get_idea(self, idea_id: int) -> IdeaView | None:
        with self._session() as session:
            row = session.get(Idea, idea_id)
            return _to_idea_view(row) if row is not None else None

    def get_ideas(self) -> list[IdeaView]:
        with self._session() as session:
            rows = session.exec(
                select(Idea).order_by(col(Idea.created_at).desc(), col(Idea.id).desc()),
            ).all()
            return [_to_idea_view(row) for row in rows]

    def delete_idea(self, idea_id: int) -> bool:
        with self._session() as session:
            row = session.get(Idea, idea_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    def promote_idea(self, idea_id: int, column_id: int) -> TaskView:
        """Consume an idea into a new task within one transaction."""

        now = utc_now()
        with self._session() as session:
            idea = session.get(Idea, idea_id)
            if idea is None:
                raise NotFoundError.idea(idea_id)
            task = Task(
                title=idea.content,
                description=None,
                column_id=column_id,
                created_at=now,
                updated_at=now,
            )
            session.add(task)
            session.delete(idea)
            session.commit()
            session.refresh(task)
            return _to_task_view(task)

    # Activity

    def append_activity(
        self,
        event: ActivityEvent | str,
        metadata: str | None = None,
    ) -> ActivityEntry:
        event_name = event.value if isinstance(event, ActivityEvent) else event
        with self._session() as session:
            row = ActivityLog(event=event_name, metadata_text=metadata, created_at=utc_now())
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_activity_entry(row)

    def list_activity(self, limit: int | None = None) -> list[ActivityEntry]:
        """Newest entries first."""

        with self._session() as session:
            statement = select(ActivityLog).order_by(
                col(ActivityLog.created_at).desc(),
                col(ActivityLog.id).desc(),
            )
            if limit is not None:
                statement = statement.limit(limit)
            return [_to_activity_entry(row) for row in session.exec(statement).all()]

    def count_activity(self) -> int:
        with self._session() as session:
            return int(session.exec(select(func.count()).select_from(ActivityLog)).one())


def _to_project_view(row: Project) -> ProjectView:
    return ProjectView(id=_require_id(row.id), name=row.name, repo_path=row.repo_path)


def _to_column_view(row: BoardColumn) -> ColumnView:
    return ColumnView(id=_require_id(row.id), name=row.name, order=row.order)


def _to_task_view(row: Task) -> TaskView:
    return TaskView(
        id=_require_id(row.id),
        title=row.title,
        description=row.description,
        column_id=row.column_id,
        assignee=row.assignee,
        created_at=to_utc_aware(row.created_at),
        updated_at=to_utc_aware(row.updated_at),
        branch_name=row.branch_name,
        pr_url=row.pr_url,
        review_state=ReviewState(row.review_state) if row.review_state else None,
    )


def _to_comment_view(row: Comment) -> CommentView:
    return CommentView(
        id=_require_id(row.id),
        task_id=row.task_id,
        author=row.author,
        text=row.text,
        created_at=to_utc_aware(row.created_at),
    )


def _to_idea_view(row: Idea) -> IdeaView:
    return IdeaView(
        id=_require_id(row.id),
        content=row.content,
        created_at=to_utc_aware(row.created_at),
    )


def _to_activity_entry(row: ActivityLog) -> ActivityEntry:
    return ActivityEntry(
        id=_require_id(row.id),
        event=row.event,
        metadata=row.metadata_text,
        created_at=to_utc_aware(row.created_at),
    )


def _require_id(value: int | None) -> int:
    if value is None:
        raise RuntimeError("Row has no primary key after commit")
    return value
