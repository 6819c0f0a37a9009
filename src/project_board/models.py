"""Domain models for board state, activity, and lifecycle outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

BACKLOG = "Backlog"
TODO = "To Do"
DOING = "Doing"
REVIEW = "Review"
DONE = "Done"

DEFAULT_COLUMNS: tuple[str, ...] = (BACKLOG, TODO, DOING, REVIEW, DONE)


class ActivityEvent(str, Enum):
    """Fixed taxonomy of activity log events."""

    PROJECT_INITIALIZED = "project_initialized"
    TASK_CREATED = "task_created"
    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"
    TASK_SUBMITTED = "task_submitted"
    TASK_MOVED = "task_moved"
    COMMENT_ADDED = "comment_added"
    IDEA_CREATED = "idea_created"
    IDEA_PROMOTED = "idea_promoted"
    IDEA_DELETED = "idea_deleted"


class ReviewState(str, Enum):
    """Whether a recorded review link is a real request or a manual follow-up."""

    REQUESTED = "requested"
    MANUAL = "manual"


class ReviewStatus(str, Enum):
    """Remote status of an opened review request."""

    OPEN = "open"
    MERGED = "merged"
    CLOSED = "closed"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class ProjectView:
    id: int
    name: str
    repo_path: str


@dataclass(slots=True)
class ColumnView:
    id: int
    name: str
    order: int


@dataclass(slots=True)
class TaskView:
    """Read model of a task row."""

    id: int
    title: str
    description: str | None
    column_id: int
    assignee: str | None
    created_at: datetime
    updated_at: datetime
    branch_name: str | None = None
    pr_url: str | None = None
    review_state: ReviewState | None = None


@dataclass(slots=True)
class CommentView:
    id: int
    task_id: int
    author: str
    text: str
    created_at: datetime


@dataclass(slots=True)
class IdeaView:
    id: int
    content: str
    created_at: datetime


@dataclass(slots=True)
class ActivityEntry:
    id: int
    event: str
    metadata: str | None
    created_at: datetime


@dataclass(slots=True)
class TransitionOutcome:
    """Result of one lifecycle operation.

    ``notes`` describe side effects (commit made, push simulated, fallback link
    used). ``warnings`` hold non-fatal problems such as a failed activity
    append.
    """

    task: TaskView | None = None
    idea: IdeaView | None = None
    comment: CommentView | None = None
    review_status: ReviewStatus | None = None
    column_from: str | None = None
    column_to: str | None = None
    notes: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
