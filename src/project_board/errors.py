"""Error taxonomy shared by the lifecycle engine and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class BoardError(Exception):
    """Base board error carrying a human-readable message."""

    message: str
    code: str = "board_error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class NotInitializedError(BoardError):
    """Board database is missing for the working tree."""

    code: str = "not_initialized"


@dataclass(slots=True)
class AlreadyInitializedError(BoardError):
    """Board database already exists for the working tree."""

    code: str = "already_initialized"


@dataclass(slots=True)
class NotFoundError(BoardError):
    """Task, column, or idea could not be resolved."""

    code: str = "not_found"
    kind: str = ""
    key: str = ""

    @classmethod
    def task(cls, task_id: int) -> NotFoundError:
        return cls(f"Task #{task_id} not found", kind="task", key=str(task_id))

    @classmethod
    def idea(cls, idea_id: int) -> NotFoundError:
        return cls(f"Idea #{idea_id} not found", kind="idea", key=str(idea_id))

    @classmethod
    def column(cls, name: str) -> NotFoundError:
        return cls(f"Column '{name}' not found", kind="column", key=name)


@dataclass(slots=True)
class MissingBranchError(BoardError):
    """Task has not been started, so there is no branch to submit."""

    code: str = "missing_branch"


@dataclass(slots=True)
class ExternalToolError(BoardError):
    """Version-control operation failed; the transition is aborted."""

    code: str = "external_tool_failure"
    operation: str = ""


@dataclass(slots=True)
class NotARepositoryError(ExternalToolError):
    """Path is not inside a git working tree."""

    code: str = "not_a_repository"


@dataclass(slots=True)
class ReviewServiceError(BoardError):
    """Review request failed or was skipped; callers degrade to a fallback."""

    code: str = "external_service_degraded"
    status_code: int | None = None


@dataclass(slots=True)
class PersistenceError(BoardError):
    """Store rejected a read or write, e.g. the database is locked."""

    code: str = "persistence_failure"
