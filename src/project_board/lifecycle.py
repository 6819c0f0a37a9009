"""Task lifecycle engine.

Transitions move tasks between board columns and drive the git and review
side effects that each column implies. Within one operation every external
side effect runs before the task row is written, so a failed git call never
leaves a task in a column claiming work that did not happen. The exception
is the review request in ``submit``: when it cannot be opened a fallback
link is stored and the task still moves to Review.

Each successful operation appends one activity entry after its write. A
failed append is reported as a warning and never undoes the transition.
"""

from __future__ import annotations

import logging
from pathlib import Path

from project_board.branching import branch_name_for
from project_board.errors import (
    MissingBranchError,
    NotARepositoryError,
    NotFoundError,
    PersistenceError,
    ReviewServiceError,
)
from project_board.models import (
    BACKLOG,
    DOING,
    DONE,
    REVIEW,
    ActivityEvent,
    ColumnView,
    ProjectView,
    ReviewState,
    ReviewStatus,
    TaskView,
    TransitionOutcome,
)
from project_board.repository import BoardRepository
from project_board.review.base import (
    ReviewClient,
    ReviewRequest,
    ReviewResult,
    compare_url,
    manual_review_note,
    parse_remote_url,
)
from project_board.vcs.base import VersionControl

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "unknown"


class TaskLifecycleEngine:
    """Applies board operations against an injected store, working tree and review client."""

    def __init__(
        self,
        store: BoardRepository,
        *,
        vcs: VersionControl | None = None,
        review_client: ReviewClient | None = None,
        base_branch: str = "main",
    ) -> None:
        self.store = store
        self.vcs = vcs
        self.review_client = review_client
        self.base_branch = base_branch

    def initialize(
        self,
        *,
        project_name: str,
        repo_path: Path,
    ) -> tuple[ProjectView, list[ColumnView], list[str]]:
        """Seed the fixed columns and the project row; returns warnings as the third item."""

        columns = self.store.create_default_columns()
        project = self.store.create_project(project_name, str(repo_path))
        outcome = TransitionOutcome()
        self._record(outcome, ActivityEvent.PROJECT_INITIALIZED, f"Project: {project.name}")
        return project, columns, outcome.warnings

    def add_task(self, title: str, description: str | None = None) -> TransitionOutcome:
        backlog = self._require_column(BACKLOG)
        task = self.store.create_task(title, description, backlog.id)
        outcome = TransitionOutcome(task=task, column_to=backlog.name)
        self._record(outcome, ActivityEvent.TASK_CREATED, f"Task #{task.id}: {task.title}")
        return outcome

    def comment(self, task_id: int, text: str) -> TransitionOutcome:
        task = self._require_task(task_id)
        author = (self.vcs.author_name() if self.vcs is not None else None) or UNKNOWN_AUTHOR
        comment = self.store.create_comment(task.id, author, text)
        outcome = TransitionOutcome(task=task, comment=comment)
        self._record(
            outcome,
            ActivityEvent.COMMENT_ADDED,
            f"Task #{task.id}: comment by {author}",
        )
        return outcome

    def create_idea(self, content: str) -> TransitionOutcome:
        idea = self.store.create_idea(content)
        outcome = TransitionOutcome(idea=idea)
        self._record(outcome, ActivityEvent.IDEA_CREATED, f"Idea #{idea.id}: {idea.content}")
        return outcome

    def delete_idea(self, idea_id: int) -> TransitionOutcome:
        idea = self.store.get_idea(idea_id)
        if idea is None or not self.store.delete_idea(idea_id):
            raise NotFoundError.idea(idea_id)
        outcome = TransitionOutcome(idea=idea)
        self._record(outcome, ActivityEvent.IDEA_DELETED, f"Idea #{idea.id}: {idea.content}")
        return outcome

    def promote(self, idea_id: int) -> TransitionOutcome:
        """Consume an idea into a new Backlog task."""

        idea = self.store.get_idea(idea_id)
        if idea is None:
            raise NotFoundError.idea(idea_id)
        backlog = self._require_column(BACKLOG)
        task = self.store.promote_idea(idea.id, backlog.id)
        outcome = TransitionOutcome(task=task, idea=idea, column_to=backlog.name)
        self._record(
            outcome,
            ActivityEvent.IDEA_PROMOTED,
            f"Idea #{idea.id} → Task #{task.id}: {idea.content}",
        )
        return outcome

    def start(self, task_id: int) -> TransitionOutcome:
        """Create and check out the task branch, then move the task to Doing.

        A task that already records a branch gets that branch checked out
        again; the recorded name never changes.
        """

        task = self._require_task(task_id)
        doing = self._require_column(DOING)
        vcs = self._require_vcs()
        column_from = self._column_name(task.column_id)

        outcome = TransitionOutcome(column_from=column_from, column_to=doing.name)
        if task.branch_name:
            branch = task.branch_name
            vcs.checkout_branch(branch)
            outcome.notes.append(f"Checked out existing branch: {branch}")
            metadata = f"Task #{task.id}: resumed branch {branch}"
        else:
            branch = branch_name_for(task.id, task.title)
            vcs.create_branch(branch)
            vcs.checkout_branch(branch)
            outcome.notes.append(f"Created and checked out branch: {branch}")
            metadata = f"Task #{task.id}: created branch {branch}"

        outcome.task = self.store.update_task(task.id, branch_name=branch, column_id=doing.id)
        self._record(outcome, ActivityEvent.TASK_STARTED, metadata)
        return outcome

    def done(self, task_id: int, message: str | None = None) -> TransitionOutcome:
        """Commit staged work, push the task branch, and move the task to Done."""

        task = self._require_task(task_id)
        done = self._require_column(DONE)
        vcs = self._require_vcs()
        outcome = TransitionOutcome(
            column_from=self._column_name(task.column_id),
            column_to=done.name,
        )

        if vcs.has_staged_changes():
            commit_message = message or default_commit_message(task)
            sha = vcs.commit(commit_message)
            outcome.notes.append(f"Committed changes ({sha[:8]}): {commit_message}")
        else:
            outcome.notes.append("No staged changes to commit")

        if task.branch_name:
            push = vcs.push_branch(task.branch_name)
            outcome.notes.append(f"Pushed branch: {task.branch_name} ({push.summary})")

        outcome.task = self.store.update_task(task.id, column_id=done.id)
        self._record(outcome, ActivityEvent.TASK_COMPLETED, f"Task #{task.id}: {task.title}")
        return outcome

    def submit(self, task_id: int) -> TransitionOutcome:
        """Push the task branch, request a review, and move the task to Review."""

        task = self._require_task(task_id)
        review = self._require_column(REVIEW)
        if not task.branch_name:
            raise MissingBranchError(
                f"Task #{task.id} has no associated branch. Run 'pb start {task.id}' first.",
            )
        vcs = self._require_vcs()
        outcome = TransitionOutcome(
            column_from=self._column_name(task.column_id),
            column_to=review.name,
        )

        push = vcs.push_branch(task.branch_name)
        outcome.notes.append(f"Pushed branch: {task.branch_name} ({push.summary})")

        result = self._request_review(task, task.branch_name, vcs)
        if result.fallback:
            outcome.notes.append(f"Manual review link: {result.url}")
            if result.reason:
                outcome.warnings.append(f"Review request not opened: {result.reason}")
            state = ReviewState.MANUAL
            metadata = f"Task #{task.id}: manual review link"
        else:
            outcome.notes.append(f"Opened review request: {result.url}")
            state = ReviewState.REQUESTED
            metadata = f"Task #{task.id}: review requested"

        outcome.task = self.store.update_task(
            task.id,
            pr_url=result.url,
            review_state=state,
            column_id=review.id,
        )
        self._record(outcome, ActivityEvent.TASK_SUBMITTED, metadata)
        return outcome

    def move(self, task_id: int, column_name: str) -> TransitionOutcome:
        """Move a task to any column without side effects."""

        task = self._require_task(task_id)
        target = self._require_column(column_name)
        column_from = self._column_name(task.column_id)
        outcome = TransitionOutcome(column_from=column_from, column_to=target.name)
        outcome.task = self.store.update_task_column(task.id, target.id)
        self._record(
            outcome,
            ActivityEvent.TASK_MOVED,
            f"Task #{task.id}: {column_from} → {target.name}",
        )
        return outcome

    def review(self, task_id: int) -> TransitionOutcome:
        """Report review status; a merged request moves the task to Done."""

        task = self._require_task(task_id)
        outcome = TransitionOutcome(task=task, review_status=ReviewStatus.UNKNOWN)
        if not task.pr_url:
            outcome.notes.append(f"Task #{task.id} has no associated review request")
            return outcome
        if task.review_state is ReviewState.MANUAL or self.review_client is None:
            outcome.notes.append(f"Manual follow-up required: {task.pr_url}")
            return outcome

        try:
            status = self.review_client.review_status(task.pr_url)
        except ReviewServiceError as error:
            logger.warning("Review status lookup failed for task #%s: %s", task.id, error)
            outcome.warnings.append(f"Review status unavailable: {error}")
            return outcome

        outcome.review_status = status
        if status is not ReviewStatus.MERGED:
            return outcome

        done = self._require_column(DONE)
        if task.column_id == done.id:
            return outcome
        outcome.column_from = self._column_name(task.column_id)
        outcome.column_to = done.name
        outcome.task = self.store.update_task_column(task.id, done.id)
        self._record(outcome, ActivityEvent.TASK_COMPLETED, f"Task #{task.id}: review merged")
        return outcome

    def _request_review(
        self,
        task: TaskView,
        branch: str,
        vcs: VersionControl,
    ) -> ReviewResult:
        remote_url = vcs.remote_url()
        remote = parse_remote_url(remote_url) if remote_url else None
        if remote is None:
            reason = "no remote configured" if not remote_url else "remote URL not recognized"
            return ReviewResult(url=manual_review_note(branch), fallback=True, reason=reason)

        request = ReviewRequest(
            remote=remote,
            title=f"Task #{task.id}: {task.title}",
            body=task.description or "",
            head_branch=branch,
            base_branch=self.base_branch,
        )
        if self.review_client is None:
            return ReviewResult(
                url=compare_url(remote, base_branch=self.base_branch, head_branch=branch),
                fallback=True,
                reason="no review client configured",
            )
        try:
            return self.review_client.create_review_request(request)
        except ReviewServiceError as error:
            logger.warning("Review request failed for task #%s: %s", task.id, error)
            return ReviewResult(
                url=compare_url(remote, base_branch=self.base_branch, head_branch=branch),
                fallback=True,
                reason=str(error),
            )

    def _record(self, outcome: TransitionOutcome, event: ActivityEvent, metadata: str) -> None:
        try:
            self.store.append_activity(event, metadata)
        except PersistenceError as error:
            logger.warning("Activity log append failed (%s): %s", event.value, error)
            outcome.warnings.append(f"Activity log not updated: {error}")

    def _require_task(self, task_id: int) -> TaskView:
        task = self.store.get_task(task_id)
        if task is None:
            raise NotFoundError.task(task_id)
        return task

    def _require_column(self, name: str) -> ColumnView:
        column = self.store.get_column_by_name(name)
        if column is None:
            raise NotFoundError.column(name)
        return column

    def _require_vcs(self) -> VersionControl:
        if self.vcs is None:
            raise NotARepositoryError(
                "This operation needs a git working tree, but none was found.",
                operation="open",
            )
        return self.vcs

    def _column_name(self, column_id: int) -> str:
        column = self.store.get_column(column_id)
        return column.name if column is not None else "Unknown"


def default_commit_message(task: TaskView) -> str:
    return f"Closes #{task.id}: {task.title}"
