from __future__ import annotations

from pathlib import Path

import allure
import pytest
from conftest import FakeReviewClient, FakeVcs

from project_board.branching import branch_name_for
from project_board.errors import (
    ExternalToolError,
    MissingBranchError,
    NotARepositoryError,
    NotFoundError,
    PersistenceError,
    ReviewServiceError,
)
from project_board.lifecycle import TaskLifecycleEngine
from project_board.models import ActivityEvent, ReviewState, ReviewStatus
from project_board.repository import BoardRepository

pytestmark = [
    allure.epic("Task Lifecycle"),
    allure.feature("Transitions"),
]


def _column_id(repository: BoardRepository, name: str) -> int:
    column = repository.get_column_by_name(name)
    assert column is not None
    return column.id


def test_initialize_records_project_and_activity(tmp_path: Path) -> None:
    with BoardRepository(tmp_path / "init.sqlite") as repository:
        repository.init_schema()
        engine = TaskLifecycleEngine(repository)

        project, columns, warnings = engine.initialize(project_name="widgets", repo_path=tmp_path)

        assert project.name == "widgets"
        assert [column.name for column in columns] == [
            "Backlog",
            "To Do",
            "Doing",
            "Review",
            "Done",
        ]
        assert warnings == []
        assert repository.list_activity()[0].metadata == "Project: widgets"


def test_add_task_lands_in_backlog(engine: TaskLifecycleEngine, repository) -> None:
    outcome = engine.add_task("Fix login bug", "Users get 500 on submit")

    assert outcome.task is not None
    assert outcome.task.id == 1
    assert outcome.task.column_id == _column_id(repository, "Backlog")
    assert outcome.column_to == "Backlog"
    entry = repository.list_activity()[0]
    assert entry.event == ActivityEvent.TASK_CREATED.value
    assert entry.metadata == "Task #1: Fix login bug"


def test_start_creates_branch_and_moves_to_doing(
    engine: TaskLifecycleEngine,
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    engine.add_task("Fix login bug")

    outcome = engine.start(1)

    assert outcome.task is not None
    assert outcome.task.branch_name == "feature/1-fix-login-bug"
    assert outcome.task.branch_name == branch_name_for(1, "Fix login bug")
    assert outcome.task.column_id == _column_id(repository, "Doing")
    assert fake_vcs.current == "feature/1-fix-login-bug"
    assert outcome.column_from == "Backlog"
    assert repository.list_activity()[0].metadata == (
        "Task #1: created branch feature/1-fix-login-bug"
    )


def test_start_failure_leaves_task_unchanged(
    engine: TaskLifecycleEngine,
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    engine.add_task("Fix login bug")
    before = repository.count_activity()
    fake_vcs.fail_on.add("create_branch")

    with pytest.raises(ExternalToolError, match="create_branch failed"):
        engine.start(1)

    task = repository.get_task(1)
    assert task is not None
    assert task.branch_name is None
    assert task.column_id == _column_id(repository, "Backlog")
    assert repository.count_activity() == before


def test_start_again_checks_out_recorded_branch(
    engine: TaskLifecycleEngine,
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    engine.add_task("Fix login bug")
    engine.start(1)
    engine.move(1, "Backlog")
    fake_vcs.current = "main"

    outcome = engine.start(1)

    assert outcome.task is not None
    assert outcome.task.branch_name == "feature/1-fix-login-bug"
    assert fake_vcs.current == "feature/1-fix-login-bug"
    assert fake_vcs.branches == {"main", "feature/1-fix-login-bug"}
    assert "resumed branch" in (repository.list_activity()[0].metadata or "")


def test_start_requires_a_working_tree(repository: BoardRepository) -> None:
    engine = TaskLifecycleEngine(repository)
    engine.add_task("No git here")

    with pytest.raises(NotARepositoryError):
        engine.start(1)


def test_done_commits_staged_changes_with_default_message(
    engine: TaskLifecycleEngine,
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    engine.add_task("Fix login bug")
    engine.start(1)
    fake_vcs.staged = True

    outcome = engine.done(1)

    assert fake_vcs.commits == ["Closes #1: Fix login bug"]
    assert fake_vcs.pushes == ["feature/1-fix-login-bug"]
    assert outcome.task is not None
    assert outcome.task.column_id == _column_id(repository, "Done")
    assert any("simulated" in note for note in outcome.notes)


def test_done_without_staged_changes_or_branch_only_moves(
    engine: TaskLifecycleEngine,
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    engine.add_task("Tidy README")

    outcome = engine.done(1, "custom message")

    assert fake_vcs.commits == []
    assert fake_vcs.pushes == []
    assert "No staged changes to commit" in outcome.notes
    assert outcome.task is not None
    assert outcome.task.column_id == _column_id(repository, "Done")


def test_done_commit_failure_aborts_transition(
    engine: TaskLifecycleEngine,
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    engine.add_task("Fix login bug")
    engine.start(1)
    fake_vcs.staged = True
    fake_vcs.fail_on.add("commit")

    with pytest.raises(ExternalToolError):
        engine.done(1, "wip")

    task = repository.get_task(1)
    assert task is not None
    assert task.column_id == _column_id(repository, "Doing")


def test_submit_requires_branch(engine: TaskLifecycleEngine, repository) -> None:
    engine.add_task("Fix login bug")

    with pytest.raises(MissingBranchError, match="Run 'pb start 1' first"):
        engine.submit(1)

    task = repository.get_task(1)
    assert task is not None
    assert task.pr_url is None
    assert task.column_id == _column_id(repository, "Backlog")


def test_submit_with_review_client_records_requested_link(
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    client = FakeReviewClient()
    engine = TaskLifecycleEngine(repository, vcs=fake_vcs, review_client=client)
    engine.add_task("Fix login bug", "Users get 500")
    engine.start(1)

    outcome = engine.submit(1)

    assert outcome.task is not None
    assert outcome.task.pr_url == "https://github.com/acme/widgets/pull/7"
    assert outcome.task.review_state is ReviewState.REQUESTED
    assert outcome.task.column_id == _column_id(repository, "Review")
    assert outcome.warnings == []
    request = client.requests[0]
    assert request.head_branch == "feature/1-fix-login-bug"
    assert request.base_branch == "main"
    assert request.remote.owner == "acme"
    assert request.title == "Task #1: Fix login bug"


def test_submit_falls_back_to_compare_link_when_review_fails(
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    client = FakeReviewClient(error=ReviewServiceError("GitHub returned HTTP 502"))
    engine = TaskLifecycleEngine(
        repository,
        vcs=fake_vcs,
        review_client=client,
        base_branch="develop",
    )
    engine.add_task("Fix login bug")
    engine.start(1)

    outcome = engine.submit(1)

    assert outcome.task is not None
    assert outcome.task.pr_url == (
        "https://github.com/acme/widgets/compare/develop...feature/1-fix-login-bug"
    )
    assert outcome.task.review_state is ReviewState.MANUAL
    assert outcome.task.column_id == _column_id(repository, "Review")
    assert outcome.warnings == ["Review request not opened: GitHub returned HTTP 502"]


def test_submit_without_remote_stores_manual_note(repository: BoardRepository) -> None:
    vcs = FakeVcs(remote=None)
    engine = TaskLifecycleEngine(repository, vcs=vcs, review_client=FakeReviewClient())
    engine.add_task("Offline work")
    engine.start(1)

    outcome = engine.submit(1)

    assert outcome.task is not None
    assert outcome.task.pr_url == "Manual PR needed for branch: feature/1-offline-work"
    assert outcome.task.review_state is ReviewState.MANUAL


def test_submit_push_failure_aborts(
    engine: TaskLifecycleEngine,
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    engine.add_task("Fix login bug")
    engine.start(1)
    fake_vcs.fail_on.add("push")

    with pytest.raises(ExternalToolError):
        engine.submit(1)

    task = repository.get_task(1)
    assert task is not None
    assert task.pr_url is None
    assert task.column_id == _column_id(repository, "Doing")


def test_move_bypasses_side_effects(
    engine: TaskLifecycleEngine,
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    engine.add_task("Fix login bug")

    outcome = engine.move(1, "review")

    assert outcome.task is not None
    assert outcome.task.column_id == _column_id(repository, "Review")
    assert outcome.task.branch_name is None
    assert fake_vcs.pushes == []
    assert repository.list_activity()[0].metadata == "Task #1: Backlog → Review"


def test_move_to_unknown_column_or_task(engine: TaskLifecycleEngine) -> None:
    engine.add_task("Fix login bug")

    with pytest.raises(NotFoundError, match="Column 'Archive' not found"):
        engine.move(1, "Archive")
    with pytest.raises(NotFoundError, match="Task #9 not found"):
        engine.move(9, "Done")


def test_comment_uses_vcs_author_or_unknown(repository: BoardRepository) -> None:
    engine = TaskLifecycleEngine(repository, vcs=FakeVcs(author=None))
    engine.add_task("Fix login bug")

    outcome = engine.comment(1, "looks good")

    assert outcome.comment is not None
    assert outcome.comment.author == "unknown"
    assert repository.list_activity()[0].metadata == "Task #1: comment by unknown"


def test_promote_is_atomic_and_logged(
    engine: TaskLifecycleEngine,
    repository: BoardRepository,
) -> None:
    engine.create_idea("Dark mode")

    outcome = engine.promote(1)

    assert outcome.task is not None
    assert outcome.task.title == "Dark mode"
    assert outcome.task.column_id == _column_id(repository, "Backlog")
    assert repository.get_ideas() == []
    assert len(repository.get_tasks()) == 1
    assert repository.list_activity()[0].metadata == "Idea #1 → Task #1: Dark mode"

    with pytest.raises(NotFoundError, match="Idea #1 not found"):
        engine.promote(1)


def test_delete_idea(engine: TaskLifecycleEngine, repository: BoardRepository) -> None:
    engine.create_idea("Dark mode")

    engine.delete_idea(1)

    assert repository.get_ideas() == []
    assert repository.list_activity()[0].event == ActivityEvent.IDEA_DELETED.value
    with pytest.raises(NotFoundError):
        engine.delete_idea(1)


def test_review_merged_request_moves_task_to_done(
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    client = FakeReviewClient(status=ReviewStatus.MERGED)
    engine = TaskLifecycleEngine(repository, vcs=fake_vcs, review_client=client)
    engine.add_task("Fix login bug")
    engine.start(1)
    engine.submit(1)

    outcome = engine.review(1)

    assert outcome.review_status is ReviewStatus.MERGED
    assert outcome.task is not None
    assert outcome.task.column_id == _column_id(repository, "Done")
    assert repository.list_activity()[0].metadata == "Task #1: review merged"


def test_review_open_request_is_read_only(
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    engine = TaskLifecycleEngine(repository, vcs=fake_vcs, review_client=FakeReviewClient())
    engine.add_task("Fix login bug")
    engine.start(1)
    engine.submit(1)
    before = repository.count_activity()

    outcome = engine.review(1)

    assert outcome.review_status is ReviewStatus.OPEN
    assert outcome.column_to is None
    assert repository.count_activity() == before


def test_review_manual_link_needs_follow_up(
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    client = FakeReviewClient(error=ReviewServiceError("down"))
    engine = TaskLifecycleEngine(repository, vcs=fake_vcs, review_client=client)
    engine.add_task("Fix login bug")
    engine.start(1)
    engine.submit(1)

    outcome = engine.review(1)

    assert outcome.review_status is ReviewStatus.UNKNOWN
    assert outcome.notes[0].startswith("Manual follow-up required: https://github.com/")


def test_each_operation_appends_exactly_one_activity_entry(
    engine: TaskLifecycleEngine,
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    steps = [
        lambda: engine.add_task("Fix login bug"),
        lambda: engine.start(1),
        lambda: engine.comment(1, "halfway"),
        lambda: engine.done(1),
        lambda: engine.move(1, "Review"),
        lambda: engine.create_idea("Dark mode"),
        lambda: engine.promote(1),
    ]
    count = repository.count_activity()
    for step in steps:
        step()
        current = repository.count_activity()
        assert current == count + 1
        count = current


def test_activity_failure_is_reported_as_warning(
    engine: TaskLifecycleEngine,
    repository: BoardRepository,
    monkeypatch,
) -> None:
    def _fail(*_args, **_kwargs):
        raise PersistenceError("database is locked")

    monkeypatch.setattr(repository, "append_activity", _fail)

    outcome = engine.add_task("Fix login bug")

    assert outcome.task is not None
    assert repository.get_task(outcome.task.id) is not None
    assert outcome.warnings == ["Activity log not updated: database is locked"]


def test_review_status_failure_degrades_to_unknown(
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    client = FakeReviewClient()
    engine = TaskLifecycleEngine(repository, vcs=fake_vcs, review_client=client)
    engine.add_task("Fix login bug")
    engine.start(1)
    engine.submit(1)
    before = repository.count_activity()
    client.error = ReviewServiceError("down")

    outcome = engine.review(1)

    assert outcome.review_status is ReviewStatus.UNKNOWN
    assert outcome.warnings == ["Review status unavailable: down"]
    assert outcome.column_to is None
    task = repository.get_task(1)
    assert task is not None
    assert task.column_id == _column_id(repository, "Review")
    assert repository.count_activity() == before


def test_done_push_failure_aborts_transition(
    engine: TaskLifecycleEngine,
    repository: BoardRepository,
    fake_vcs: FakeVcs,
) -> None:
    engine.add_task("Fix login bug")
    engine.start(1)
    before = repository.count_activity()
    fake_vcs.fail_on.add("push")

    with pytest.raises(ExternalToolError, match="push failed"):
        engine.done(1)

    task = repository.get_task(1)
    assert task is not None
    assert task.column_id == _column_id(repository, "Doing")
    assert repository.count_activity() == before
