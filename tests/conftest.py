"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from git import Repo

from project_board.errors import ExternalToolError, ReviewServiceError
from project_board.lifecycle import TaskLifecycleEngine
from project_board.models import ReviewStatus
from project_board.repository import BoardRepository
from project_board.review.base import ReviewRequest, ReviewResult
from project_board.vcs.base import PushResult

_BOARD_ENV_VARS = (
    "PB_REPO_PATH",
    "PB_DB_PATH",
    "PB_BUSY_TIMEOUT_MS",
    "PB_PUSH_MODE",
    "PB_GIT_REMOTE",
    "PB_BASE_BRANCH",
    "PB_GITHUB_API_URL",
    "PB_GITHUB_HOST",
    "PB_REVIEW_TIMEOUT_SECONDS",
    "PB_LOG_LEVEL",
    "PB_GIT_AUTHOR_NAME",
    "PB_GIT_AUTHOR_EMAIL",
    "GITHUB_TOKEN",
)


class FakeVcs:
    """In-memory working tree recording every call the engine makes."""

    def __init__(
        self,
        *,
        remote: str | None = "git@github.com:acme/widgets.git",
        author: str | None = "Ada",
        staged: bool = False,
    ) -> None:
        self.branches: set[str] = {"main"}
        self.current = "main"
        self.remote = remote
        self.author = author
        self.staged = staged
        self.commits: list[str] = []
        self.pushes: list[str] = []
        self.fail_on: set[str] = set()

    def create_branch(self, name: str) -> None:
        self._maybe_fail("create_branch")
        if name in self.branches:
            raise ExternalToolError(f"branch '{name}' already exists", operation="create_branch")
        self.branches.add(name)

    def checkout_branch(self, name: str) -> None:
        self._maybe_fail("checkout")
        if name not in self.branches:
            raise ExternalToolError(f"Branch '{name}' not found", operation="checkout")
        self.current = name

    def has_staged_changes(self) -> bool:
        return self.staged

    def commit(self, message: str) -> str:
        self._maybe_fail("commit")
        self.commits.append(message)
        self.staged = False
        return f"{len(self.commits):040x}"

    def push_branch(self, name: str) -> PushResult:
        self._maybe_fail("push")
        self.pushes.append(name)
        return PushResult(
            branch=name,
            remote="origin",
            pushed=False,
            simulated=True,
            summary=f"push of '{name}' simulated",
        )

    def remote_url(self) -> str | None:
        return self.remote

    def current_branch(self) -> str | None:
        return self.current

    def author_name(self) -> str | None:
        return self.author

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise ExternalToolError(f"{operation} failed", operation=operation)


class FakeReviewClient:
    """Review client returning a fixed pull request URL or failing on demand."""

    def __init__(
        self,
        *,
        url: str = "https://github.com/acme/widgets/pull/7",
        status: ReviewStatus = ReviewStatus.OPEN,
        error: ReviewServiceError | None = None,
    ) -> None:
        self.url = url
        self.status = status
        self.error = error
        self.requests: list[ReviewRequest] = []

    def create_review_request(self, request: ReviewRequest) -> ReviewResult:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return ReviewResult(url=self.url, fallback=False)

    def review_status(self, url: str) -> ReviewStatus:
        if self.error is not None:
            raise self.error
        return self.status


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch) -> None:
    """Keep developer environment variables out of settings resolution."""
    for name in _BOARD_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def repository(tmp_path: Path) -> Iterator[BoardRepository]:
    store = BoardRepository(tmp_path / "board.sqlite")
    store.init_schema()
    store.create_default_columns()
    yield store
    store.close()


@pytest.fixture()
def fake_vcs() -> FakeVcs:
    return FakeVcs()


@pytest.fixture()
def engine(repository: BoardRepository, fake_vcs: FakeVcs) -> TaskLifecycleEngine:
    return TaskLifecycleEngine(repository, vcs=fake_vcs)


@pytest.fixture()
def git_repo(tmp_path: Path) -> Repo:
    """Real working tree on ``main`` with one commit and a configured identity."""
    path = tmp_path / "work"
    path.mkdir()
    repo = Repo.init(path)
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Ada Lovelace")
        writer.set_value("user", "email", "ada@example.com")
        writer.set_value("commit", "gpgsign", "false")
    readme = path / "README.md"
    readme.write_text("# widgets\n", encoding="utf-8")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")
    repo.git.branch("-M", "main")
    return repo


@pytest.fixture()
def work_dir(git_repo: Repo) -> Path:
    return Path(str(git_repo.working_tree_dir))
