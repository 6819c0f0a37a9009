"""GitPython-backed working tree adapter."""

from __future__ import annotations

import logging
from pathlib import Path

from git import Actor, Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError
from git.remote import PushInfo

from project_board.config import GitSettings
from project_board.errors import ExternalToolError, NotARepositoryError
from project_board.vcs.base import BranchPublisher, PushResult

logger = logging.getLogger(__name__)


class SimulatedPublisher:
    """Records push intent without contacting any remote."""

    def __init__(self, remote_name: str = "origin") -> None:
        self.remote_name = remote_name

    def publish(self, branch: str) -> PushResult:
        logger.info("Simulated push of branch %s to %s", branch, self.remote_name)
        return PushResult(
            branch=branch,
            remote=self.remote_name,
            pushed=False,
            simulated=True,
            summary=f"push of '{branch}' simulated",
        )


class RemotePublisher:
    """Pushes a branch to a named remote of the working tree."""

    def __init__(self, repo: Repo, remote_name: str = "origin") -> None:
        self._repo = repo
        self.remote_name = remote_name

    def publish(self, branch: str) -> PushResult:
        try:
            remote = self._repo.remote(self.remote_name)
        except ValueError as error:
            raise ExternalToolError(
                f"Remote '{self.remote_name}' is not configured",
                operation="push",
            ) from error

        refspec = f"refs/heads/{branch}:refs/heads/{branch}"
        try:
            infos = remote.push(refspec=refspec)
        except GitCommandError as error:
            raise ExternalToolError(
                f"Failed to push branch '{branch}': {_git_error_text(error)}",
                operation="push",
            ) from error

        failed = [info for info in infos if info.flags & PushInfo.ERROR]
        if failed or not infos:
            summary = "; ".join(info.summary.strip() for info in failed) or "no ref pushed"
            raise ExternalToolError(
                f"Failed to push branch '{branch}': {summary}",
                operation="push",
            )
        logger.info("Pushed branch %s to %s", branch, self.remote_name)
        return PushResult(
            branch=branch,
            remote=self.remote_name,
            pushed=True,
            summary=infos[0].summary.strip(),
        )


class GitRepository:
    """Working tree operations used by lifecycle transitions."""

    def __init__(
        self,
        repo: Repo,
        *,
        settings: GitSettings | None = None,
        publisher: BranchPublisher | None = None,
    ) -> None:
        self._repo = repo
        self._settings = settings or GitSettings()
        self._publisher = publisher or build_publisher(repo, self._settings)

    @classmethod
    def open(
        cls,
        path: Path,
        *,
        settings: GitSettings | None = None,
        publisher: BranchPublisher | None = None,
    ) -> GitRepository:
        try:
            repo = Repo(path, search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError) as error:
            raise NotARepositoryError(
                f"Not in a git repository: {path}. "
                "Run 'pb init' inside a git working tree.",
                operation="open",
            ) from error
        return cls(repo, settings=settings, publisher=publisher)

    @property
    def working_dir(self) -> Path:
        return Path(str(self._repo.working_tree_dir))

    def branch_exists(self, name: str) -> bool:
        return any(head.name == name for head in self._repo.heads)

    def create_branch(self, name: str) -> None:
        if not self._repo.head.is_valid():
            raise ExternalToolError(
                f"Failed to create branch '{name}': repository has no commits yet",
                operation="create_branch",
            )
        if self.branch_exists(name):
            raise ExternalToolError(
                f"Failed to create branch '{name}': branch already exists",
                operation="create_branch",
            )
        try:
            self._repo.create_head(name, self._repo.head.commit)
        except (GitCommandError, OSError, ValueError) as error:
            raise ExternalToolError(
                f"Failed to create branch '{name}': {_git_error_text(error)}",
                operation="create_branch",
            ) from error
        logger.info("Created branch %s", name)

    def checkout_branch(self, name: str) -> None:
        if not self.branch_exists(name):
            raise ExternalToolError(f"Branch '{name}' not found", operation="checkout")
        try:
            self._repo.heads[name].checkout()
        except GitCommandError as error:
            raise ExternalToolError(
                f"Failed to check out branch '{name}': {_git_error_text(error)}",
                operation="checkout",
            ) from error
        logger.info("Checked out branch %s", name)

    def has_staged_changes(self) -> bool:
        if not self._repo.head.is_valid():
            return bool(self._repo.index.entries)
        try:
            return bool(self._repo.index.diff("HEAD"))
        except GitCommandError as error:
            raise ExternalToolError(
                f"Failed to inspect staged changes: {_git_error_text(error)}",
                operation="status",
            ) from error

    def commit(self, message: str) -> str:
        actor = Actor(
            self._config_value("name") or self._settings.fallback_author_name,
            self._config_value("email") or self._settings.fallback_author_email,
        )
        try:
            commit = self._repo.index.commit(message, author=actor, committer=actor)
        except (GitCommandError, OSError, ValueError) as error:
            raise ExternalToolError(
                f"Failed to commit: {_git_error_text(error)}",
                operation="commit",
            ) from error
        logger.info("Committed %s: %s", commit.hexsha[:8], message)
        return commit.hexsha

    def push_branch(self, name: str) -> PushResult:
        return self._publisher.publish(name)

    def remote_url(self) -> str | None:
        try:
            remote = self._repo.remote(self._settings.remote_name)
        except ValueError:
            return None
        try:
            urls = list(remote.urls)
        except GitCommandError as error:
            raise ExternalToolError(
                f"Failed to read URL of remote '{remote.name}': {_git_error_text(error)}",
                operation="remote",
            ) from error
        return urls[0] if urls else None

    def current_branch(self) -> str | None:
        if self._repo.head.is_detached:
            return None
        return self._repo.active_branch.name

    def author_name(self) -> str | None:
        return self._config_value("name")

    def _config_value(self, option: str) -> str | None:
        reader = self._repo.config_reader()
        value = reader.get_value("user", option, default="")
        text = str(value).strip()
        return text or None


def build_publisher(repo: Repo, settings: GitSettings) -> BranchPublisher:
    """Select the push capability configured by ``PB_PUSH_MODE``."""

    if settings.push_mode == "remote":
        return RemotePublisher(repo, settings.remote_name)
    return SimulatedPublisher(settings.remote_name)


def _git_error_text(error: Exception) -> str:
    if isinstance(error, GitCommandError):
        stderr = (error.stderr or "").strip()
        return stderr or str(error)
    return str(error)
