"""Version-control adapter interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(slots=True)
class PushResult:
    """Outcome of publishing a branch.

    A successful push does not guarantee the branch is visible on any
    remote: ``simulated`` pushes only record the intent.
    """

    branch: str
    remote: str
    pushed: bool
    simulated: bool = False
    summary: str = ""


class BranchPublisher(Protocol):
    """Capability that publishes a local branch."""

    def publish(self, branch: str) -> PushResult:
        """Publish ``branch`` or raise ExternalToolError."""
        raise NotImplementedError


class VersionControl(Protocol):
    """Operations the lifecycle engine performs against a working tree."""

    def create_branch(self, name: str) -> None:
        """Create a local branch from the current HEAD commit."""
        raise NotImplementedError

    def checkout_branch(self, name: str) -> None:
        raise NotImplementedError

    def has_staged_changes(self) -> bool:
        raise NotImplementedError

    def commit(self, message: str) -> str:
        """Commit the index and return the new commit id."""
        raise NotImplementedError

    def push_branch(self, name: str) -> PushResult:
        raise NotImplementedError

    def remote_url(self) -> str | None:
        raise NotImplementedError

    def current_branch(self) -> str | None:
        raise NotImplementedError

    def author_name(self) -> str | None:
        """Configured ``user.name`` or None."""
        raise NotImplementedError
