"""Review system client contracts and remote URL parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlparse

from project_board.models import ReviewStatus

_SCP_REMOTE_RE = re.compile(r"^(?:[\w.\-]+@)?(?P<host>[\w.\-]+):(?P<path>[^/].*)$")


@dataclass(slots=True, frozen=True)
class RemoteInfo:
    """Hosting coordinates of a git remote."""

    host: str
    owner: str
    repo: str

    @property
    def web_root(self) -> str:
        return f"https://{self.host}/{self.owner}/{self.repo}"


@dataclass(slots=True)
class ReviewRequest:
    """Inputs for opening one review request."""

    remote: RemoteInfo
    title: str
    body: str
    head_branch: str
    base_branch: str


@dataclass(slots=True)
class ReviewResult:
    """Link recorded for a submitted task.

    ``fallback`` marks a link that still needs a human to open the request.
    """

    url: str
    fallback: bool
    reason: str | None = None


class ReviewClient(Protocol):
    """Capability that opens review requests."""

    def create_review_request(self, request: ReviewRequest) -> ReviewResult:
        """Open a request or return a fallback link; may raise ReviewServiceError."""
        raise NotImplementedError

    def review_status(self, url: str) -> ReviewStatus:
        """Status of a previously opened request."""
        raise NotImplementedError


def parse_remote_url(remote_url: str) -> RemoteInfo | None:
    """Parse https, ssh, and scp-like git remote URLs into host/owner/repo."""

    value = remote_url.strip()
    if not value:
        return None

    if "://" in value:
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https", "ssh", "git"} or not parsed.hostname:
            return None
        host = parsed.hostname
        path = parsed.path
    else:
        match = _SCP_REMOTE_RE.match(value)
        if match is None:
            return None
        host = match.group("host")
        path = match.group("path")

    parts = [part for part in path.strip("/").split("/") if part]
    if len(parts) != 2:
        return None
    owner, repo = parts
    repo = repo.removesuffix(".git")
    if not owner or not repo:
        return None
    return RemoteInfo(host=host.lower(), owner=owner, repo=repo)


def compare_url(remote: RemoteInfo, *, base_branch: str, head_branch: str) -> str:
    """Deterministic comparison link used when no request could be opened."""

    return f"{remote.web_root}/compare/{base_branch}...{head_branch}"


def manual_review_note(branch: str) -> str:
    """Link text stored when the working tree has no usable remote."""

    return f"Manual PR needed for branch: {branch}"
