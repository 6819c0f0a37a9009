"""GitHub pull request client over httpx."""

from __future__ import annotations

import logging
import re

import httpx

from project_board import __version__
from project_board.errors import ReviewServiceError
from project_board.models import ReviewStatus
from project_board.review.base import ReviewRequest, ReviewResult
from project_board.review.fallback import CompareLinkReviewClient

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_WEB_HOST = "github.com"
DEFAULT_TIMEOUT_SECONDS = 30.0
USER_AGENT = f"project-board/{__version__}"

_PULL_URL_RE = re.compile(
    r"^https?://(?P<host>[^/]+)/(?P<owner>[^/]+)/(?P<repo>[^/]+)/pull/(?P<number>\d+)",
)


class GitHubReviewClient:
    """Opens pull requests through the GitHub REST API.

    Remotes hosted anywhere other than ``web_host`` get a comparison link
    instead of an API call. Transport and HTTP failures raise
    ``ReviewServiceError``; nothing is retried.
    """

    def __init__(
        self,
        token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        web_host: str = DEFAULT_WEB_HOST,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.web_host = web_host.lower()
        self._unrecognized = CompareLinkReviewClient(reason="remote host is not GitHub")
        self._client = httpx.Client(
            base_url=api_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "User-Agent": USER_AGENT,
                "X-GitHub-Api-Version": "2022-11-28",
            },
            transport=transport,
        )

    def create_review_request(self, request: ReviewRequest) -> ReviewResult:
        remote = request.remote
        if remote.host != self.web_host:
            return self._unrecognized.create_review_request(request)

        path = f"/repos/{remote.owner}/{remote.repo}/pulls"
        payload = {
            "title": request.title,
            "body": request.body,
            "head": request.head_branch,
            "base": request.base_branch,
        }
        data = self._request("POST", path, json=payload)
        html_url = data.get("html_url")
        if not isinstance(html_url, str) or not html_url:
            raise ReviewServiceError("GitHub response did not include a pull request URL")
        logger.info("Opened pull request %s", html_url)
        return ReviewResult(url=html_url, fallback=False)

    def review_status(self, url: str) -> ReviewStatus:
        match = _PULL_URL_RE.match(url)
        if match is None or match.group("host").lower() != self.web_host:
            return ReviewStatus.UNKNOWN
        path = (
            f"/repos/{match.group('owner')}/{match.group('repo')}/pulls/{match.group('number')}"
        )
        data = self._request("GET", path)
        if data.get("merged") or data.get("merged_at"):
            return ReviewStatus.MERGED
        if data.get("state") == "closed":
            return ReviewStatus.CLOSED
        if data.get("state") == "open":
            return ReviewStatus.OPEN
        return ReviewStatus.UNKNOWN

    def _request(self, method: str, path: str, **kwargs: object) -> dict[str, object]:
        try:
            response = self._client.request(method, path, **kwargs)  # type: ignore[arg-type]
        except httpx.TimeoutException as error:
            logger.warning("Timeout calling GitHub %s %s", method, path)
            raise ReviewServiceError(f"GitHub request timed out: {method} {path}") from error
        except httpx.HTTPError as error:
            logger.warning("HTTP error calling GitHub %s %s: %s", method, path, error)
            raise ReviewServiceError(f"GitHub request failed: {error}") from error

        if not response.is_success:
            raise ReviewServiceError(
                f"GitHub returned HTTP {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as error:
            raise ReviewServiceError("GitHub returned a non-JSON response") from error
        if not isinstance(data, dict):
            raise ReviewServiceError("GitHub returned an unexpected response shape")
        return data

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GitHubReviewClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip()[:200] or response.reason_phrase
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return response.reason_phrase
