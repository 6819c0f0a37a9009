"""Review system clients: GitHub pull requests and manual comparison links."""

from __future__ import annotations

from project_board.config import ReviewSettings
from project_board.review.base import ReviewClient
from project_board.review.fallback import CompareLinkReviewClient
from project_board.review.github import GitHubReviewClient


def build_review_client(settings: ReviewSettings) -> ReviewClient:
    """GitHub client when a token is configured, comparison links otherwise."""

    if settings.token:
        return GitHubReviewClient(
            settings.token,
            api_url=settings.api_url,
            web_host=settings.web_host,
            timeout_seconds=settings.timeout_seconds,
        )
    return CompareLinkReviewClient()
