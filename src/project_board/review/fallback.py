"""Deterministic review client that never touches the network."""

from __future__ import annotations

from project_board.models import ReviewStatus
from project_board.review.base import ReviewRequest, ReviewResult, compare_url


class CompareLinkReviewClient:
    """Returns a comparison link for manual follow-up."""

    def __init__(self, reason: str = "no review credential configured") -> None:
        self.reason = reason

    def create_review_request(self, request: ReviewRequest) -> ReviewResult:
        return ReviewResult(
            url=compare_url(
                request.remote,
                base_branch=request.base_branch,
                head_branch=request.head_branch,
            ),
            fallback=True,
            reason=self.reason,
        )

    def review_status(self, url: str) -> ReviewStatus:
        return ReviewStatus.UNKNOWN
