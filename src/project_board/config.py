"""Runtime configuration for the board, its git adapter and review client."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

BOARD_DIR_NAME = ".projectboard"
BOARD_DB_NAME = "board.sqlite"
PUSH_MODES = ("simulate", "remote")


@dataclass(slots=True)
class GitSettings:
    """Version-control adapter settings."""

    push_mode: str = "simulate"
    remote_name: str = "origin"
    fallback_author_name: str = "ProjectBoard User"
    fallback_author_email: str = "user@projectboard.dev"


@dataclass(slots=True)
class ReviewSettings:
    """Review system (pull request) settings."""

    token: str | None = None
    api_url: str = "https://api.github.com"
    web_host: str = "github.com"
    base_branch: str = "main"
    timeout_seconds: float = 30.0


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    repo_path: Path = field(default_factory=Path.cwd)
    db_path: Path | None = None
    busy_timeout_ms: int = 5_000
    log_level: str = "WARNING"
    git: GitSettings = field(default_factory=GitSettings)
    review: ReviewSettings = field(default_factory=ReviewSettings)

    @property
    def board_dir(self) -> Path:
        return self.repo_path / BOARD_DIR_NAME

    @property
    def effective_db_path(self) -> Path:
        return self.db_path or self.board_dir / BOARD_DB_NAME

    @classmethod
    def from_env(
        cls,
        repo_path: Path | None = None,
        db_path: Path | None = None,
    ) -> Settings:
        """Load settings from environment; explicit arguments win over env vars."""

        env_repo = os.getenv("PB_REPO_PATH", "").strip()
        env_db = os.getenv("PB_DB_PATH", "").strip()
        resolved_repo = repo_path or (Path(env_repo) if env_repo else Path.cwd())
        return cls(
            repo_path=resolved_repo.resolve(),
            db_path=db_path or (Path(env_db) if env_db else None),
            busy_timeout_ms=int(os.getenv("PB_BUSY_TIMEOUT_MS", "5000")),
            log_level=os.getenv("PB_LOG_LEVEL", "WARNING").strip().upper(),
            git=GitSettings(
                push_mode=os.getenv("PB_PUSH_MODE", "simulate").strip().lower(),
                remote_name=os.getenv("PB_GIT_REMOTE", "origin").strip(),
                fallback_author_name=os.getenv("PB_GIT_AUTHOR_NAME", "ProjectBoard User"),
                fallback_author_email=os.getenv("PB_GIT_AUTHOR_EMAIL", "user@projectboard.dev"),
            ),
            review=ReviewSettings(
                token=os.getenv("GITHUB_TOKEN", "").strip() or None,
                api_url=os.getenv("PB_GITHUB_API_URL", "https://api.github.com").rstrip("/"),
                web_host=os.getenv("PB_GITHUB_HOST", "github.com").strip().lower(),
                base_branch=os.getenv("PB_BASE_BRANCH", "main").strip(),
                timeout_seconds=float(os.getenv("PB_REVIEW_TIMEOUT_SECONDS", "30.0")),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any setting is out of range."""

        if self.busy_timeout_ms <= 0:
            raise ValueError("PB_BUSY_TIMEOUT_MS must be > 0.")
        if logging.getLevelName(self.log_level) == f"Level {self.log_level}":
            raise ValueError(f"Invalid PB_LOG_LEVEL: {self.log_level!r}")
        if self.git.push_mode not in PUSH_MODES:
            raise ValueError(
                f"Invalid PB_PUSH_MODE: {self.git.push_mode!r}. "
                f"Expected one of: {', '.join(PUSH_MODES)}.",
            )
        if not self.git.remote_name:
            raise ValueError("PB_GIT_REMOTE must not be empty.")
        if not self.review.base_branch:
            raise ValueError("PB_BASE_BRANCH must not be empty.")
        if self.review.timeout_seconds <= 0:
            raise ValueError("PB_REVIEW_TIMEOUT_SECONDS must be > 0.")
        parsed = urlparse(self.review.api_url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                "Invalid PB_GITHUB_API_URL: "
                f"{self.review.api_url!r}. Expected an absolute http(s) URL.",
            )
