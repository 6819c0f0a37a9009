"""SQLModel ORM tables for board storage."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text
from sqlmodel import Field, SQLModel


class Project(SQLModel, table=True):
    __tablename__ = "projects"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    name: str
    repo_path: str = Field(unique=True)


class BoardColumn(SQLModel, table=True):
    __tablename__ = "columns"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(unique=True)
    order: int


class Task(SQLModel, table=True):
    __tablename__ = "tasks"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    title: str
    description: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    column_id: int = Field(
        sa_column=Column(Integer, ForeignKey("columns.id"), nullable=False, index=True),
    )
    assignee: str | None = None
    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    branch_name: str | None = None
    pr_url: str | None = None
    review_state: str | None = None


class Comment(SQLModel, table=True):
    __tablename__ = "comments"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    task_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    author: str
    text: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class Idea(SQLModel, table=True):
    __tablename__ = "ideas"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    content: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class ActivityLog(SQLModel, table=True):
    __tablename__ = "activity_log"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    event: str
    metadata_text: str | None = Field(
        default=None,
        sa_column=Column("metadata", Text, nullable=True),
    )
    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
