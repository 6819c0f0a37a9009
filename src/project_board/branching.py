"""Branch-name derivation for started tasks."""

from __future__ import annotations

BRANCH_PREFIX = "feature/"


def slugify(title: str) -> str:
    """Lower-case, spaces to hyphens, drop anything not alphanumeric or hyphen."""

    lowered = title.lower().replace(" ", "-")
    return "".join(char for char in lowered if char.isalnum() or char == "-")


def branch_name_for(task_id: int, title: str) -> str:
    """Deterministic branch name for a task: ``feature/{id}-{slug}``."""

    return f"{BRANCH_PREFIX}{task_id}-{slugify(title)}"
