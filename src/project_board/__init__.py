"""Terminal-first project board bound to a git working tree."""

__version__ = "0.1.0"
