"""Provide the public `project_hub` package exports."""

from __future__ import annotations

__version__ = "0.1.0"

from .board.engine import TaskEngine  # noqa: E402
from .hub.container import HubContainer  # noqa: E402

__all__ = ["HubContainer", "TaskEngine", "__version__"]
