"""FastAPI web server for the project hub."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .. import __version__
from ..hub.container import HubContainer
from .hub_api import (
    create_comment_router,
    create_log_router,
    create_notification_router,
    create_project_router,
    create_user_router,
)
from .task_api import create_task_router


def create_app(
    project_dir: Optional[Path] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        project_dir: Default project directory.
        enable_cors: Whether to enable CORS.

    Returns:
        Configured FastAPI app.
    """
    app = FastAPI(
        title="Project Hub",
        description="Project boards, task dependencies, daily logs and team notifications",
        version=__version__,
    )

    # Enable CORS for development
    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Store default project directory
    app.state.default_project_dir = project_dir
    app.state.hubs = {}

    def _get_project_dir(project_dir_param: Optional[str] = None) -> Path:
        """Get project directory from parameter or default."""
        if project_dir_param:
            return Path(project_dir_param)
        if app.state.default_project_dir:
            return app.state.default_project_dir
        return Path.cwd()

    def get_hub(project_dir_param: Optional[str] = None) -> HubContainer:
        """Return the (cached) hub for a project directory."""
        path = _get_project_dir(project_dir_param).resolve()
        hubs: dict[Path, HubContainer] = app.state.hubs
        hub = hubs.get(path)
        if hub is None:
            logger.debug("Opening hub state in {}", path)
            hub = HubContainer(path)
            hubs[path] = hub
        return hub

    app.include_router(create_task_router(get_hub))
    app.include_router(create_project_router(get_hub))
    app.include_router(create_log_router(get_hub))
    app.include_router(create_comment_router(get_hub))
    app.include_router(create_notification_router(get_hub))
    app.include_router(create_user_router(get_hub))

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint."""
        return {
            "name": "Project Hub",
            "version": __version__,
            "status": "running",
        }

    return app
