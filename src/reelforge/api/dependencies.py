"""FastAPI dependencies for request handling.

This module provides reusable FastAPI dependencies for:
- Application settings
- Access to the per-instance lifecycle manager
"""

from fastapi import Request

from reelforge.core.config import Settings
from reelforge.services.lifecycle.manager import LifecycleManager


def get_settings(request: Request) -> Settings:
    """Get the settings the application was started with.

    Args:
        request: FastAPI Request object (contains app.state)

    Returns:
        Settings instance stored by the app lifespan
    """
    return request.app.state.manager.settings


def get_manager(request: Request) -> LifecycleManager:
    """Get the LifecycleManager from app state.

    Args:
        request: FastAPI Request object (contains app.state)

    Returns:
        LifecycleManager created in the app lifespan

    Example:
        >>> @router.get("/endpoint")
        >>> async def endpoint(manager: LifecycleManager = Depends(get_manager)):
        ...     entries = await manager.list_history()
    """
    return request.app.state.manager
