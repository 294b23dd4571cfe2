"""Version 1 API endpoints."""

from .endpoints import comments_router

__all__ = ["comments_router"]
