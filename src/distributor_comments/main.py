# src/distributor_comments/main.py
"""Main entry point for the comments add-on application."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from distributor_comments.api.v1 import comments_router
from distributor_comments.core.settings import settings
from distributor_comments.services.dispatcher import get_comment_dispatcher
from distributor_comments.services.notifications import get_notification_bus
from distributor_comments.services.observer import CommentObserver

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Keeps mirrored comment threads in sync between a hub and its destinations",
    version=settings.app_version,
)

# Include API routers
app.include_router(comments_router, prefix=settings.api_prefix)


@app.on_event("startup")
async def on_startup() -> None:
    logging.basicConfig(level=settings.log_level.upper())
    if getattr(app.state, "comment_observer", None) is None:
        observer = CommentObserver(get_comment_dispatcher())
        observer.register(get_notification_bus())
        app.state.comment_observer = observer
        logger.info("Comment observer registered on the notification bus")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    observer: CommentObserver | None = getattr(app.state, "comment_observer", None)
    if observer:
        await observer.dispatcher.close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "comments_endpoint": f"/{settings.comments_path}",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("distributor_comments.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
