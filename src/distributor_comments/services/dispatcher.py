"""Outbound pushes of comment events from a hub to its destinations.

Each subscription of a post is pushed independently. A transport failure on
one destination is recorded in the report and never stops the others; there
is no retry.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from distributor_comments.core.settings import settings
from distributor_comments.services.events import (
    DispatchReport,
    DispatchResult,
    PropagationEvent,
    SubscriptionTarget,
)
from distributor_comments.services.hooks import HookRegistry, get_hook_registry

# Configure logger for this module
logger = logging.getLogger(__name__)


class CommentDispatcher:
    """Fan a propagation event out to every subscription it targets."""

    def __init__(
        self,
        hooks: HookRegistry | None = None,
        client: httpx.AsyncClient | None = None,
        *,
        timeout_seconds: float | None = None,
        max_concurrency: int | None = None,
        comments_path: str | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            hooks: Extension points consulted before sending.
            client: HTTP client to reuse. When omitted one is created lazily and
                closed by :meth:`close`.
            timeout_seconds: Per-push timeout, defaults to settings.
            max_concurrency: Pushes in flight at once, defaults to settings.
            comments_path: Path of the comments endpoints under a destination's
                API root, defaults to settings.
        """
        self.hooks = hooks or get_hook_registry()
        self.timeout_seconds = float(
            timeout_seconds if timeout_seconds is not None else settings.push_timeout_seconds
        )
        self.max_concurrency = max(
            1, max_concurrency if max_concurrency is not None else settings.dispatch_max_concurrency
        )
        self.comments_path = (comments_path or settings.comments_path).strip("/")
        self._client = client
        self._owns_client = client is None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds))
        return self._client

    def endpoint_url(self, target: SubscriptionTarget, event: PropagationEvent) -> str:
        """Return the destination URL an event is posted to."""
        return f"{target.target_url.rstrip('/')}/{self.comments_path}/{event.kind.value}"

    def build_payload(self, event: PropagationEvent, target: SubscriptionTarget) -> dict[str, Any]:
        """Serialize an event for one subscription, then run the payload filters."""
        payload: dict[str, Any] = {
            "post_id": target.remote_post_id,
            "signature": target.signature,
        }
        if event.kind.carries_entries:
            payload["comment_data"] = [dict(entry) for entry in event.entries]
        else:
            ids = list(event.comment_ids)
            payload["comment_data"] = ids[0] if len(ids) == 1 else ids
            payload["origin_post_id"] = event.post_id
        if event.kind.carries_status:
            payload["comment_status"] = event.comment_status
        return self.hooks.filter_payload(payload, event)

    async def dispatch(self, event: PropagationEvent) -> DispatchReport:
        """Push an event to all of its targets.

        Returns:
            A report holding one result per target, in target order.
        """
        report = DispatchReport(event=event)
        if not event.targets:
            logger.debug("No subscriptions for post %s; nothing to push", event.post_id)
            return report
        if not self.hooks.allow_dispatch(event):
            report.vetoed = True
            return report

        requests = [
            (target, self.endpoint_url(target, event), self.build_payload(event, target))
            for target in event.targets
        ]
        client = await self._ensure_client()
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(target: SubscriptionTarget, url: str, payload: dict[str, Any]):
            async with semaphore:
                return await self._push(client, target, url, payload)

        logger.info(
            "Pushing %s of %d comment(s) on post %s to %d subscription(s)",
            event.kind.value,
            len(event.comment_ids),
            event.post_id,
            len(requests),
        )
        report.results = list(
            await asyncio.gather(*(_bounded(*request) for request in requests))
        )
        logger.info(
            "Pushed %s for post %s: %d ok, %d failed",
            event.kind.value,
            event.post_id,
            len(report.succeeded),
            len(report.failed),
        )
        return report

    async def _push(
        self,
        client: httpx.AsyncClient,
        target: SubscriptionTarget,
        url: str,
        payload: dict[str, Any],
    ) -> DispatchResult:
        try:
            response = await client.post(url, json=payload, timeout=self.timeout_seconds)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            # InvalidURL and IDNA errors surface before any transport is involved.
            logger.warning(
                "Push to subscription %s (%s) failed: %s", target.subscription_id, url, exc
            )
            return DispatchResult(
                subscription_id=target.subscription_id,
                target_url=target.target_url,
                error=f"{type(exc).__name__}: {exc}",
            )

        result = DispatchResult(
            subscription_id=target.subscription_id,
            target_url=target.target_url,
            status_code=response.status_code,
            body=_response_body(response),
        )
        if not result.ok:
            logger.warning(
                "Subscription %s (%s) answered %s",
                target.subscription_id,
                url,
                response.status_code,
            )
        return result

    async def close(self) -> None:
        """Clean up the underlying HTTP client if this dispatcher created it."""
        async with self._client_lock:
            if self._client is not None and self._owns_client:
                await self._client.aclose()
                self._client = None


def _response_body(response: httpx.Response) -> Any:
    if response.headers.get("content-type", "").startswith("application/json"):
        try:
            return response.json()
        except ValueError:
            pass
    return response.text


class _CommentDispatcherSingleton:
    """Singleton wrapper for CommentDispatcher."""

    _instance: CommentDispatcher | None = None

    @classmethod
    def get_instance(cls) -> CommentDispatcher:
        if cls._instance is None:
            cls._instance = CommentDispatcher()
        return cls._instance


def get_comment_dispatcher() -> CommentDispatcher:
    """Return a singleton dispatcher instance."""
    return _CommentDispatcherSingleton.get_instance()
