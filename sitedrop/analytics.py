"""Analytics reporting for page views and deployments.

Events are posted as JSON to an external collector. Reporting never affects
the response a client gets: every call is scheduled as a detached task and
any failure is logged and dropped.

Endpoints used on the collector:
    POST {ANALYTICS_URL}/ping   - someone loaded the site root
    POST {ANALYTICS_URL}/deploy - a deployment finished
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

import httpx
from fastapi import Request

_LOG = logging.getLogger(__name__)

_background_tasks: set[asyncio.Task] = set()
"""Detached tasks kept referenced until they finish."""


def request_event(event: str, request: Request) -> dict:
    """Describe the triggering request for the collector."""
    return {
        "event": event,
        "host": request.headers.get("host", ""),
        "path": request.url.path,
        "user_agent": request.headers.get("user-agent", ""),
        "referer": request.headers.get("referer", ""),
        "timestamp": int(time.time()),
    }


class AnalyticsClient:
    """Posts events to the analytics collector.

    Attributes:
        base_url: Collector base URL. Empty disables reporting.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def send(self, endpoint: str, payload: dict) -> None:
        """POST ``payload`` to ``{base_url}/{endpoint}``."""
        if not self.enabled:
            _LOG.debug("Analytics disabled, dropping %s event", endpoint)
            return
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(f"{self.base_url}/{endpoint}", json=payload)
            response.raise_for_status()

    async def ping(self, event: dict) -> None:
        await self.send("ping", event)

    async def on_deploy(self, event: dict) -> None:
        await self.send("deploy", event)


def fire_and_forget(
    factory: Callable[[], Awaitable[None]],
    delay: float = 0.0,
) -> asyncio.Task:
    """Run ``factory()`` in the background after ``delay`` seconds.

    Exceptions are logged and discarded.

    Returns:
        The scheduled task (callers normally ignore it).
    """

    async def runner() -> None:
        try:
            if delay > 0:
                await asyncio.sleep(delay)
            await factory()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            _LOG.warning("Analytics report failed: %s", e)

    task = asyncio.create_task(runner())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task
