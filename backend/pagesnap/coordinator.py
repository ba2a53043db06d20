"""Single-flight execution of screenshot renders."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import suppress
from datetime import datetime, timezone
from typing import Callable, Optional

from pagesnap.cache import ScreenshotCache
from pagesnap.models import Credentials, RenderOutcome, Viewport
from pagesnap.renderer import Renderer

logger = logging.getLogger("pagesnap.refresh")


class RefreshCoordinator:
    """Runs at most one render at a time and publishes results to the cache.

    ``trigger()`` while a render is running returns the running task instead
    of starting another browser.
    """

    def __init__(
        self,
        renderer: Renderer,
        cache: ScreenshotCache,
        *,
        url: str,
        viewport: Viewport,
        credentials: Optional[Credentials] = None,
        timeout_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._renderer = renderer
        self._cache = cache
        self._url = url
        self._viewport = viewport
        self._credentials = credentials
        self._timeout = timeout_seconds if timeout_seconds and timeout_seconds > 0 else None
        self._clock = clock
        self._inflight: Optional[asyncio.Task[RenderOutcome]] = None

    @property
    def render_in_flight(self) -> bool:
        return self._inflight is not None

    def trigger(self) -> asyncio.Task[RenderOutcome]:
        if self._inflight is None:
            self._inflight = asyncio.create_task(self._refresh(), name="screenshot-refresh")
        return self._inflight

    async def _render(self) -> bytes:
        render = self._renderer.render(self._url, self._viewport, self._credentials)
        if self._timeout is None:
            return await render
        return await asyncio.wait_for(render, timeout=self._timeout)

    async def _refresh(self) -> RenderOutcome:
        start = self._clock()
        image: Optional[bytes] = None
        error: Optional[str] = None
        try:
            image = await self._render()
            if not image:
                error = "Renderer returned an empty image"
        except asyncio.TimeoutError as exc:
            if self._timeout is not None:
                error = f"Render timed out after {self._timeout:g}s"
            else:
                error = str(exc) or exc.__class__.__name__
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__
        finally:
            # Cleared before any await so a trigger from here on starts a fresh render.
            self._inflight = None

        outcome = RenderOutcome(
            image=image if error is None else None,
            duration_seconds=max(0.0, self._clock() - start),
            completed_at=datetime.now(timezone.utc),
            error=error,
        )
        self._cache.store_outcome(outcome)
        if outcome.ok:
            logger.info(
                "Refresh done duration_ms=%d bytes=%d",
                int(outcome.duration_seconds * 1000),
                len(outcome.image),
            )
        else:
            logger.error(
                "Refresh failed duration_ms=%d error=%s",
                int(outcome.duration_seconds * 1000),
                outcome.error,
            )
        return outcome

    async def wait_idle(self) -> Optional[RenderOutcome]:
        task = self._inflight
        if task is None:
            return None
        return await asyncio.shield(task)

    async def aclose(self) -> None:
        task = self._inflight
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        self._inflight = None
