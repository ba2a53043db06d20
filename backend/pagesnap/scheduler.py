"""Adaptive refresh scheduling driven by consumer request timing."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from pagesnap.cache import ScreenshotCache
from pagesnap.coordinator import RefreshCoordinator
from pagesnap.models import SchedulerStatus

logger = logging.getLogger("pagesnap.scheduler")


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


CallLater = Callable[[float, Callable[[], None]], TimerHandle]


def _loop_call_later(delay: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


def _ms(seconds: Optional[float]) -> Optional[int]:
    if seconds is None:
        return None
    return int(round(seconds * 1000))


class AdaptiveScheduler:
    """Schedules the next background refresh so it lands before the next request.

    Clients are assumed to poll with a roughly constant period. Each request
    measures the gap since the previous one and arms a single timer that
    starts the next render ``interval - render_duration - margin`` from now.
    A request that arrives while that timer is still pending means the guess
    was too late; the timer is dropped and a refresh starts immediately.

    All methods run on the event loop thread, which makes timer cancellation
    and firing mutually exclusive.
    """

    def __init__(
        self,
        coordinator: RefreshCoordinator,
        cache: ScreenshotCache,
        *,
        margin_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        call_later: CallLater = _loop_call_later,
    ) -> None:
        self._coordinator = coordinator
        self._cache = cache
        self._margin = max(0.0, margin_seconds)
        self._clock = clock
        self._call_later = call_later

        self._last_request_at: Optional[float] = None
        self._last_interval: float = 0.0
        self._timer: Optional[TimerHandle] = None
        self._timer_delay: float = 0.0
        self._mispredictions = 0

    @property
    def pending(self) -> bool:
        return self._timer is not None

    @property
    def pending_delay(self) -> Optional[float]:
        return self._timer_delay if self._timer is not None else None

    @property
    def last_interval(self) -> float:
        return self._last_interval

    @property
    def mispredictions(self) -> int:
        return self._mispredictions

    def handle_request(self) -> Optional[bytes]:
        """Return the cached image and record the request for scheduling."""
        image = self._cache.current_image()
        self.on_request()
        return image

    def on_request(self, now: Optional[float] = None) -> float:
        """Arm the next refresh timer for a request arriving at ``now``.

        Returns the delay in seconds the timer was armed with.
        """
        now = self._clock() if now is None else now
        render_duration = self._cache.last_render_duration
        interval = 0.0
        delay = 0.0

        # Without an image there is nothing to extrapolate from; refresh now.
        if self._cache.has_image():
            if self._last_request_at is None:
                self._last_request_at = now
            interval = max(0.0, now - self._last_request_at)
            self._last_request_at = now
            delay = max(0.0, interval - render_duration - self._margin)
        self._last_interval = interval

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            self._mispredictions += 1
            ahead = self._timer_delay - interval - render_duration
            logger.warning(
                "Scheduler got request %.1fs ahead of time, try increasing UPDATE_TIME_MARGIN",
                ahead,
            )
            delay = 0.0

        logger.info(
            "Scheduler interval %.1fs - duration %.1fs - margin %.1fs => running after %.1fs",
            interval,
            render_duration,
            self._margin,
            delay,
        )
        self._arm(delay)
        return delay

    def _arm(self, delay: float) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer_delay = delay
        self._timer = self._call_later(delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        self._coordinator.trigger()

    def cancel_pending(self) -> bool:
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        return True

    def status(self, now: Optional[datetime] = None) -> SchedulerStatus:
        now = now or datetime.now(timezone.utc)
        image = self._cache.current_image()
        return SchedulerStatus(
            has_image=image is not None,
            image_bytes=len(image) if image is not None else None,
            last_refresh_at=self._cache.last_refresh_at,
            last_outcome_at=self._cache.last_outcome_at,
            cache_age_seconds=self._cache.age_seconds(now),
            last_render_duration_ms=_ms(self._cache.last_render_duration),
            last_error=self._cache.last_error,
            last_interval_ms=_ms(self._last_interval),
            margin_ms=_ms(self._margin),
            pending_refresh_delay_ms=_ms(self.pending_delay),
            render_in_flight=self._coordinator.render_in_flight,
            renders_total=self._cache.renders_total,
            render_failures=self._cache.render_failures,
            mispredictions=self._mispredictions,
        )

    async def aclose(self) -> None:
        self.cancel_pending()
        await self._coordinator.aclose()
