"""In-memory cell holding the latest screenshot and render bookkeeping."""

from datetime import datetime, timezone
from typing import Optional

from pagesnap.models import RenderOutcome


class ScreenshotCache:
    """Holds one PNG. Written only by the refresh coordinator.

    The image is an immutable ``bytes`` object swapped by reference, so a
    reader always sees a complete image.
    """

    def __init__(self) -> None:
        self._image: Optional[bytes] = None
        self._last_refresh_at: Optional[datetime] = None
        self._last_outcome_at: Optional[datetime] = None
        self._last_render_duration: float = 0.0
        self._last_error: Optional[str] = None
        self._renders_total = 0
        self._render_failures = 0

    def current_image(self) -> Optional[bytes]:
        return self._image

    def has_image(self) -> bool:
        return self._image is not None

    @property
    def last_render_duration(self) -> float:
        return self._last_render_duration

    @property
    def last_refresh_at(self) -> Optional[datetime]:
        return self._last_refresh_at

    @property
    def last_outcome_at(self) -> Optional[datetime]:
        return self._last_outcome_at

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def renders_total(self) -> int:
        return self._renders_total

    @property
    def render_failures(self) -> int:
        return self._render_failures

    def store_outcome(self, outcome: RenderOutcome) -> None:
        # Duration is recorded for failures too so the scheduler math stays sane.
        self._last_render_duration = max(0.0, outcome.duration_seconds)
        self._last_outcome_at = outcome.completed_at
        self._renders_total += 1
        if outcome.ok:
            self._image = bytes(outcome.image)
            self._last_refresh_at = outcome.completed_at
            self._last_error = None
        else:
            self._render_failures += 1
            self._last_error = outcome.error

    def age_seconds(self, now: Optional[datetime] = None) -> Optional[int]:
        if self._last_refresh_at is None:
            return None
        now = now or datetime.now(timezone.utc)
        return max(0, int((now - self._last_refresh_at).total_seconds()))
