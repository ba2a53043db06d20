"""Data models shared by the renderer, refresh coordinator and status API."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class Viewport(BaseModel):
    width: int = Field(default=800, gt=0)
    height: int = Field(default=600, gt=0)


class Credentials(BaseModel):
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"

    __str__ = __repr__


class RenderOutcome(BaseModel):
    image: Optional[bytes] = None
    duration_seconds: float = 0.0
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.image is not None


class SchedulerStatus(BaseModel):
    has_image: bool
    image_bytes: Optional[int] = None
    last_refresh_at: Optional[datetime] = None
    last_outcome_at: Optional[datetime] = None
    cache_age_seconds: Optional[int] = None
    last_render_duration_ms: int = 0
    last_error: Optional[str] = None
    last_interval_ms: int = 0
    margin_ms: int = 0
    pending_refresh_delay_ms: Optional[int] = None
    render_in_flight: bool = False
    renders_total: int = 0
    render_failures: int = 0
    mispredictions: int = 0
