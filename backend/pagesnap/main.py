"""pagesnap HTTP API — main application."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response, status

from pagesnap import config
from pagesnap.cache import ScreenshotCache
from pagesnap.coordinator import RefreshCoordinator
from pagesnap.log_redact import install_log_redaction, redact_url
from pagesnap.models import Credentials, SchedulerStatus, Viewport
from pagesnap.renderer import PlaywrightRenderer, Renderer
from pagesnap.scheduler import AdaptiveScheduler

# --- Logging ---
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger("pagesnap.api")


def _build_renderer() -> Renderer:
    return PlaywrightRenderer(
        user_data_dir=config.BROWSER_DATA_DIR,
        settle_seconds=config.POST_LOAD_DELAY_SECONDS,
        animation_playback_rate=config.ANIMATION_PLAYBACK_RATE,
    )


def _credentials() -> Credentials | None:
    if config.USERNAME and config.PASSWORD:
        return Credentials(username=config.USERNAME, password=config.PASSWORD)
    if config.USERNAME or config.PASSWORD:
        logger.warning("Only one of USERNAME/PASSWORD is set; login is disabled.")
    return None


def _build_scheduler(renderer: Renderer) -> AdaptiveScheduler:
    cache = ScreenshotCache()
    coordinator = RefreshCoordinator(
        renderer,
        cache,
        url=config.URL,
        viewport=Viewport(width=config.WIDTH, height=config.HEIGHT),
        credentials=_credentials(),
        timeout_seconds=config.RENDER_TIMEOUT_SECONDS,
    )
    return AdaptiveScheduler(
        coordinator,
        cache,
        margin_seconds=config.UPDATE_TIME_MARGIN_SECONDS,
    )


@asynccontextmanager
async def _lifespan(app: FastAPI):
    config.validate()
    install_log_redaction([config.PASSWORD])
    if not config.RENDER_TIMEOUT_SECONDS or config.RENDER_TIMEOUT_SECONDS <= 0:
        logger.warning("RENDER_TIMEOUT_SECONDS is disabled; a stalled browser blocks all refreshes.")
    scheduler = _build_scheduler(_build_renderer())
    app.state.scheduler = scheduler
    logger.info(
        "Serving %s at %dx%d margin=%.1fs settle=%.1fs",
        redact_url(config.URL),
        config.WIDTH,
        config.HEIGHT,
        config.UPDATE_TIME_MARGIN_SECONDS,
        config.POST_LOAD_DELAY_SECONDS,
    )
    try:
        yield
    finally:
        await scheduler.aclose()
        app.state.scheduler = None


# --- App ---
app = FastAPI(
    title="pagesnap",
    version="1.0.0",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    lifespan=_lifespan,
)


def get_scheduler(request: Request) -> AdaptiveScheduler:
    return request.app.state.scheduler


@app.get("/page.png")
async def get_page(scheduler: AdaptiveScheduler = Depends(get_scheduler)):
    image = scheduler.handle_request()
    if image is None:
        # Nothing to show until the very first render finishes.
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return Response(
        content=image,
        media_type="image/png",
        headers={"Cache-Control": "no-store"},
    )


@app.get("/api/status", response_model=SchedulerStatus)
async def get_status(scheduler: AdaptiveScheduler = Depends(get_scheduler)):
    return scheduler.status()


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
