"""Page rendering through a headless Chromium driven by Playwright."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from pagesnap.log_redact import redact_url
from pagesnap.models import Credentials, Viewport

logger = logging.getLogger("pagesnap.renderer")

BROWSER_ARGS = ["--disable-dev-shm-usage"]
TEXT_INPUT_SELECTOR = '[type="text"]'
PASSWORD_INPUT_SELECTOR = '[type="password"]'


class RenderError(RuntimeError):
    """Raised when a page could not be rendered to an image."""


class Renderer(Protocol):
    async def render(
        self,
        url: str,
        viewport: Viewport,
        credentials: Optional[Credentials] = None,
    ) -> bytes: ...


async def login_if_prompted(page, credentials: Credentials, settle_seconds: float) -> bool:
    """Fill and submit a login form if the page shows one.

    A form is assumed when both a text input and a password input exist.
    Returns whether credentials were submitted.
    """
    logger.info("Render login check, waiting %.1fs", settle_seconds)
    await asyncio.sleep(settle_seconds)
    has_login = await page.evaluate(
        "([user, pass]) => !!(document.querySelector(user) && document.querySelector(pass))",
        [TEXT_INPUT_SELECTOR, PASSWORD_INPUT_SELECTOR],
    )
    logger.info("Render login form found=%s", bool(has_login))
    if not has_login:
        return False
    await page.locator(TEXT_INPUT_SELECTOR).first.press_sequentially(credentials.username)
    await page.locator(PASSWORD_INPUT_SELECTOR).first.press_sequentially(credentials.password)
    await page.keyboard.press("Enter")
    return True


class PlaywrightRenderer:
    def __init__(
        self,
        *,
        user_data_dir: str = "./data/",
        settle_seconds: float = 2.0,
        animation_playback_rate: int = 20,
    ) -> None:
        self._user_data_dir = user_data_dir
        self._settle_seconds = settle_seconds
        self._animation_playback_rate = animation_playback_rate

    async def _speed_up_animations(self, context, page) -> None:
        if self._animation_playback_rate <= 1:
            return
        try:
            session = await context.new_cdp_session(page)
            await session.send("Animation.setPlaybackRate", {"playbackRate": self._animation_playback_rate})
        except PlaywrightError as exc:
            logger.warning("Could not change animation playback rate (%s)", exc.__class__.__name__)

    async def render(
        self,
        url: str,
        viewport: Viewport,
        credentials: Optional[Credentials] = None,
    ) -> bytes:
        safe_url = redact_url(url)
        try:
            async with async_playwright() as p:
                logger.info("Render open browser")
                context = await p.chromium.launch_persistent_context(
                    self._user_data_dir,
                    headless=True,
                    args=BROWSER_ARGS,
                    viewport={"width": viewport.width, "height": viewport.height},
                )
                try:
                    page = context.pages[0] if context.pages else await context.new_page()

                    logger.info("Render goto %s", safe_url)
                    await page.goto(url)
                    await self._speed_up_animations(context, page)

                    if credentials is not None:
                        await login_if_prompted(page, credentials, self._settle_seconds)

                    logger.info("Render wait for network idle")
                    await page.wait_for_load_state("networkidle")

                    # Content may keep loading asynchronously after the network settles.
                    logger.info("Render wait %.1fs", self._settle_seconds)
                    await asyncio.sleep(self._settle_seconds)

                    logger.info("Render screenshot")
                    return await page.screenshot(type="png")
                finally:
                    logger.info("Render close browser")
                    await context.close()
        except PlaywrightError as exc:
            raise RenderError(f"Rendering {safe_url} failed: {exc}") from exc
