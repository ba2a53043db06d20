import asyncio
import logging

from pagesnap.cache import ScreenshotCache
from pagesnap.coordinator import RefreshCoordinator
from pagesnap.models import Credentials, RenderOutcome, Viewport
from pagesnap.renderer import RenderError

OLD_PNG = b"\x89PNG\r\n\x1a\nold"
NEW_PNG = b"\x89PNG\r\n\x1a\nnew"


def _coordinator(renderer, cache=None, clock=None, **kwargs):
    cache = cache or ScreenshotCache()
    extra = {"clock": clock} if clock is not None else {}
    coordinator = RefreshCoordinator(
        renderer,
        cache,
        url="https://example.test/board",
        viewport=Viewport(width=1024, height=768),
        **extra,
        **kwargs,
    )
    return coordinator, cache


def test_concurrent_triggers_share_one_render(make_renderer):
    async def scenario():
        gate = asyncio.Event()
        renderer = make_renderer([NEW_PNG], gate=gate)
        coordinator, cache = _coordinator(renderer)

        tasks = [coordinator.trigger() for _ in range(5)]
        await asyncio.sleep(0)
        assert all(task is tasks[0] for task in tasks)
        assert coordinator.render_in_flight
        assert coordinator.trigger() is tasks[0]

        gate.set()
        outcomes = await asyncio.gather(*tasks)

        assert len(renderer.calls) == 1
        assert renderer.max_active == 1
        assert all(outcome.ok for outcome in outcomes)
        assert cache.current_image() == NEW_PNG
        assert not coordinator.render_in_flight

    asyncio.run(scenario())


def test_trigger_after_completion_starts_fresh_render(make_renderer):
    async def scenario():
        renderer = make_renderer([OLD_PNG, NEW_PNG])
        coordinator, cache = _coordinator(renderer)

        first = await coordinator.trigger()
        second_task = coordinator.trigger()
        second = await second_task

        assert first.image == OLD_PNG
        assert second.image == NEW_PNG
        assert len(renderer.calls) == 2
        assert cache.current_image() == NEW_PNG

    asyncio.run(scenario())


def test_renderer_receives_configured_target(make_renderer):
    async def scenario():
        renderer = make_renderer([NEW_PNG])
        credentials = Credentials(username="kiosk", password="hunter22")
        coordinator, _ = _coordinator(renderer, credentials=credentials)
        await coordinator.trigger()
        return renderer.calls[0]

    url, viewport, credentials = asyncio.run(scenario())

    assert url == "https://example.test/board"
    assert (viewport.width, viewport.height) == (1024, 768)
    assert credentials.username == "kiosk"


def test_failed_render_keeps_previous_image(fake_clock, make_renderer, caplog):
    caplog.set_level(logging.ERROR, logger="pagesnap.refresh")

    async def scenario():
        cache = ScreenshotCache()
        cache.store_outcome(RenderOutcome(image=OLD_PNG, duration_seconds=1.0))
        renderer = make_renderer(
            [RenderError("net::ERR_CONNECTION_REFUSED"), NEW_PNG],
            clock=fake_clock,
            duration=4.0,
        )
        coordinator, _ = _coordinator(renderer, cache=cache, clock=fake_clock)

        failed = await coordinator.trigger()
        assert not failed.ok
        assert failed.image is None
        assert "ERR_CONNECTION_REFUSED" in failed.error
        assert failed.duration_seconds == 4.0
        assert cache.current_image() == OLD_PNG
        assert cache.last_render_duration == 4.0
        assert cache.last_error == failed.error
        assert cache.render_failures == 1
        assert not coordinator.render_in_flight

        recovered = await coordinator.trigger()
        assert recovered.ok
        assert cache.current_image() == NEW_PNG
        assert cache.last_error is None

    asyncio.run(scenario())

    assert any("ERR_CONNECTION_REFUSED" in record.getMessage() for record in caplog.records)


def test_failed_first_render_leaves_cache_empty(make_renderer):
    async def scenario():
        renderer = make_renderer([RuntimeError("browser crashed")])
        coordinator, cache = _coordinator(renderer)
        outcome = await coordinator.trigger()
        return outcome, cache

    outcome, cache = asyncio.run(scenario())

    assert outcome.error == "browser crashed"
    assert cache.current_image() is None
    assert cache.renders_total == 1


def test_empty_image_counts_as_failure(make_renderer):
    async def scenario():
        cache = ScreenshotCache()
        cache.store_outcome(RenderOutcome(image=OLD_PNG))
        coordinator, _ = _coordinator(make_renderer([b""]), cache=cache)
        return await coordinator.trigger(), cache

    outcome, cache = asyncio.run(scenario())

    assert not outcome.ok
    assert cache.current_image() == OLD_PNG


def test_render_timeout_is_a_recoverable_failure():
    class HangingRenderer:
        async def render(self, url, viewport, credentials=None):
            await asyncio.Event().wait()

    async def scenario():
        coordinator, cache = _coordinator(HangingRenderer(), timeout_seconds=0.01)
        outcome = await coordinator.trigger()
        return outcome, coordinator, cache

    outcome, coordinator, cache = asyncio.run(scenario())

    assert outcome.error == "Render timed out after 0.01s"
    assert not coordinator.render_in_flight
    assert cache.render_failures == 1


def test_aclose_cancels_inflight_render(make_renderer):
    async def scenario():
        renderer = make_renderer([NEW_PNG], gate=asyncio.Event())
        coordinator, cache = _coordinator(renderer)
        task = coordinator.trigger()
        await asyncio.sleep(0)

        await coordinator.aclose()

        assert task.cancelled()
        assert not coordinator.render_in_flight
        assert cache.renders_total == 0

    asyncio.run(scenario())


def test_wait_idle_without_render_returns_none(make_renderer):
    coordinator, _ = _coordinator(make_renderer())
    assert asyncio.run(coordinator.wait_idle()) is None
