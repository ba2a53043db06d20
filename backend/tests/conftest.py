import asyncio

import pytest

PNG_A = b"\x89PNG\r\n\x1a\n-a"


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeTimers:
    """Stands in for ``loop.call_later``; timers only fire when told to."""

    def __init__(self):
        self.armed: list[FakeTimer] = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.armed.append(timer)
        return timer

    @property
    def live(self) -> list[FakeTimer]:
        return [t for t in self.armed if not t.cancelled and not t.fired]

    def fire_pending(self) -> FakeTimer:
        (timer,) = self.live
        timer.fired = True
        timer.callback()
        return timer


class FakeRenderer:
    def __init__(self, results=None, *, clock: FakeClock | None = None, duration: float = 0.0, gate=None):
        self.results = list(results or [PNG_A])
        self.clock = clock
        self.duration = duration
        self.gate = gate
        self.calls: list[tuple] = []
        self.active = 0
        self.max_active = 0

    async def render(self, url, viewport, credentials=None):
        self.calls.append((url, viewport, credentials))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(0)
            if self.clock is not None:
                self.clock.advance(self.duration)
            result = self.results[0] if len(self.results) == 1 else self.results.pop(0)
            if isinstance(result, BaseException):
                raise result
            return result
        finally:
            self.active -= 1


@pytest.fixture
def fake_clock():
    return FakeClock(start=1000.0)


@pytest.fixture
def fake_timers():
    return FakeTimers()


@pytest.fixture
def make_renderer():
    return FakeRenderer
