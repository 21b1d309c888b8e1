"""Tests for the translation request pacer."""

import pytest

from src.services.rate_limiter import (
    RequestPacer,
    get_request_pacer,
    reset_request_pacer,
)


class FakeClock:
    """Monotonic clock advanced by the fake sleep."""

    def __init__(self):
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def pacer(clock, mock_logfire):
    return RequestPacer(min_interval_seconds=1.5, clock=clock, sleep=clock.sleep)


class TestRequestPacer:
    """Test RequestPacer spacing."""

    @pytest.mark.asyncio
    async def test_first_call_does_not_sleep(self, pacer, clock):
        assert await pacer.wait() == 0.0
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_back_to_back_calls_are_spaced(self, pacer, clock):
        await pacer.wait()
        await pacer.wait()
        await pacer.wait()

        assert clock.sleeps == [1.5, 1.5]

    @pytest.mark.asyncio
    async def test_elapsed_time_is_credited(self, pacer, clock):
        await pacer.wait()
        clock.now += 1.0

        slept = await pacer.wait()

        assert slept == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_no_sleep_when_interval_already_elapsed(self, pacer, clock):
        await pacer.wait()
        clock.now += 10.0

        assert await pacer.wait() == 0.0

    @pytest.mark.asyncio
    async def test_interval_override(self, pacer, clock):
        await pacer.wait()
        await pacer.wait(1.0)

        assert clock.sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_reset(self, pacer, clock):
        await pacer.wait()
        await pacer.wait()
        pacer.reset()

        assert pacer.time_until_next() == 0.0
        assert await pacer.wait() == 0.0

    def test_time_until_next(self, pacer, clock):
        assert pacer.time_until_next() == 0.0
        assert pacer.min_interval_seconds == 1.5


class TestGlobalPacer:
    def test_singleton_and_reset(self):
        reset_request_pacer()
        first = get_request_pacer()

        assert get_request_pacer() is first

        reset_request_pacer()
        assert get_request_pacer() is not first
        reset_request_pacer()
