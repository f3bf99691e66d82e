"""Tests for reconnection backoff."""

from types import SimpleNamespace

import pytest

from rtmlink.rtm import reconnect
from rtmlink.rtm.reconnect import ReconnectionManager


@pytest.fixture
def sleeps(monkeypatch):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(reconnect, "asyncio", SimpleNamespace(sleep=fake_sleep))
    return delays


@pytest.mark.asyncio
async def test_backoff_doubles_up_to_cap(sleeps):
    manager = ReconnectionManager(initial_backoff=1.0, max_backoff=5.0, jitter=0)

    for _ in range(5):
        assert await manager.wait_before_reconnect()

    assert sleeps == [1.0, 2.0, 4.0, 5.0, 5.0]
    assert manager.attempts == 5


@pytest.mark.asyncio
async def test_unlimited_by_default(sleeps):
    manager = ReconnectionManager(initial_backoff=0, jitter=0)

    for _ in range(50):
        assert await manager.wait_before_reconnect()


@pytest.mark.asyncio
async def test_max_attempts(sleeps):
    manager = ReconnectionManager(initial_backoff=0, jitter=0, max_attempts=2)

    assert await manager.wait_before_reconnect()
    assert await manager.wait_before_reconnect()
    assert not await manager.wait_before_reconnect()
    assert len(sleeps) == 2


@pytest.mark.asyncio
async def test_reset_restores_initial_backoff(sleeps):
    manager = ReconnectionManager(initial_backoff=1.0, jitter=0)
    await manager.wait_before_reconnect()
    await manager.wait_before_reconnect()

    manager.reset()

    assert manager.attempts == 0
    assert manager.current_backoff == 1.0


def test_jitter_stays_within_bounds():
    manager = ReconnectionManager(initial_backoff=10.0, jitter=0.5)

    for _ in range(100):
        assert 10.0 <= manager.next_delay() <= 15.0
