import asyncio

import pytest

from campus_canteen.client.api import ApiError
from campus_canteen.client.polling import (
    STAFF_POLL_SECONDS,
    STUDENT_POLL_SECONDS,
    OrderPoller,
    dashboard_poller,
)
from campus_canteen.models import RoleEnum


class FakeFetch:
    def __init__(self, results):
        self.results = list(results)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        result = self.results.pop(0) if self.results else []
        if isinstance(result, Exception):
            raise result
        return result


async def no_sleep(_):
    await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_poll_once_delivers_orders():
    seen = []
    poller = OrderPoller(FakeFetch([[{"id": 1}]]), seen.append)
    assert await poller.poll_once()
    assert seen == [[{"id": 1}]]


@pytest.mark.asyncio
async def test_backoff_grows_and_resets():
    errors = []
    fetch = FakeFetch([ApiError("Network"), ApiError("Network"), [{"id": 2}]])
    poller = OrderPoller(fetch, lambda orders: None, interval=2.0, max_backoff=5.0, on_error=errors.append)

    assert poller.next_delay() == 2.0
    await poller.poll_once()
    assert 4.0 <= poller.next_delay() <= 4.25
    await poller.poll_once()
    assert 5.0 <= poller.next_delay() <= 5.25
    assert len(errors) == 2

    await poller.poll_once()
    assert poller.failures == 0
    assert poller.next_delay() == 2.0


@pytest.mark.asyncio
async def test_start_stop_and_offline_pause():
    seen = []
    fetch = FakeFetch([[{"id": n}] for n in range(1000)])
    poller = OrderPoller(fetch, seen.append, sleep=no_sleep)

    poller.start()
    await asyncio.sleep(0.01)
    assert poller.running
    assert fetch.calls > 0

    poller.set_online(False)
    await asyncio.sleep(0.01)
    paused_at = fetch.calls
    await asyncio.sleep(0.01)
    assert fetch.calls == paused_at

    poller.set_online(True)
    await asyncio.sleep(0.01)
    assert fetch.calls > paused_at

    await poller.stop()
    assert not poller.running
    stopped_at = fetch.calls
    await asyncio.sleep(0.01)
    assert fetch.calls == stopped_at


class StubClient:
    async def all_orders(self):
        return ["all"]

    async def my_orders(self):
        return ["mine"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "role, expected, interval",
    [
        (RoleEnum.admin, ["all"], STAFF_POLL_SECONDS),
        (RoleEnum.staff, ["all"], STAFF_POLL_SECONDS),
        (RoleEnum.student, ["mine"], STUDENT_POLL_SECONDS),
    ],
)
async def test_dashboard_poller_picks_feed(role, expected, interval):
    seen = []
    poller = dashboard_poller(StubClient(), role, seen.append)
    assert poller.interval == interval
    await poller.poll_once()
    assert seen == [expected]
