"""
Dashboard refresh loop.

Boards re-fetch orders on a fixed interval instead of receiving pushes. The
loop is an asyncio task that can be stopped, paused while offline, and backs
off exponentially while fetches fail.
"""
import asyncio
import logging
import random
from typing import Awaitable, Callable, List, Optional

from campus_canteen.models.user import RoleEnum

from .api import ApiError, CanteenClient

logger = logging.getLogger(__name__)

STAFF_POLL_SECONDS = 5.0
STUDENT_POLL_SECONDS = 10.0
MAX_BACKOFF_SECONDS = 60.0
BACKOFF_JITTER_SECONDS = 0.25


class OrderPoller:
    def __init__(
        self,
        fetch: Callable[[], Awaitable[List[dict]]],
        on_update: Callable[[List[dict]], None],
        interval: float = STUDENT_POLL_SECONDS,
        max_backoff: float = MAX_BACKOFF_SECONDS,
        on_error: Optional[Callable[[Exception], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.fetch = fetch
        self.on_update = on_update
        self.on_error = on_error
        self.interval = interval
        self.max_backoff = max_backoff
        self.enabled = True
        self.failures = 0
        self._sleep = sleep
        self._online = asyncio.Event()
        self._online.set()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def online(self) -> bool:
        return self._online.is_set()

    def start(self) -> None:
        if self.running:
            return
        self.enabled = True
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Stops polling, e.g. when the board is closed."""
        self.enabled = False
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def set_online(self, online: bool) -> None:
        if online and not self.online:
            logger.info("Back online, resuming order polling")
            self._online.set()
        elif not online and self.online:
            logger.info("Offline, pausing order polling")
            self._online.clear()

    def next_delay(self) -> float:
        if not self.failures:
            return self.interval
        delay = min(self.interval * (2 ** self.failures), self.max_backoff)
        return delay + random.uniform(0, BACKOFF_JITTER_SECONDS)

    async def poll_once(self) -> bool:
        try:
            orders = await self.fetch()
        except ApiError as exc:
            self.failures += 1
            logger.warning("Order poll failed (%d in a row): %s", self.failures, exc)
            if self.on_error is not None:
                self.on_error(exc)
            return False

        self.failures = 0
        self.on_update(orders)
        return True

    async def _run(self) -> None:
        while self.enabled:
            await self._online.wait()
            await self.poll_once()
            await self._sleep(self.next_delay())


def dashboard_poller(
    client: CanteenClient,
    role: RoleEnum,
    on_update: Callable[[List[dict]], None],
    **kwargs,
) -> OrderPoller:
    """
    Staff and admin boards watch every order and refresh more often; students
    watch their own orders.
    """
    role = RoleEnum(role)
    if role.is_privileged:
        kwargs.setdefault("interval", STAFF_POLL_SECONDS)
        return OrderPoller(client.all_orders, on_update, **kwargs)
    kwargs.setdefault("interval", STUDENT_POLL_SECONDS)
    return OrderPoller(client.my_orders, on_update, **kwargs)
