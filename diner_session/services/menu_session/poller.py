"""Background order status polling."""
import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional

from diner_session.core.config import settings
from diner_session.services.menu_session.api import MenuSessionError
from diner_session.services.menu_session.models import OrderSummary

logger = logging.getLogger(__name__)


def has_active_orders(orders: Iterable[OrderSummary]) -> bool:
    return any(order.is_active for order in orders)


def should_poll(orders: Iterable[OrderSummary], session_token: Optional[str]) -> bool:
    """Polling runs only for a known session with at least one active order."""
    return bool(session_token) and has_active_orders(orders)


class StatusPoller:
    """Runs ``fetch(token)`` on a fixed interval in a cancellable task.

    A failed tick is skipped; the next tick stays on the original schedule.
    """

    def __init__(
        self,
        fetch: Callable[[str], Awaitable[None]],
        interval: Optional[float] = None,
    ):
        self._fetch = fetch
        self.interval = interval if interval is not None else settings.poll_interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._token: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def token(self) -> Optional[str]:
        return self._token if self.running else None

    def start(self, session_token: str) -> None:
        """Start polling for a token, restarting if it polls another one."""
        if self.running and self._token == session_token:
            return
        self.stop()
        self._token = session_token
        self._task = asyncio.create_task(self._run(session_token))
        logger.debug(f"[POLLER] Started, every {self.interval}s")

    def stop(self) -> None:
        """Cancel the polling task without waiting for it."""
        if self._task is not None:
            if not self._task.done():
                self._task.cancel()
                logger.debug("[POLLER] Stopped")
            self._task = None
        self._token = None

    async def aclose(self) -> None:
        """Cancel the polling task and wait for it to finish."""
        task = self._task
        self.stop()
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self, session_token: str) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            try:
                await self._fetch(session_token)
            except MenuSessionError as e:
                logger.debug(f"[POLLER] Status check skipped: {e}")
            except Exception as e:
                logger.error(f"[POLLER] Unexpected error during status check: {e}", exc_info=True)
            next_tick += self.interval
            now = loop.time()
            while next_tick <= now:
                next_tick += self.interval
