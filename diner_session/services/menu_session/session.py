"""Anonymous diner ordering session."""
import logging
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from diner_session.core.config import settings
from diner_session.services.identity.resolver import DeviceIdentityResolver
from diner_session.services.identity.storage import StorageUnavailableError
from diner_session.services.menu_session.api import (
    MenuSessionAPI,
    MenuSessionError,
    MenuSessionRejectedError,
    MenuSessionTransportError,
)
from diner_session.services.menu_session.models import (
    OrderLineItem,
    OrderSummary,
    PlaceOrderRequest,
)
from diner_session.services.menu_session.poller import StatusPoller, should_poll
from diner_session.services.menu_session.store import SessionTokenStore

logger = logging.getLogger(__name__)

ORDER_FAILED_MESSAGE = "Failed to place order"
CONNECTION_ERROR_MESSAGE = "Connection error. Please try again."

CartItem = Union[OrderLineItem, Mapping[str, Any]]


class MenuSession:
    """A diner's ordering session for one menu at a time.

    Owns the negotiated token, the order list, the placement flag and error,
    and the status poller. Use as an async context manager or call
    ``close()`` when the diner leaves the menu.
    """

    def __init__(
        self,
        api: MenuSessionAPI,
        resolver: DeviceIdentityResolver,
        token_store: SessionTokenStore,
        poll_interval: Optional[float] = None,
        single_flight_orders: Optional[bool] = None,
        default_currency: Optional[str] = None,
    ):
        self.api = api
        self.resolver = resolver
        self.token_store = token_store
        self.single_flight_orders = (
            settings.single_flight_orders if single_flight_orders is None else single_flight_orders
        )
        self.default_currency = default_currency or settings.default_currency

        self.short_code: Optional[str] = None
        self.session_token: Optional[str] = None
        self.orders: List[OrderSummary] = []
        self.is_placing_order = False
        self.order_error: Optional[str] = None

        self._initialized_code: Optional[str] = None
        self._generation = 0
        self._closed = False
        self._poller = StatusPoller(self._poll_once, interval=poll_interval)

    async def __aenter__(self) -> "MenuSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active_orders(self) -> List[OrderSummary]:
        return [order for order in self.orders if order.is_active]

    @property
    def is_polling(self) -> bool:
        return self._poller.running

    @property
    def poll_interval(self) -> float:
        return self._poller.interval

    async def init_session(self, short_code: str) -> Tuple[Optional[str], List[OrderSummary]]:
        """Negotiate the session token for a menu and load the diner's orders.

        Runs once per short code. Switching to another short code replaces
        the previous menu's token and orders once the new menu answers.
        Failures leave token and orders as they were.
        """
        if not short_code or self._closed:
            return self.session_token, self.orders
        if short_code == self._initialized_code:
            return self.session_token, self.orders

        if self._initialized_code is not None:
            # Results still in flight for the previous menu are dropped
            self._generation += 1
            self._poller.stop()
        self._initialized_code = short_code
        generation = self._generation

        stored_token = await self.token_store.get_token(short_code)
        device_id = await self.resolver.get_device_id()

        try:
            data = await self.api.init_session(short_code, stored_token, device_id)
        except MenuSessionError as e:
            logger.info(f"[MENU SESSION] Could not start session for {short_code}: {e}")
            if generation == self._generation:
                self._sync_poller()
            return self.session_token, self.orders

        if generation != self._generation:
            logger.debug(f"[MENU SESSION] Discarding stale init response for {short_code}")
            return self.session_token, self.orders

        if stored_token and stored_token != data.session_token:
            logger.info(f"[MENU SESSION] Server replaced stored session token for {short_code}")
        self.short_code = short_code
        self.session_token = data.session_token
        self.orders = data.all_orders()
        self.order_error = None
        logger.info(
            f"[MENU SESSION] Session ready for {short_code} with {len(self.orders)} orders "
            f"({len(self.active_orders)} active)"
        )
        self._sync_poller()
        try:
            await self.token_store.save_token(short_code, data.session_token)
        except StorageUnavailableError as e:
            logger.warning(f"[MENU SESSION] Session token for {short_code} not persisted: {e}")
        return self.session_token, self.orders

    async def place_order(
        self,
        items: Iterable[CartItem],
        currency: Optional[str] = None,
        notes: str = "",
    ) -> Optional[OrderSummary]:
        """Submit the cart. Returns the placed order, or None on any failure."""
        items = list(items)
        token = self.session_token
        if not token or not items or self._closed:
            return None
        if self.single_flight_orders and self.is_placing_order:
            logger.warning("[MENU SESSION] Order already in progress, ignoring duplicate call")
            return None

        request = PlaceOrderRequest(
            items=items,
            currency=currency or self.default_currency,
            notes=notes or "",
        )
        generation = self._generation
        self.is_placing_order = True
        self.order_error = None
        try:
            order = await self.api.place_order(token, request)
        except MenuSessionRejectedError as e:
            self.order_error = e.message or ORDER_FAILED_MESSAGE
            logger.warning(f"[MENU SESSION] Order rejected: {self.order_error}")
            return None
        except MenuSessionTransportError as e:
            self.order_error = CONNECTION_ERROR_MESSAGE
            logger.warning(f"[MENU SESSION] Order not sent: {e}")
            return None
        finally:
            self.is_placing_order = False

        if generation != self._generation or token != self.session_token:
            logger.debug(f"[MENU SESSION] Order {order.order_number} placed after session changed")
            return order

        logger.info(f"[MENU SESSION] Order {order.order_number} placed ({order.formatted_total})")
        self.orders = [order, *self.orders]
        self._sync_poller()
        return order

    async def refresh(self) -> bool:
        """Fetch order status once. Returns False if nothing was updated."""
        token = self.session_token
        if not token or self._closed:
            return False
        try:
            return await self._poll_once(token)
        except MenuSessionError as e:
            logger.debug(f"[MENU SESSION] Refresh failed: {e}")
            return False

    async def clear_session(self) -> None:
        """Forget the stored token for the current menu and drop local state."""
        if self.short_code:
            try:
                await self.token_store.clear_token(self.short_code)
            except StorageUnavailableError as e:
                logger.warning(f"[MENU SESSION] Stored token for {self.short_code} not removed: {e}")
        self._reset()
        self._initialized_code = None

    async def close(self) -> None:
        """Stop polling and release the HTTP client. Late results are ignored."""
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        await self._poller.aclose()
        await self.api.aclose()

    async def _poll_once(self, token: str) -> bool:
        generation = self._generation
        data = await self.api.get_status(token)
        if generation != self._generation or token != self.session_token:
            return False
        self.orders = data.all_orders()
        self._sync_poller()
        return True

    def _reset(self) -> None:
        self._generation += 1
        self._poller.stop()
        self.session_token = None
        self.orders = []
        self.order_error = None

    def _sync_poller(self) -> None:
        if not self._closed and should_poll(self.orders, self.session_token):
            self._poller.start(self.session_token)
        else:
            self._poller.stop()
