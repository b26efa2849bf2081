"""HTTP transport for the menu session endpoints."""
import logging
from typing import Any, Dict, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from diner_session.core.config import settings
from diner_session.services.menu_session.models import (
    ApiResponse,
    OrderSummary,
    PlaceOrderRequest,
    SessionInitData,
    SessionInitRequest,
    SessionStatusData,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class MenuSessionError(Exception):
    """Base exception for menu session calls."""


class MenuSessionTransportError(MenuSessionError):
    """Network failure, timeout, or a body that is not the expected JSON."""


class MenuSessionRejectedError(MenuSessionError):
    """Well-formed response that reports failure."""

    def __init__(self, message: Optional[str], status_code: Optional[int] = None):
        super().__init__(message or "Request rejected")
        self.message = message
        self.status_code = status_code


class MenuSessionAPI:
    """Client for ``/menu-session`` endpoints.

    Pass an ``httpx.AsyncClient`` to share a connection pool or to plug in a
    test transport; otherwise the API owns its client and closes it in
    ``aclose()``.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url or settings.api_base
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.request_timeout
        )

    async def init_session(
        self, short_code: str, session_token: Optional[str], device_id: str
    ) -> SessionInitData:
        """Exchange a stored token (if any) for the authoritative one."""
        body = SessionInitRequest(session_token=session_token, device_id=device_id)
        return await self._request(
            "POST",
            f"/menu-session/{quote(short_code, safe='')}/init",
            SessionInitData,
            json=body.model_dump(),
        )

    async def get_status(self, session_token: str) -> SessionStatusData:
        """Fetch active and finished orders for a session."""
        return await self._request(
            "GET",
            f"/menu-session/{quote(session_token, safe='')}/status",
            SessionStatusData,
        )

    async def place_order(self, session_token: str, order: PlaceOrderRequest) -> OrderSummary:
        """Submit a cart against a session.

        The HTTP status is not checked here: the body's ``success`` flag and
        ``message`` decide the outcome.
        """
        return await self._request(
            "POST",
            f"/menu-session/{quote(session_token, safe='')}/orders",
            OrderSummary,
            json=order.to_payload(),
            require_ok=False,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        payload_type: Type[M],
        json: Optional[Dict[str, Any]] = None,
        require_ok: bool = True,
    ) -> M:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.request(method, url, json=json)
        except httpx.HTTPError as e:
            logger.debug(f"[MENU SESSION API] {method} {path} failed: {e}")
            raise MenuSessionTransportError(f"{method} {path} failed: {e}") from e

        if require_ok and not response.is_success:
            raise MenuSessionRejectedError(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise MenuSessionTransportError(f"{method} {path} returned a non-JSON body") from e

        if not isinstance(body, dict):
            raise MenuSessionTransportError(f"{method} {path} returned a non-object body")
        if not body.get("success"):
            message = body.get("message")
            raise MenuSessionRejectedError(
                str(message) if message is not None else None,
                status_code=response.status_code,
            )

        try:
            envelope = ApiResponse[payload_type].model_validate(body)
        except ValidationError as e:
            raise MenuSessionTransportError(f"{method} {path} returned an unexpected payload: {e}") from e

        if envelope.data is None:
            raise MenuSessionTransportError(f"{method} {path} succeeded without data")
        return envelope.data
