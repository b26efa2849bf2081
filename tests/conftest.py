"""Shared test fixtures and configuration."""
import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing the package
os.environ.setdefault("DINER_SESSION_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DINER_SESSION_API_URL", "http://testserver/api")

from diner_session.db.models import Base
from diner_session.services.identity.resolver import DeviceIdentityResolver
from diner_session.services.identity.storage import CookieJarStore, MemoryStore, SqlStore
from diner_session.services.menu_session.api import MenuSessionAPI
from diner_session.services.menu_session.session import MenuSession
from diner_session.services.menu_session.store import SessionTokenStore


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_API_BASE = "http://testserver/api"
TEST_POLL_INTERVAL = 0.02

ACTIVE = {"pending", "preparing", "ready"}


class FakeClock:
    """Controllable UTC clock for cookie expiry."""

    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_order(order_id: int, status: str = "pending", **overrides: Any) -> Dict[str, Any]:
    """Build an order payload the way the server reports it."""
    order = {
        "id": order_id,
        "order_number": f"ORD-{order_id:04d}",
        "status": status,
        "items": [
            {"id": 10, "name": "Chicken Kottu", "quantity": 1, "unit_price": 1450.0,
             "selectedVariation": None},
        ],
        "total": "1450.00",
        "currency": "LKR",
        "table_identifier": "T4",
        "notes": None,
        "is_active": status in ACTIVE,
        "placed_at": "2026-01-01T12:00:00Z",
    }
    order.update(overrides)
    return order


class FakeMenuSessionServer:
    """In-memory stand-in for the menu session endpoints."""

    def __init__(self, short_codes=("ABC1", "XYZ9")):
        self.short_codes = set(short_codes)
        self.sessions: Dict[str, Dict[str, str]] = {}
        self.orders: Dict[str, List[Dict[str, Any]]] = {}
        self.requests: List[Dict[str, Any]] = []
        self.reject_orders_with: Optional[str] = None
        self.fail_status_with: Optional[int] = None
        self._next_order_id = 1
        self.app = self._build_app()

    def count(self, kind: str) -> int:
        return sum(1 for r in self.requests if r["kind"] == kind)

    def add_session(self, token: str, short_code: str, device_id: str, orders=()) -> None:
        self.sessions[token] = {"short_code": short_code, "device_id": device_id}
        self.orders[token] = [dict(o) for o in orders]

    def set_status(self, token: str, order_id: int, status: str) -> None:
        for order in self.orders[token]:
            if order["id"] == order_id:
                order["status"] = status
                order["is_active"] = status in ACTIVE

    def _split(self, token: str):
        orders = self.orders.get(token, [])
        return (
            [o for o in orders if o["status"] in ACTIVE],
            [o for o in orders if o["status"] not in ACTIVE],
        )

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        @app.post("/api/menu-session/{short_code}/init")
        async def init(short_code: str, request: Request):
            body = await request.json()
            self.requests.append({"kind": "init", "short_code": short_code, "body": body})
            if short_code not in self.short_codes:
                return JSONResponse({"success": False, "message": "Menu not found"}, status_code=404)

            token = body.get("session_token")
            device_id = body.get("device_id")
            session = self.sessions.get(token) if token else None
            if not session or session["short_code"] != short_code:
                token = next(
                    (t for t, s in self.sessions.items()
                     if s["short_code"] == short_code and s["device_id"] == device_id),
                    None,
                )
            if token is None:
                token = secrets.token_hex(8)
                self.add_session(token, short_code, device_id)

            active, recent = self._split(token)
            return {
                "success": True,
                "data": {"session_token": token, "active_orders": active, "recent_orders": recent},
            }

        @app.get("/api/menu-session/{token}/status")
        async def status(token: str):
            self.requests.append({"kind": "status", "token": token})
            if self.fail_status_with:
                return JSONResponse({"success": False}, status_code=self.fail_status_with)
            if token not in self.sessions:
                return JSONResponse({"success": False, "message": "Session not found"}, status_code=404)
            active, done = self._split(token)
            return {"success": True, "data": {"active_orders": active, "done_orders": done}}

        @app.post("/api/menu-session/{token}/orders")
        async def place(token: str, request: Request):
            body = await request.json()
            self.requests.append({"kind": "orders", "token": token, "body": body})
            if token not in self.sessions:
                return JSONResponse({"success": False, "message": "Session not found"}, status_code=404)
            if self.reject_orders_with:
                return JSONResponse({"success": False, "message": self.reject_orders_with}, status_code=400)

            order_id = self._next_order_id
            self._next_order_id += 1
            total = sum(
                (i["unit_price"] + ((i.get("selectedVariation") or {}).get("price") or 0)) * i["quantity"]
                for i in body["items"]
            )
            order = make_order(
                order_id,
                items=body["items"],
                total=total,
                currency=body["currency"],
                notes=body["notes"] or None,
            )
            self.orders[token].append(order)
            return {"success": True, "data": order}

        return app


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    """Session factory bound to the test database."""
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cookies(clock):
    """Cookie jar with a controllable clock."""
    return CookieJarStore(clock=clock)


@pytest.fixture
def durable_store(session_factory):
    return SqlStore(session_factory)


@pytest.fixture
def session_store():
    return MemoryStore()


@pytest.fixture
def resolver(cookies, durable_store, session_store):
    """Device identity resolver over the three test backends."""
    return DeviceIdentityResolver(cookies=cookies, durable=durable_store, session=session_store)


@pytest.fixture
def token_store(cookies):
    return SessionTokenStore(cookies)


@pytest.fixture
def fake_server():
    return FakeMenuSessionServer()


@pytest.fixture
async def http_client(fake_server):
    """HTTP client routed to the fake server."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=fake_server.app),
        base_url="http://testserver",
    ) as client:
        yield client


@pytest.fixture
def api(http_client):
    return MenuSessionAPI(client=http_client, base_url=TEST_API_BASE)


@pytest.fixture
async def menu_session(api, resolver, token_store):
    """Menu session wired to the fake server with a fast poll interval."""
    session = MenuSession(
        api=api,
        resolver=resolver,
        token_store=token_store,
        poll_interval=TEST_POLL_INTERVAL,
    )
    yield session
    await session.close()


@pytest.fixture
def order_factory():
    """Build server-shaped order payloads."""
    return make_order


@pytest.fixture
async def mock_api_factory():
    """Build MenuSessionAPI instances over httpx.MockTransport.

    ``make(handler, recorded)`` appends every outgoing request to ``recorded``.
    """
    clients: List[httpx.AsyncClient] = []

    def make(handler, recorded: Optional[list] = None) -> MenuSessionAPI:
        def _handler(request: httpx.Request) -> httpx.Response:
            if recorded is not None:
                recorded.append(request)
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
        clients.append(client)
        return MenuSessionAPI(client=client, base_url=TEST_API_BASE)

    yield make

    for client in clients:
        await client.aclose()
