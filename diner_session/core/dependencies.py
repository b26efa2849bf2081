"""Wiring of storage backends and the menu session."""
import logging
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import async_sessionmaker

from diner_session.core.config import settings
from diner_session.db.database import AsyncSessionLocal, init_db
from diner_session.services.identity.resolver import DeviceIdentityResolver
from diner_session.services.identity.storage import (
    CookieJarStore,
    MemoryStore,
    SqlStore,
    StorageUnavailableError,
)
from diner_session.services.menu_session.api import MenuSessionAPI
from diner_session.services.menu_session.session import MenuSession
from diner_session.services.menu_session.store import SessionTokenStore

logger = logging.getLogger(__name__)


def get_device_resolver(
    cookies: CookieJarStore,
    session_factory: Optional[async_sessionmaker] = None,
    session_store: Optional[MemoryStore] = None,
) -> DeviceIdentityResolver:
    """Get a device identity resolver over the three storage backends."""
    return DeviceIdentityResolver(
        cookies=cookies,
        durable=SqlStore(session_factory or AsyncSessionLocal),
        session=session_store or MemoryStore(),
    )


async def get_cookie_jar(session_factory: Optional[async_sessionmaker] = None) -> CookieJarStore:
    """Get a cookie jar persisted in the database, restored from earlier runs."""
    cookies = CookieJarStore(
        max_age_days=settings.device_cookie_days,
        session_factory=session_factory or AsyncSessionLocal,
    )
    try:
        await cookies.restore()
    except StorageUnavailableError as e:
        logger.warning(f"Starting with an empty cookie jar: {e}")
    return cookies


async def create_menu_session(
    client: Optional[httpx.AsyncClient] = None,
    cookies: Optional[CookieJarStore] = None,
    session_factory: Optional[async_sessionmaker] = None,
) -> MenuSession:
    """Create a menu session backed by the configured durable storage.

    Without an explicit ``cookies`` jar, cookies are restored from and
    saved to the database so tokens outlive the process.
    """
    if session_factory is None:
        await init_db()
    if cookies is None:
        cookies = await get_cookie_jar(session_factory)
    return MenuSession(
        api=MenuSessionAPI(client=client),
        resolver=get_device_resolver(cookies, session_factory),
        token_store=SessionTokenStore(cookies),
    )
