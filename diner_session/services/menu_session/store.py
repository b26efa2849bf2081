"""Per-menu session token persistence."""
from typing import Optional

from diner_session.core.config import settings
from diner_session.services.identity.storage import CookieJarStore

SESSION_COOKIE_PREFIX = "mvsession_"


def session_cookie_name(short_code: str) -> str:
    return f"{SESSION_COOKIE_PREFIX}{short_code}"


class SessionTokenStore:
    """Keeps one session token cookie per menu short code."""

    def __init__(self, cookies: CookieJarStore, max_age_days: Optional[int] = None):
        self.cookies = cookies
        self.max_age_days = settings.session_cookie_days if max_age_days is None else max_age_days

    async def get_token(self, short_code: str) -> Optional[str]:
        return await self.cookies.get(session_cookie_name(short_code))

    async def save_token(self, short_code: str, token: str) -> None:
        await self.cookies.set(session_cookie_name(short_code), token, days=self.max_age_days)

    async def clear_token(self, short_code: str) -> None:
        await self.cookies.remove(session_cookie_name(short_code))
