"""Client-side key/value storage backends.

Three backends mirror what a browser offers a diner's device:

- ``CookieJarStore``: named cookies with an expiry, ``path`` and ``SameSite``
- ``SqlStore``: durable storage that survives restarts (local storage)
- ``MemoryStore``: lives only as long as the process (session storage)
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Callable, Dict, List, Optional
from urllib.parse import quote, unquote

from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from diner_session.db.models import CookieRecord, StoredValue

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes read back from SQLite as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class StorageUnavailableError(Exception):
    """Raised when a storage backend cannot be reached at all."""

    def __init__(self, backend: str, reason: str = ""):
        message = f"{backend} storage is unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.backend = backend
        self.reason = reason


class KeyValueStore(ABC):
    """Abstract base class for string key/value stores."""

    name: str = "storage"

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if missing."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete a value if present."""
        pass


class MemoryStore(KeyValueStore):
    """Session-scoped store held in process memory."""

    name = "session"

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()


class StoredCookie(BaseModel):
    """A single cookie with its attributes."""

    name: str
    value: str
    expires_at: datetime
    path: str = "/"
    same_site: str = "Lax"

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_header(self) -> str:
        """Render as a ``Set-Cookie`` style line."""
        expires = format_datetime(self.expires_at.astimezone(timezone.utc), usegmt=True)
        return (
            f"{self.name}={quote(self.value, safe='')}; expires={expires}; "
            f"path={self.path}; SameSite={self.same_site}"
        )


class CookieJarStore(KeyValueStore):
    """Cookie jar with per-cookie expiry.

    Expired cookies read as missing and are dropped on access. With a
    ``session_factory`` every set and remove is also written to the
    ``cookie_jar`` table, and ``restore()`` reloads the jar from it.
    """

    name = "cookie"

    def __init__(
        self,
        max_age_days: int = 365,
        clock: Callable[[], datetime] = utcnow,
        session_factory: Optional[async_sessionmaker] = None,
    ):
        self.max_age_days = max_age_days
        self._clock = clock
        self._session_factory = session_factory
        self._cookies: Dict[str, StoredCookie] = {}

    @property
    def persistent(self) -> bool:
        return self._session_factory is not None

    async def get(self, key: str) -> Optional[str]:
        cookie = self._cookies.get(key)
        if cookie is None:
            return None
        if cookie.is_expired(self._clock()):
            del self._cookies[key]
            return None
        return cookie.value

    async def set(self, key: str, value: str, days: Optional[int] = None) -> None:
        lifetime = self.max_age_days if days is None else days
        cookie = StoredCookie(
            name=key,
            value=value,
            expires_at=self._clock() + timedelta(days=lifetime),
        )
        self._cookies[key] = cookie
        if self.persistent:
            await self._save(cookie)

    async def remove(self, key: str) -> None:
        self._cookies.pop(key, None)
        if self.persistent:
            await self._delete(CookieRecord.name == key)

    async def restore(self) -> int:
        """Load live cookies from the database. Returns how many were loaded."""
        if not self.persistent:
            return 0
        now = self._clock()
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(CookieRecord))
                records = result.scalars().all()
        except SQLAlchemyError as e:
            raise StorageUnavailableError(self.name, str(e)) from e

        expired = []
        for record in records:
            cookie = StoredCookie(
                name=record.name,
                value=record.value,
                expires_at=as_utc(record.expires_at),
                path=record.path,
                same_site=record.same_site,
            )
            if cookie.is_expired(now):
                expired.append(cookie.name)
                continue
            self._cookies[cookie.name] = cookie
        if expired:
            await self._delete(CookieRecord.name.in_(expired))
        loaded = len(records) - len(expired)
        logger.debug(f"Restored {loaded} cookies, dropped {len(expired)} expired")
        return loaded

    def get_cookie(self, key: str) -> Optional[StoredCookie]:
        """Return the cookie with its attributes, ignoring expiry."""
        return self._cookies.get(key)

    def load(self, cookie_header: str, days: Optional[int] = None) -> None:
        """Seed the jar from a ``name=value; name2=value2`` string."""
        lifetime = self.max_age_days if days is None else days
        for part in cookie_header.split(";"):
            name, sep, value = part.strip().partition("=")
            if not sep or not name:
                continue
            self._cookies[name] = StoredCookie(
                name=name,
                value=unquote(value),
                expires_at=self._clock() + timedelta(days=lifetime),
            )

    def header_lines(self) -> List[str]:
        """All live cookies rendered as ``Set-Cookie`` lines."""
        now = self._clock()
        return [c.to_header() for c in self._cookies.values() if not c.is_expired(now)]

    def clear(self) -> None:
        self._cookies.clear()

    async def _save(self, cookie: StoredCookie) -> None:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(CookieRecord).where(CookieRecord.name == cookie.name)
                )
                record = result.scalar_one_or_none()
                if record is None:
                    record = CookieRecord(name=cookie.name)
                    db.add(record)
                record.value = cookie.value
                record.expires_at = cookie.expires_at
                record.path = cookie.path
                record.same_site = cookie.same_site
                await db.commit()
        except SQLAlchemyError as e:
            raise StorageUnavailableError(self.name, str(e)) from e

    async def _delete(self, condition) -> None:
        try:
            async with self._session_factory() as db:
                await db.execute(delete(CookieRecord).where(condition))
                await db.commit()
        except SQLAlchemyError as e:
            raise StorageUnavailableError(self.name, str(e)) from e


class SqlStore(KeyValueStore):
    """Durable store persisted in the ``device_storage`` table."""

    name = "durable"

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get(self, key: str) -> Optional[str]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(StoredValue.value).where(StoredValue.key == key)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageUnavailableError(self.name, str(e)) from e

    async def set(self, key: str, value: str) -> None:
        try:
            async with self._session_factory() as db:
                await self._upsert(db, key, value)
                await db.commit()
        except SQLAlchemyError as e:
            raise StorageUnavailableError(self.name, str(e)) from e

    async def remove(self, key: str) -> None:
        try:
            async with self._session_factory() as db:
                await db.execute(delete(StoredValue).where(StoredValue.key == key))
                await db.commit()
        except SQLAlchemyError as e:
            raise StorageUnavailableError(self.name, str(e)) from e

    async def _upsert(self, db: AsyncSession, key: str, value: str) -> None:
        result = await db.execute(select(StoredValue).where(StoredValue.key == key))
        entry = result.scalar_one_or_none()
        if entry:
            entry.value = value
        else:
            db.add(StoredValue(key=key, value=value))
