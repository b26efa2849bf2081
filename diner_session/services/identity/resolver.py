"""Stable device identifier mirrored across three storage backends."""
import logging
import random
from typing import List, Optional, Tuple

from diner_session.core.config import settings
from diner_session.services.identity.storage import (
    CookieJarStore,
    KeyValueStore,
    StorageUnavailableError,
)

logger = logging.getLogger(__name__)

DEVICE_ID_KEY = "mv_device_id"
DEVICE_ID_TEMPLATE = "xxxxxxxx-xxxx-4xxx-yxxx-xxxxxxxxxxxx"


def generate_device_id(rng: Optional[random.Random] = None) -> str:
    """Generate a UUID-v4-shaped identifier.

    ``x`` positions become random hex digits, ``y`` positions a hex digit
    from ``8``, ``9``, ``a`` or ``b``.
    """
    rng = rng or random.Random()
    chars = []
    for c in DEVICE_ID_TEMPLATE:
        if c == "x":
            chars.append(format(rng.randrange(16), "x"))
        elif c == "y":
            chars.append(format((rng.randrange(16) & 0x3) | 0x8, "x"))
        else:
            chars.append(c)
    return "".join(chars)


class DeviceIdentityResolver:
    """Resolves the device id from cookie, durable and session storage.

    Lookup priority is cookie, then durable, then session storage. The first
    value found wins and is backfilled into every backend that is missing it.
    A backend holding a *different* value is left alone; the conflict is only
    logged.
    """

    def __init__(
        self,
        cookies: Optional[CookieJarStore],
        durable: Optional[KeyValueStore],
        session: Optional[KeyValueStore],
        rng: Optional[random.Random] = None,
        cookie_days: Optional[int] = None,
    ):
        self.cookies = cookies
        self.durable = durable
        self.session = session
        self._rng = rng
        self.cookie_days = settings.device_cookie_days if cookie_days is None else cookie_days

    @property
    def available(self) -> bool:
        return None not in (self.cookies, self.durable, self.session)

    async def get_device_id(self) -> str:
        """Return the device id, creating and mirroring it on first use.

        A backend that cannot be read is skipped for both lookup and
        backfill. Returns an empty string when a backend is not configured
        or none of them can be read.
        """
        if not self.available:
            return ""

        found = await self._read_all()
        if not found:
            logger.debug("[DEVICE ID] Storage unavailable, no device id")
            return ""

        existing = next((value for _, value in found if value), None)

        if existing:
            for store, value in found:
                if not value:
                    await self._write(store, existing)
                elif value != existing:
                    logger.warning(
                        f"[DEVICE ID] {store.name} storage holds a different device id; "
                        f"keeping {existing[:8]}..."
                    )
            return existing

        device_id = generate_device_id(self._rng)
        logger.info(f"[DEVICE ID] Generated new device id {device_id[:8]}...")
        for store, _ in found:
            await self._write(store, device_id)
        return device_id

    async def _read_all(self) -> List[Tuple[KeyValueStore, Optional[str]]]:
        found = []
        for store in (self.cookies, self.durable, self.session):
            try:
                found.append((store, await store.get(DEVICE_ID_KEY)))
            except StorageUnavailableError as e:
                logger.warning(f"[DEVICE ID] Could not read device id from {store.name}: {e}")
        return found

    async def _write(self, store: KeyValueStore, value: str) -> None:
        try:
            if store is self.cookies:
                await self.cookies.set(DEVICE_ID_KEY, value, days=self.cookie_days)
            else:
                await store.set(DEVICE_ID_KEY, value)
        except StorageUnavailableError as e:
            logger.warning(f"[DEVICE ID] Could not write device id to {store.name}: {e}")
