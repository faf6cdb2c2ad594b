import asyncio
import logging
from typing import Optional

from .client import PackageManagerClient

logger = logging.getLogger(__name__)


class LazyClient:
    """
    shares one package manager client between services and loads it on first use.

    concurrent callers that arrive before the first load has finished wait on
    the same lock, so `load()` runs once. a failed load is not remembered and
    the next caller tries again, also from a later event loop.
    """

    def __init__(self, client: PackageManagerClient):
        self.client = client
        self._loaded = False
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def get(self) -> PackageManagerClient:
        if self._loaded:
            return self.client

        # a lock only works on the loop it was first used on, so keep one per loop
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop

        async with self._lock:
            if not self._loaded:
                logger.debug("loading %s", type(self.client).__name__)
                await self.client.load()
                self._loaded = True
        return self.client
