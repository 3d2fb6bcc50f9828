"""
Code allocation — turns "give me a code" (or "give me THIS code") into a
reserved, collision-free short code.

Requested codes bypass the pool and are never removed from it, so a pool
draw can still land on a code someone asked for explicitly.  The link table
is the source of truth: every code is cross-checked against it, whichever
path it came from.
"""

import asyncio
import datetime
import re

from shortlinks.core.codes import CodePool
from shortlinks.core.errors import CodeTaken, DuplicateCode, InvalidFormat, PoolExhausted
from shortlinks.core.links import LinkStore
from shortlinks.models.tables import Link

import structlog

logger = structlog.get_logger()

# Paths served by the service itself; compared case-insensitively.
RESERVED_PATHS = frozenset({
    "login",
    "logout",
    "checklogin",
    "manage",
    "accounts",
    "links",
    "health",
    "docs",
    "redoc",
})

REQUESTED_CODE_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9]+$")


def is_reserved(code: str) -> bool:
    return code.lower() in RESERVED_PATHS


class CodeAllocator:
    def __init__(self, pool: CodePool, links: LinkStore):
        self._pool = pool
        self._links = links

    async def allocate(self, requested_code: str | None = None) -> str:
        """Resolve a code request to a code that is free right now."""
        if requested_code is not None:
            if not REQUESTED_CODE_RE.fullmatch(requested_code):
                raise InvalidFormat(
                    "Requested path denied. Either non alphanumeric characters "
                    "were used or the length was less than 2."
                )
            if is_reserved(requested_code) or await self._links.get(requested_code) is not None:
                raise CodeTaken(requested_code)
            return requested_code

        while True:
            code = await self._draw()
            if is_reserved(code) or await self._links.get(code) is not None:
                logger.info("pool_code_skipped", code=code)
                continue
            return code

    async def create_link(
        self,
        destination: str,
        creator: str = "",
        requested_code: str | None = None,
        max_visits: int | None = None,
        expires_at: datetime.datetime | None = None,
    ) -> Link:
        """Allocate a code and reserve it in one step.

        Either a link is stored, or no pool entry is consumed.
        """
        while True:
            code = await self.allocate(requested_code)
            try:
                return await self._links.reserve(code, destination, creator, max_visits, expires_at)
            except DuplicateCode:
                if requested_code is not None:
                    raise CodeTaken(requested_code) from None
                # Lost a race with an explicit request for the same code; that
                # code is live now, so the pool entry stays consumed.
                logger.info("pool_code_raced", code=code)
            except Exception:
                if requested_code is None:
                    await asyncio.to_thread(self._pool.put_back, self._pool.space.decode(code))
                    logger.warning("pool_code_returned", code=code)
                raise

    async def _draw(self) -> str:
        try:
            index = await asyncio.to_thread(self._pool.take)
        except PoolExhausted:
            logger.critical("pool_exhausted", path=str(self._pool.path))
            raise
        return self._pool.space.encode(index)
