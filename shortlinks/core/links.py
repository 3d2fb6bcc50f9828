"""
Link store — persisted link records and their analytics trail.

Every mutation is a single SQL statement so the database serialises
concurrent writers on its own; visits are counted with
`visits = visits + 1`, never read-modify-write.
"""

import datetime

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlinks.core.errors import DuplicateCode, LinkNotFound
from shortlinks.models.tables import AnalyticsEvent, Link

import structlog

logger = structlog.get_logger()


class LinkStore:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def reserve(
        self,
        code: str,
        destination: str,
        creator: str = "",
        max_visits: int | None = None,
        expires_at: datetime.datetime | None = None,
    ) -> Link:
        """Persist a new link under `code`. Raises DuplicateCode if it is live."""
        if expires_at is not None and expires_at.tzinfo is not None:
            # stored as naive UTC on SQLite
            expires_at = expires_at.astimezone(datetime.timezone.utc)
        link = Link(
            code=code,
            link=destination,
            creator=creator or "",
            visits=0,
            max_visits=max_visits,
            expires=expires_at,
        )
        async with self._session_maker() as session:
            session.add(link)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateCode(code) from e
        logger.info("link_created", code=code, creator=creator or None,
                    max_visits=max_visits, expires=expires_at.isoformat() if expires_at else None)
        return link

    async def get(self, code: str) -> Link | None:
        async with self._session_maker() as session:
            return await session.get(Link, code)

    async def record_visit(self, code: str, *, enforce_quota: bool = False) -> bool:
        """Count one visit.

        With enforce_quota the increment only applies while visits < max_visits
        and False is returned once the quota is used up.
        Raises LinkNotFound if the record does not exist.
        """
        stmt = (
            update(Link)
            .where(Link.code == code)
            .values(visits=Link.visits + 1)
            .execution_options(synchronize_session=False)
        )
        if enforce_quota:
            stmt = stmt.where(or_(Link.max_visits.is_(None), Link.visits < Link.max_visits))

        async with self._session_maker() as session:
            result = await session.execute(stmt)
            await session.commit()

        if result.rowcount:
            return True
        if await self.get(code) is None:
            raise LinkNotFound(code)
        return False

    async def delete(self, code: str) -> bool:
        async with self._session_maker() as session:
            result = await session.execute(
                delete(Link).where(Link.code == code).execution_options(synchronize_session=False)
            )
            await session.commit()
        deleted = bool(result.rowcount)
        if deleted:
            logger.info("link_deleted", code=code)
        return deleted

    async def update_destination(self, code: str, destination: str) -> Link:
        async with self._session_maker() as session:
            link = await session.get(Link, code)
            if link is None:
                raise LinkNotFound(code)
            link.link = destination
            await session.commit()
        logger.info("link_updated", code=code)
        return link

    async def list_for_owner(self, owner: str, page: int = 0, page_size: int = 5) -> list[Link]:
        """Links created by `owner`, newest first. `page` is zero-indexed."""
        return await self._page(select(Link).where(Link.creator == owner), page, page_size)

    async def list_all(self, page: int = 0, page_size: int = 5) -> list[Link]:
        return await self._page(select(Link), page, page_size)

    async def count_for_owner(self, owner: str) -> int:
        return await self._count(select(func.count()).select_from(Link).where(Link.creator == owner))

    async def count_all(self) -> int:
        return await self._count(select(func.count()).select_from(Link))

    async def append_analytics(self, event: AnalyticsEvent) -> bool:
        """Best-effort append. Failures are logged, never raised."""
        try:
            async with self._session_maker() as session:
                session.add(event)
                await session.commit()
        except SQLAlchemyError as e:
            logger.warning("analytics_write_failed", code=event.code, error=str(e))
            return False
        return True

    async def _page(self, stmt, page: int, page_size: int) -> list[Link]:
        stmt = (
            stmt.order_by(Link.created.desc(), Link.code)
            .limit(page_size)
            .offset(max(page, 0) * page_size)
        )
        async with self._session_maker() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def _count(self, stmt) -> int:
        async with self._session_maker() as session:
            result = await session.execute(stmt)
            return result.scalar_one()
