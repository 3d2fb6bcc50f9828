"""
Redirect resolution — /{code}

Flow:
  1. Look up link                        → NotFound if absent
  2. Quota used up or expiry passed      → delete, Gone
  3. Count the visit (quota-guarded)     → Gone if a concurrent visit took the last slot
  4. Append analytics (best-effort, per capture flags)
  5. Redirect to the destination

Eviction only ever happens here, on a visit.  An expired link nobody visits
keeps its code until somebody does.
"""

import datetime
from dataclasses import dataclass
from typing import Callable, Union

from shortlinks.config import Settings
from shortlinks.core.errors import LinkNotFound
from shortlinks.core.links import LinkStore
from shortlinks.models.tables import AnalyticsEvent, Link

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class Redirect:
    destination: str


@dataclass(frozen=True)
class Gone:
    code: str


@dataclass(frozen=True)
class NotFound:
    code: str


Outcome = Union[Redirect, Gone, NotFound]


@dataclass(frozen=True)
class RequestMetadata:
    ip: str | None = None
    user_agent: str | None = None
    referer: str | None = None
    geo_country: str | None = None
    geo_city: str | None = None


@dataclass(frozen=True)
class AnalyticsCapture:
    enabled: bool = False
    ip: bool = True
    user_agent: bool = True
    referer: bool = True
    geo_country: bool = True
    geo_city: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "AnalyticsCapture":
        return cls(
            enabled=settings.analytics_enabled,
            ip=settings.analytics_ip,
            user_agent=settings.analytics_useragent,
            referer=settings.analytics_referer,
            geo_country=settings.analytics_country,
            geo_city=settings.analytics_city,
        )


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _as_utc(ts: datetime.datetime) -> datetime.datetime:
    # SQLite hands timezone-aware columns back naive; they were stored as UTC.
    if ts.tzinfo is None:
        return ts.replace(tzinfo=datetime.timezone.utc)
    return ts


def is_exhausted(link: Link, now: datetime.datetime) -> bool:
    """True once the link's visit quota or lifetime is used up."""
    if link.max_visits is not None and link.visits >= link.max_visits:
        return True
    if link.expires is not None and now >= _as_utc(link.expires):
        return True
    return False


class RedirectResolver:
    def __init__(
        self,
        links: LinkStore,
        capture: AnalyticsCapture | None = None,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ):
        self._links = links
        self._capture = capture or AnalyticsCapture()
        self._clock = clock

    async def resolve(self, code: str, metadata: RequestMetadata | None = None) -> Outcome:
        link = await self._links.get(code)
        if link is None:
            return NotFound(code)

        if is_exhausted(link, self._clock()):
            return await self._evict(link)

        try:
            counted = await self._links.record_visit(code, enforce_quota=True)
        except LinkNotFound:
            # deleted between lookup and increment
            return NotFound(code)
        if not counted:
            return await self._evict(link)

        if self._capture.enabled:
            await self._links.append_analytics(self._event(code, metadata or RequestMetadata()))

        return Redirect(link.link)

    async def _evict(self, link: Link) -> Gone:
        await self._links.delete(link.code)
        logger.info("link_evicted", code=link.code, visits=link.visits,
                    max_visits=link.max_visits)
        return Gone(link.code)

    def _event(self, code: str, meta: RequestMetadata) -> AnalyticsEvent:
        capture = self._capture
        return AnalyticsEvent(
            code=code,
            timestamp=self._clock(),
            ip=(meta.ip or "unknown") if capture.ip else "",
            useragent=(meta.user_agent or "unknown") if capture.user_agent else None,
            referer=(meta.referer or "unknown") if capture.referer else None,
            geo_country=(meta.geo_country or "unknown") if capture.geo_country else None,
            geo_city=(meta.geo_city or "unknown") if capture.geo_city else None,
        )
