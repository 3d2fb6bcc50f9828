"""
Short link intake — /{code}

Captures (when analytics capture is on):
  - Client IP (X-Forwarded-For / X-Real-IP)
  - User-Agent and Referer
  - Cloudflare geo headers (CF-IPCountry, CF-IPCity)

Responses:
  302 → destination
  410 → link existed but its visit quota or lifetime is used up (now deleted)
  404 → never existed, or already evicted

This router is a catch-all and must be included last.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import RedirectResponse

from shortlinks.api.deps import get_resolver
from shortlinks.core.resolver import Gone, Redirect, RedirectResolver, RequestMetadata

import structlog

logger = structlog.get_logger()
router = APIRouter()


def _get_real_ip(request: Request) -> str | None:
    """Extract client IP from proxy headers or the socket."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # First IP in chain is the client
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def _request_metadata(request: Request) -> RequestMetadata:
    return RequestMetadata(
        ip=_get_real_ip(request),
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
        geo_country=request.headers.get("cf-ipcountry"),
        geo_city=request.headers.get("cf-ipcity"),
    )


@router.get("/{code}")
async def follow_link(
    code: str,
    request: Request,
    resolver: RedirectResolver = Depends(get_resolver),
):
    outcome = await resolver.resolve(code, _request_metadata(request))

    if isinstance(outcome, Redirect):
        logger.info("link_followed", code=code)
        return RedirectResponse(url=outcome.destination, status_code=302)
    if isinstance(outcome, Gone):
        return Response(status_code=410)
    raise HTTPException(status_code=404, detail="Not found")
