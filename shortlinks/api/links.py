"""
Link management API — create, list, edit and delete short links.

Security:
  - Creating links requires a session when SL_REQUIRE_LOGIN is on
  - Listing, editing and deleting always require a session
  - Non-admins only see and touch their own links
"""

import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from shortlinks.api.deps import get_allocator, get_link_store
from shortlinks.config import get_settings
from shortlinks.core.allocator import CodeAllocator
from shortlinks.core.errors import CodeTaken, InvalidFormat, LinkNotFound, PoolExhausted
from shortlinks.core.links import LinkStore
from shortlinks.middleware.auth import AuthContext, enforce_owner, optional_auth, require_auth

import structlog

logger = structlog.get_logger()
router = APIRouter(tags=["links"])


class CreateLinkRequest(BaseModel):
    link: str
    requested_code: str | None = None
    max_visits: int | None = None
    expires_at: datetime.datetime | None = None


class CreateLinkResponse(BaseModel):
    code: str
    url: str


class UpdateLinkRequest(BaseModel):
    link: str


class LinkResponse(BaseModel):
    code: str
    link: str
    creator: str
    visits: int
    created: datetime.datetime
    max_visits: int | None
    expires: datetime.datetime | None

    model_config = {"from_attributes": True}


class LinkListResponse(BaseModel):
    links: list[LinkResponse]
    total: int
    page: int
    page_size: int


def _validate_destination_url(url: str):
    """Prevent javascript:/data: redirects — only allow http/https destinations."""
    if not url:
        raise HTTPException(status_code=400, detail="Missing destination link")
    if not url.startswith(("https://", "http://")) or not url.split("//", 1)[1]:
        raise HTTPException(status_code=400, detail="link must start with https:// or http://")


def _as_utc(ts: datetime.datetime) -> datetime.datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=datetime.timezone.utc)
    return ts.astimezone(datetime.timezone.utc)


@router.post("/", response_model=CreateLinkResponse, status_code=201)
async def create_link(
    req: CreateLinkRequest,
    auth: AuthContext | None = Depends(optional_auth),
    allocator: CodeAllocator = Depends(get_allocator),
):
    settings = get_settings()

    if settings.require_login and auth is None:
        raise HTTPException(status_code=401, detail="Unauthenticated")

    destination = req.link.strip()
    _validate_destination_url(destination)

    if req.max_visits is not None and req.max_visits < 1:
        raise HTTPException(status_code=400, detail="max_visits must be at least 1")

    expires_at = _as_utc(req.expires_at) if req.expires_at else None
    if expires_at and expires_at <= datetime.datetime.now(datetime.timezone.utc):
        raise HTTPException(status_code=400, detail="expires_at must be in the future")

    if req.requested_code:
        logger.info("code_requested", code=req.requested_code)

    try:
        link = await allocator.create_link(
            destination,
            creator=auth.subject if auth else "",
            requested_code=req.requested_code,
            max_visits=req.max_visits,
            expires_at=expires_at,
        )
    except InvalidFormat as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CodeTaken:
        raise HTTPException(status_code=409, detail="Requested path denied. Path exists.")
    except PoolExhausted:
        raise HTTPException(status_code=503, detail="No short codes left")

    return CreateLinkResponse(code=link.code, url=f"https://{settings.domain}/{link.code}")


@router.get("/links", response_model=LinkListResponse)
async def list_links(
    page: int = Query(0, ge=0),
    auth: AuthContext = Depends(require_auth),
    links: LinkStore = Depends(get_link_store),
):
    """List links — everything for admins, own links for everybody else."""
    page_size = get_settings().page_size

    if auth.is_admin:
        rows = await links.list_all(page, page_size)
        total = await links.count_all()
    else:
        rows = await links.list_for_owner(auth.subject, page, page_size)
        total = await links.count_for_owner(auth.subject)

    return LinkListResponse(
        links=[LinkResponse.model_validate(row) for row in rows],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.patch("/links/{code}", response_model=LinkResponse)
async def update_link(
    code: str,
    req: UpdateLinkRequest,
    auth: AuthContext = Depends(require_auth),
    links: LinkStore = Depends(get_link_store),
):
    link = await links.get(code)
    if not link:
        raise HTTPException(status_code=404, detail="Redirect not found")
    enforce_owner(auth, link)

    destination = req.link.strip()
    _validate_destination_url(destination)
    try:
        link = await links.update_destination(code, destination)
    except LinkNotFound:
        raise HTTPException(status_code=404, detail="Redirect not found")
    return LinkResponse.model_validate(link)


@router.delete("/links/{code}")
async def delete_link(
    code: str,
    auth: AuthContext = Depends(require_auth),
    links: LinkStore = Depends(get_link_store),
):
    link = await links.get(code)
    if not link:
        raise HTTPException(status_code=404, detail="Redirect not found")
    enforce_owner(auth, link)

    await links.delete(code)
    return {"status": "deleted", "code": code}
