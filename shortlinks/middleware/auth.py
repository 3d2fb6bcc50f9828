"""
Session authentication dependencies.

A request is authenticated by the session token minted at /login, sent
back either as the `token` cookie or as `Authorization: Bearer <token>`.

Rules:
  - Admins can see and manage every link
  - Everybody else only sees and manages links they created
  - Tokens are checked against the in-memory SessionTokenStore on every request
"""

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request

from shortlinks.core.sessions import SessionTokenStore
from shortlinks.core.users import UserStore
from shortlinks.models.tables import Link


@dataclass
class AuthContext:
    """Resolved authentication context for the current request."""
    subject: str
    is_admin: bool


def get_sessions(request: Request) -> SessionTokenStore:
    return request.app.state.sessions


def get_users(request: Request) -> UserStore:
    return request.app.state.users


def _extract_token(request: Request) -> str | None:
    token = request.cookies.get("token")
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[7:].strip() or None
    return None


async def optional_auth(
    request: Request,
    sessions: SessionTokenStore = Depends(get_sessions),
    users: UserStore = Depends(get_users),
) -> AuthContext | None:
    """Auth context if the request carries a live session, else None."""
    token = _extract_token(request)
    if not token:
        return None
    subject = sessions.verify(token)
    if subject is None:
        return None
    return AuthContext(subject=subject, is_admin=await users.is_admin(subject))


async def require_auth(auth: AuthContext | None = Depends(optional_auth)) -> AuthContext:
    if auth is None:
        raise HTTPException(
            status_code=401,
            detail="Unauthenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth


async def require_admin(auth: AuthContext = Depends(require_auth)) -> AuthContext:
    if not auth.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return auth


def enforce_owner(auth: AuthContext, link: Link):
    """Only the link's creator or an admin may touch it."""
    if not auth.is_admin and link.creator != auth.subject:
        raise HTTPException(status_code=403, detail="Unauthorized")
