"""
Login / logout.

Two-step login for the admin UI:
  1. POST /checklogin  — password only, lets the form move on to the OTP prompt
  2. POST /login       — password + TOTP code, mints a session token

The token comes back in the body and as an HttpOnly cookie, alongside a
`username` cookie for the UI.  POST /logout revokes every session the
caller's user holds.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from shortlinks.config import get_settings
from shortlinks.core.sessions import SessionTokenStore
from shortlinks.core.users import UserStore
from shortlinks.middleware.auth import AuthContext, get_sessions, get_users, require_auth

import structlog

logger = structlog.get_logger()
router = APIRouter(tags=["auth"])


class CheckPasswordRequest(BaseModel):
    username: str
    password: str


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""
    otp: str = ""


class LoginResponse(BaseModel):
    token: str
    expires_in: int


@router.post("/checklogin")
async def check_login(
    body: CheckPasswordRequest,
    users: UserStore = Depends(get_users),
):
    ok = await users.check_password(body.username, body.password)
    return JSONResponse(content=ok, status_code=200 if ok else 401)


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    users: UserStore = Depends(get_users),
    sessions: SessionTokenStore = Depends(get_sessions),
):
    settings = get_settings()

    if not body.username or not body.password or not body.otp:
        raise HTTPException(status_code=400, detail="Missing username, password, or OTP")

    if not await users.verify_login(body.username, body.password, body.otp):
        logger.warning("login_failed", username=body.username)
        raise HTTPException(status_code=401, detail="Invalid username, password, or OTP")

    token = sessions.issue(body.username, settings.session_lifetime)
    logger.info("login_succeeded", username=body.username)

    response = JSONResponse(
        content=LoginResponse(token=token, expires_in=settings.session_lifetime).model_dump(),
    )
    for key, value in (("token", token), ("username", body.username)):
        response.set_cookie(
            key=key,
            value=value,
            max_age=settings.session_lifetime,
            path="/",
            samesite="strict",
            secure=not settings.debug,
            httponly=True,
        )
    return response


@router.post("/logout")
async def logout(
    auth: AuthContext = Depends(require_auth),
    sessions: SessionTokenStore = Depends(get_sessions),
):
    revoked = sessions.revoke_all(auth.subject)
    response = JSONResponse(content={"revoked": revoked})
    response.delete_cookie("token", path="/")
    response.delete_cookie("username", path="/")
    return response
