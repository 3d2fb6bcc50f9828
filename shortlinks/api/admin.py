"""
Account administration — admins create further operator accounts.

The TOTP secret is returned ONCE, in the creation response.
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from shortlinks.core.errors import PasswordTooLong, UserExists
from shortlinks.core.users import UserStore
from shortlinks.middleware.auth import AuthContext, get_users, require_admin

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/accounts", tags=["admin"])


class CreateAccountRequest(BaseModel):
    name: str
    password: str
    admin: bool = False


class CreateAccountResponse(BaseModel):
    name: str
    admin: bool
    secret: str
    provisioning_uri: str


@router.post("", response_model=CreateAccountResponse, status_code=201)
async def create_account(
    body: CreateAccountRequest,
    auth: AuthContext = Depends(require_admin),
    users: UserStore = Depends(get_users),
):
    name = body.name.strip()
    if not name or not body.password:
        raise HTTPException(status_code=400, detail="Missing name or password")

    try:
        secret = await users.create_user(name, body.password, admin=body.admin)
    except PasswordTooLong:
        raise HTTPException(status_code=400, detail="Password must be at most 72 bytes")
    except UserExists:
        raise HTTPException(status_code=409, detail="User already exists")

    logger.info("account_created", name=name, admin=body.admin, by=auth.subject)

    return CreateAccountResponse(
        name=name,
        admin=body.admin,
        secret=secret,
        provisioning_uri=users.provisioning_uri(name, secret),
    )
