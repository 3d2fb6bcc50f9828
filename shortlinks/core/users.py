"""
Operator accounts — password + TOTP.

Passwords are stored as bcrypt hashes.  Each user gets a base32 TOTP
secret; the provisioning URI is handed out once, at creation time.

bcrypt only looks at the first 72 bytes and refuses anything longer, so
longer passwords are rejected on creation and never match on login.
Hashing runs in a worker thread to keep the event loop free.
"""

import asyncio

import bcrypt
import pyotp
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlinks.core.errors import PasswordTooLong, UserExists
from shortlinks.models.tables import User

import structlog

logger = structlog.get_logger()

MAX_PASSWORD_BYTES = 72


def _hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def _password_matches(password: str, password_hash: str) -> bool:
    secret = password.encode()
    if len(secret) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(secret, password_hash.encode())


class UserStore:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession], issuer: str = "shortlinks"):
        self._session_maker = session_maker
        self.issuer = issuer

    def provisioning_uri(self, name: str, secret: str) -> str:
        """otpauth:// URI for authenticator apps."""
        return pyotp.TOTP(secret).provisioning_uri(name=name, issuer_name=self.issuer)

    async def bootstrap_admin(self, name: str, password: str) -> str | None:
        """Create the first admin when there are no users yet.

        Returns the admin's provisioning URI, or None if users already exist.
        """
        async with self._session_maker() as session:
            result = await session.execute(select(User.name).limit(1))
            if result.first() is not None:
                logger.info("admin_bootstrap_skipped", reason="users_exist")
                return None
        secret = await self.create_user(name, password, admin=True)
        return self.provisioning_uri(name, secret)

    async def create_user(self, name: str, password: str, admin: bool = False) -> str:
        """Create a user and return their TOTP secret.

        Raises PasswordTooLong or UserExists.
        """
        if len(password.encode()) > MAX_PASSWORD_BYTES:
            raise PasswordTooLong(name)
        password_hash = await asyncio.to_thread(_hash_password, password)
        secret = pyotp.random_base32()
        user = User(name=name, password_hash=password_hash, secret=secret, admin=admin)
        async with self._session_maker() as session:
            session.add(user)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise UserExists(name) from e
        logger.info("user_created", name=name, admin=admin)
        return secret

    async def get(self, name: str) -> User | None:
        async with self._session_maker() as session:
            return await session.get(User, name)

    async def check_password(self, name: str, password: str) -> bool:
        user = await self.get(name)
        if user is None:
            return False
        return await asyncio.to_thread(_password_matches, password, user.password_hash)

    async def verify_login(self, name: str, password: str, otp: str) -> bool:
        """Password and current TOTP code must both match."""
        if not await self.check_password(name, password):
            return False
        user = await self.get(name)
        return user is not None and pyotp.TOTP(user.secret).verify(otp, valid_window=1)

    async def is_admin(self, name: str) -> bool:
        user = await self.get(name)
        return bool(user and user.admin)
