"""
Session tokens — opaque bearer credentials minted after a successful login.

Held in process memory only; a restart logs everybody out.  Expiry is
observed lazily in verify(), there is no background sweeper.
"""

import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class SessionToken:
    subject: str
    token: str
    expires_at: float  # unix seconds

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class SessionTokenStore:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._tokens: dict[str, SessionToken] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def issue(self, subject: str, ttl_seconds: int) -> str:
        """Mint a token for `subject` valid for `ttl_seconds`."""
        token = secrets.token_urlsafe(32)
        entry = SessionToken(subject=subject, token=token, expires_at=self._clock() + ttl_seconds)
        with self._lock:
            self._tokens[token] = entry
        logger.info("session_issued", subject=subject, ttl=ttl_seconds)
        return token

    def verify(self, token: str) -> str | None:
        """Return the token's subject, or None if unknown or expired."""
        with self._lock:
            entry = self._tokens.get(token)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._tokens[token]
                return None
            return entry.subject

    def revoke_all(self, subject: str) -> int:
        """Drop every token belonging to `subject`. Returns how many were removed."""
        with self._lock:
            doomed = [t for t, e in self._tokens.items() if e.subject == subject]
            for t in doomed:
                del self._tokens[t]
        logger.info("sessions_revoked", subject=subject, count=len(doomed))
        return len(doomed)
