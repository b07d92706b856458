"""
In-process bearer tokens with role-based permissions.

Tokens live in memory only, so they do not survive a restart and are not
shared between instances.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from agency.errors import AuthError
from shared.types import UserRole

logger = logging.getLogger(__name__)

REFRESH_TOKEN_LIFETIME_SECONDS = 24 * 60 * 60

ROLE_PERMISSIONS = {
    UserRole.ADMIN: ("read", "write", "sync", "admin"),
    UserRole.LEADER: ("read", "write"),
    UserRole.STREAMER: ("read",),
}


def permissions_for_role(role: str) -> list[str]:
    try:
        return list(ROLE_PERMISSIONS[UserRole(role)])
    except ValueError:
        return []


@dataclass
class TokenGrant:
    token: str
    refresh_token: str
    expires_at: float
    permissions: list[str]


@dataclass
class TokenValidation:
    valid: bool
    error: Optional[str] = None
    action: Optional[str] = None
    needs_refresh: bool = False
    user: Optional[dict] = None
    permissions: list[str] = field(default_factory=list)


@dataclass
class _Session:
    user: dict
    permissions: list[str]
    expires_at: float


@dataclass
class _Refresh:
    token: str
    expires_at: float


class AuthManager:
    def __init__(
        self,
        session_timeout: float = 30 * 60,
        refresh_threshold: float = 5 * 60,
        clock: Callable[[], float] = time.time,
    ):
        self.session_timeout = session_timeout
        self.refresh_threshold = refresh_threshold
        self._clock = clock
        self._sessions: dict[str, _Session] = {}
        self._refresh_tokens: dict[str, _Refresh] = {}
        self._lock = threading.Lock()

    def create_token(self, user: dict, permissions: Iterable[str]) -> TokenGrant:
        now = self._clock()
        token = secrets.token_urlsafe(32)
        refresh_token = secrets.token_urlsafe(32)
        session = _Session(
            user=dict(user),
            permissions=list(permissions),
            expires_at=now + self.session_timeout,
        )
        with self._lock:
            self._sessions[token] = session
            self._refresh_tokens[refresh_token] = _Refresh(
                token=token, expires_at=now + REFRESH_TOKEN_LIFETIME_SECONDS
            )
        logger.info("Issued token for %s", user.get("email") or user.get("id"))
        return TokenGrant(
            token=token,
            refresh_token=refresh_token,
            expires_at=session.expires_at,
            permissions=list(session.permissions),
        )

    def validate_token(
        self, token: Optional[str], required: Iterable[str] = ()
    ) -> TokenValidation:
        if not token:
            return TokenValidation(
                valid=False, error="Token not provided", action="LOGIN_REQUIRED"
            )
        now = self._clock()
        with self._lock:
            session = self._sessions.get(token)
            if session is not None and now > session.expires_at:
                del self._sessions[token]
                return TokenValidation(
                    valid=False, error="Token expired", action="REFRESH_TOKEN"
                )
        if session is None:
            return TokenValidation(
                valid=False, error="Invalid or expired token", action="LOGIN_REQUIRED"
            )

        missing = [p for p in required if p not in session.permissions]
        if missing:
            return TokenValidation(
                valid=False,
                error=f"Missing permissions: {', '.join(missing)}",
                action="PERMISSION_DENIED",
                user=session.user,
                permissions=list(session.permissions),
            )
        return TokenValidation(
            valid=True,
            needs_refresh=now > session.expires_at - self.refresh_threshold,
            user=session.user,
            permissions=list(session.permissions),
        )

    def require(self, token: Optional[str], required: Iterable[str] = ()) -> TokenValidation:
        """Like `validate_token`, but raises `AuthError` when invalid."""
        validation = self.validate_token(token, required)
        if not validation.valid:
            status_code = 403 if validation.action == "PERMISSION_DENIED" else 401
            raise AuthError(validation.error, action=validation.action, status_code=status_code)
        return validation

    def refresh(self, refresh_token: str) -> TokenGrant:
        now = self._clock()
        with self._lock:
            entry = self._refresh_tokens.pop(refresh_token, None)
            if entry is None:
                raise AuthError("Invalid refresh token")
            if now > entry.expires_at:
                raise AuthError("Refresh token expired")
            session = self._sessions.pop(entry.token, None)
        if session is None:
            raise AuthError("Original token not found")
        return self.create_token(session.user, session.permissions)

    def revoke(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)
            for refresh_token, entry in list(self._refresh_tokens.items()):
                if entry.token == token:
                    del self._refresh_tokens[refresh_token]

    def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [t for t, s in self._sessions.items() if now > s.expires_at]
            for token in expired:
                del self._sessions[token]
            expired_refresh = [
                t for t, e in self._refresh_tokens.items() if now > e.expires_at
            ]
            for token in expired_refresh:
                del self._refresh_tokens[token]
        cleaned = len(expired) + len(expired_refresh)
        logger.info("Removed %d expired tokens", cleaned)
        return cleaned

    def stats(self) -> dict:
        now = self._clock()
        with self._lock:
            active = sum(1 for s in self._sessions.values() if now <= s.expires_at)
            return {
                "active_tokens": active,
                "total_tokens": len(self._sessions),
                "refresh_tokens": len(self._refresh_tokens),
            }
