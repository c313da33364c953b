from __future__ import annotations

import hmac
import threading
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import UnknownHashError
from sqlalchemy import select
from sqlalchemy.orm import Session

from staffhub.db import get_db
from staffhub.errors import ApiError
from staffhub.models import AuthSession, AuthUser
from staffhub.settings import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)

API_KEY_HEADER = "apikey"


@dataclass(frozen=True, slots=True)
class CurrentUser:
    user: AuthUser
    session: AuthSession
    claims: dict[str, Any]

    @property
    def id(self) -> uuid.UUID:
        return self.user.id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SignInThrottle:
    """Sliding-window count of failed sign-ins per client address."""

    def __init__(self, *, limit: int = 10, window: timedelta = timedelta(minutes=10)):
        self.limit = limit
        self.window = window
        self._lock = threading.Lock()
        self._failures: dict[str, deque[datetime]] = defaultdict(deque)

    def _prune(self, ip: str, now: datetime) -> deque[datetime]:
        stamps = self._failures[ip]
        while stamps and now - stamps[0] > self.window:
            stamps.popleft()
        if not stamps:
            del self._failures[ip]
        return stamps

    def check(self, ip: str) -> None:
        with self._lock:
            if len(self._prune(ip, _utcnow())) >= self.limit:
                raise ApiError(
                    status_code=429,
                    code="TOO_MANY_ATTEMPTS",
                    message="Too many failed sign-in attempts. Please try again later.",
                )

    def record_failure(self, ip: str) -> None:
        now = _utcnow()
        with self._lock:
            self._prune(ip, now)
            self._failures[ip].append(now)

    def record_success(self, ip: str) -> None:
        with self._lock:
            self._failures.pop(ip, None)

    def reset(self) -> None:
        with self._lock:
            self._failures.clear()


sign_in_throttle = SignInThrottle()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError, UnknownHashError):
        # Unrecognised or corrupt hashes count as a mismatch.
        return False


def create_access_token(*, user_id: uuid.UUID, email: str) -> tuple[str, int, dict[str, Any]]:
    settings = get_settings()
    now = _utcnow()
    expires_in = settings.access_token_minutes * 60
    claims = {
        "sub": str(user_id),
        "email": email,
        "role": "authenticated",
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        "jti": str(uuid.uuid4()),
        "typ": "access",
    }
    token = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
    return token, expires_in, claims


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True, "require_jti": True},
        )
    except JWTError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token is invalid.") from exc

    if payload.get("typ") != "access":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token type is invalid.")

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token subject is invalid.")
    return payload


def resolve_session(db: Session, token: str) -> CurrentUser:
    claims = decode_token(token)
    session_row = db.scalar(select(AuthSession).where(AuthSession.jti == str(claims.get("jti"))))
    if session_row is None or str(session_row.user_id) != claims["sub"]:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Session not found.")
    if session_row.revoked_at is not None:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Session has been signed out.")
    if _as_utc(session_row.expires_at) <= _utcnow():
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Session has expired.")

    user = db.get(AuthUser, session_row.user_id)
    if user is None:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="User not found.")
    return CurrentUser(user=user, session=session_row, claims=claims)


def require_api_key(request: Request) -> None:
    expected = (get_settings().public_api_key or "").strip()
    provided = (request.headers.get(API_KEY_HEADER) or "").strip()
    if not expected or not provided or not hmac.compare_digest(provided, expected):
        raise ApiError(status_code=401, code="INVALID_API_KEY", message="Invalid API key.")


def require_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> CurrentUser:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Missing bearer token.")

    current = resolve_session(db, credentials.credentials)
    request.state.actor = "user"
    request.state.actor_id = str(current.user.id)
    return current
