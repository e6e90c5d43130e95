from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import redis
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from auth.constants import ValidRoles
from auth.crud import SqlUserRepository, UserRepository
from auth.session import SessionStore
from common.config import Settings, get_settings
from common.database import get_db, get_redis_connection
from common.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    id: int
    role: str
    token: str

    @property
    def is_manager(self) -> bool:
        return self.role == ValidRoles.MANAGER


def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta
        if expires_delta
        else timedelta(hours=settings.access_token_expire_hours)
    )
    to_encode.update({"exp": expire, "iat": now})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> dict:
    return jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.jwt_algorithm],
        options={"require": ["exp"]},
    )


def unauthorized(detail: str = "Unauthorized") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def parse_bearer(authorization: Optional[str]) -> str:
    if not authorization:
        logger.warning("Empty authorization header")
        raise unauthorized()
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        logger.warning("Malformed authorization header")
        raise unauthorized()
    return parts[1]


class AuthGate:
    """Resolves a bearer token to a user and enforces the manager-only prefixes.

    The session cache is consulted first; on a miss the user is loaded from
    the database and the session is written back. Session cache failures
    never reject a request.
    """

    def __init__(self, settings: Settings, sessions: SessionStore, users: UserRepository):
        self.settings = settings
        self.sessions = sessions
        self.users = users

    def authenticate(self, authorization: Optional[str], path: str) -> CurrentUser:
        token = parse_bearer(authorization)

        try:
            payload = decode_access_token(token, self.settings)
        except jwt.ExpiredSignatureError:
            logger.warning("Expired token presented")
            raise unauthorized()
        except jwt.InvalidTokenError as e:
            logger.warning("Invalid token: %s", e)
            raise unauthorized()

        user_id = payload.get("id")
        role = payload.get("role")
        if not isinstance(user_id, int) or not isinstance(role, str):
            logger.warning("Token is missing id or role claims")
            raise unauthorized()

        session = self._cached_session(user_id)
        if session and session.get("token") == token:
            user = CurrentUser(id=user_id, role=session.get("role") or role, token=token)
            return self._authorize(user, path)

        db_user = self.users.get_by_id(user_id)
        if db_user is None:
            logger.warning("User %s not found in the db", user_id)
            raise unauthorized()

        try:
            self.sessions.set(user_id, token, db_user.role)
        except redis.RedisError as e:
            logger.warning("Failed to set user session in redis: %s", e)

        return self._authorize(CurrentUser(id=user_id, role=db_user.role, token=token), path)

    def _cached_session(self, user_id: int) -> dict:
        try:
            return self.sessions.get(user_id)
        except redis.RedisError as e:
            logger.warning("Failed to read user session from redis: %s", e)
            return {}

    def is_privileged(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.settings.privileged_prefixes)

    def _authorize(self, user: CurrentUser, path: str) -> CurrentUser:
        if self.is_privileged(path) and not user.is_manager:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Manager role required",
            )
        return user


def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis_connection),
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    gate = AuthGate(settings, SessionStore(redis_client), SqlUserRepository(db))
    user = gate.authenticate(authorization, request.url.path)
    request.state.user = user
    return user
