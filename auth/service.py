import redis
from fastapi import HTTPException, status
from passlib.context import CryptContext

from auth.constants import ValidRoles
from auth.crud import UserRepository
from auth.models import AuthCredentials, AuthPayload, UserResponse
from auth.session import SessionStore
from common.auth_utils import create_access_token
from common.config import Settings
from common.logger import get_logger

logger = get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


class AuthService:
    def __init__(self, users: UserRepository, sessions: SessionStore, settings: Settings):
        self.users = users
        self.sessions = sessions
        self.settings = settings

    def _issue(self, user) -> AuthPayload:
        token = create_access_token({"id": user.id, "role": user.role}, self.settings)
        return AuthPayload(token=token, user=UserResponse.model_validate(user))

    def register(self, creds: AuthCredentials) -> AuthPayload:
        email = creds.email.lower()
        if self.users.get_by_email(email):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="user already exists"
            )
        user = self.users.create(email, get_password_hash(creds.password), ValidRoles.ATTENDEE)
        logger.info("Registered user %s", user.id)
        return self._issue(user)

    def login(self, creds: AuthCredentials) -> AuthPayload:
        user = self.users.get_by_email(creds.email.lower())
        if not user or not verify_password(creds.password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="invalid credentials"
            )
        return self._issue(user)

    def logout(self, user_id: int) -> None:
        try:
            self.sessions.delete(user_id)
        except redis.RedisError as e:
            logger.error("Redis operation failed: %s", e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Session management error",
            )
