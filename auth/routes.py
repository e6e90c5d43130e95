import redis
from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from auth.crud import SqlUserRepository
from auth.models import AuthCredentials
from auth.service import AuthService
from auth.session import SessionStore
from common.auth_utils import CurrentUser, get_current_user
from common.config import Settings, get_settings
from common.database import get_db, get_redis_connection
from common.helpers import db_connection_handler
from common.responses import success_response
from common.validation import RequestValidator, get_validator

auth = APIRouter()
auth_protected = APIRouter(dependencies=[Depends(get_current_user)])


def get_auth_service(
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis_connection),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(SqlUserRepository(db), SessionStore(redis_client), settings)


@auth.post("/login")
@db_connection_handler
def login_user(
    payload: dict = Body(...),
    validator: RequestValidator = Depends(get_validator),
    service: AuthService = Depends(get_auth_service),
):
    creds = validator.parse(AuthCredentials, payload)
    result = service.login(creds)
    return success_response(result, "Successfully logged in")


@auth.post("/register")
@db_connection_handler
def register_user(
    payload: dict = Body(...),
    validator: RequestValidator = Depends(get_validator),
    service: AuthService = Depends(get_auth_service),
):
    creds = validator.parse(
        AuthCredentials, payload, message="please provide a valid email and password"
    )
    result = service.register(creds)
    return success_response(result, "Successfully registered", status.HTTP_201_CREATED)


@auth_protected.post("/logout")
def logout_user(
    user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    service.logout(user.id)
    return success_response(message="Successfully logged out")
