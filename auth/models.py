from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, constr

from auth.constants import ValidRoles
from common.models import CamelModel


class AuthCredentials(BaseModel):
    email: EmailStr
    password: constr(min_length=1)


class UserResponse(CamelModel):
    id: int
    email: str
    role: str = ValidRoles.ATTENDEE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthPayload(BaseModel):
    token: str
    user: UserResponse
