from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy.orm import Session

from auth.constants import ValidRoles
from auth.schemas import User


class UserRepository(ABC):
    """Persistence operations for users."""

    @abstractmethod
    def get_by_id(self, user_id: int) -> Optional[User]:
        ...

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    def create(self, email: str, password_hash: str, role: str = ValidRoles.ATTENDEE) -> User:
        ...


class SqlUserRepository(UserRepository):
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def create(self, email: str, password_hash: str, role: str = ValidRoles.ATTENDEE) -> User:
        db_user = User(email=email, password_hash=password_hash, role=role)
        self.db.add(db_user)
        self.db.commit()
        self.db.refresh(db_user)
        return db_user
