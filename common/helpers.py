from datetime import datetime, timezone
from functools import wraps

import redis
from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from common.logger import get_logger

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RecordNotFound(Exception):
    """Raised by repositories when a lookup matches no row."""

    def __init__(self, entity: str, identifier):
        super().__init__(f"{entity} {identifier} not found")
        self.entity = entity
        self.identifier = identifier


def db_connection_handler(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)

        except HTTPException:
            raise
        except RecordNotFound as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except (SQLAlchemyError, redis.RedisError) as e:
            backend = "Database" if isinstance(e, SQLAlchemyError) else "Redis"
            logger.error("%s error: %s", backend, e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"{backend} operation failed: {e}",
            )

    return wrapper
