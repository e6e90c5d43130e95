import redis
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from common.config import get_settings
from common.logger import get_logger

logger = get_logger(__name__)

Base = declarative_base()

SessionLocal = sessionmaker(autocommit=False, autoflush=False)


def create_db_engine(database_url: str, timeout: float = 5.0) -> Engine:
    """Build the engine, bounding connects and statements for PostgreSQL."""
    connect_args = {}
    if database_url.startswith("postgresql"):
        connect_args = {
            "connect_timeout": int(timeout),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)


def init_db(engine: Engine) -> None:
    """Create the users, events and tickets tables if they are missing."""
    # Table modules register themselves on Base.metadata when imported.
    from auth import schemas as _auth_schemas  # noqa: F401
    from event import schemas as _event_schemas  # noqa: F401
    from tickets import schemas as _ticket_schemas  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")


class DatabaseConnection:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            settings = get_settings()
            instance = super(DatabaseConnection, cls).__new__(cls)
            instance.engine = create_db_engine(
                settings.database_url, settings.request_timeout
            )
            SessionLocal.configure(bind=instance.engine)
            cls._instance = instance
            logger.info("Database engine created")
        return cls._instance

    def close(self):
        """Dispose of the pooled connections."""
        self.engine.dispose()
        logger.info("Database connections closed")


def get_db():
    """Provide a request-scoped SQLAlchemy session to FastAPI routes."""
    DatabaseConnection()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class RedisConnection:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            settings = get_settings()
            instance = super(RedisConnection, cls).__new__(cls)
            instance.connection = redis.StrictRedis(
                host=settings.redis_host,
                port=settings.redis_port,
                password=settings.redis_password,
                db=settings.redis_db,
                decode_responses=True,
                socket_timeout=settings.request_timeout,
                socket_connect_timeout=settings.request_timeout,
                retry_on_timeout=True,
            )
            cls._instance = instance
            logger.info(
                "Redis client created for %s:%s", settings.redis_host, settings.redis_port
            )
        return cls._instance

    def close(self):
        try:
            self.connection.close()
            logger.info("Redis connection closed")
        except redis.ConnectionError as e:
            logger.error("Error closing Redis connection: %s", e)


def get_redis_connection() -> redis.Redis:
    """Provide the shared Redis client."""
    return RedisConnection().connection
