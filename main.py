from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from auth.routes import auth, auth_protected
from common.config import Settings, get_settings
from common.database import DatabaseConnection, RedisConnection, init_db
from common.logger import configure_logging, get_logger
from common.responses import register_exception_handlers
from common.tasks import CacheTaskQueue
from common.validation import RequestValidator
from event.routes import event
from stats.routes import statistics
from tickets.routes import ticket

logger = get_logger(__name__)

API_PREFIX = "/api"


def create_app(settings: Settings | None = None, bootstrap_db: bool = True) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if bootstrap_db:
            init_db(DatabaseConnection().engine)
        app.state.cache_queue = CacheTaskQueue(
            max_workers=settings.cache_workers,
            max_pending=settings.cache_queue_size,
            timeout=settings.cache_task_timeout,
        )
        yield
        app.state.cache_queue.shutdown()
        if bootstrap_db:
            DatabaseConnection().close()
            RedisConnection().close()

    app = FastAPI(title="Ticket Booking API", lifespan=lifespan)
    app.state.validator = RequestValidator()
    register_exception_handlers(app)

    app.include_router(auth, prefix=f"{API_PREFIX}/auth", tags=["auth"])
    app.include_router(auth_protected, prefix=f"{API_PREFIX}/auth", tags=["auth"])
    app.include_router(event, prefix=f"{API_PREFIX}/event", tags=["event"])
    app.include_router(ticket, prefix=f"{API_PREFIX}/ticket", tags=["ticket"])
    app.include_router(statistics, prefix=f"{API_PREFIX}/statistics", tags=["statistics"])
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host="localhost", port=8000, reload=True)
