from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from common.auth_utils import get_current_user
from common.database import get_db
from common.helpers import db_connection_handler
from common.responses import success_response

from .crud import SqlStatisticsRepository

statistics = APIRouter(dependencies=[Depends(get_current_user)])


@statistics.get("/dashboard")
@db_connection_handler
def read_dashboard(db: Session = Depends(get_db)):
    """Event, ticket and validation counts. Manager only."""
    return success_response(SqlStatisticsRepository(db).get_count())
