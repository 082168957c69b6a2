"""Initialize database tables."""
import logging

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

from family_tasks.models.notification import Notification  # noqa: F401
from family_tasks.models.task import Task  # noqa: F401
from family_tasks.models.user import User  # noqa: F401

logger = logging.getLogger(__name__)


def init_db(engine: Engine) -> None:
    """Create all tables in the database."""
    SQLModel.metadata.create_all(engine)
    logger.info("Database tables ready")
