import logging

from app.core import config
from app.db.base import Base
from app.db.session import engine
import app.db.models  # noqa: F401  (registers models on Base.metadata)

logger = logging.getLogger(__name__)


def init_db():
    """Bring the quota table up to date: Alembic when RUN_MIGRATIONS=1, else create_all."""
    if config.RUN_MIGRATIONS:
        from app.db.migrate import run_migrations
        run_migrations()
        return

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured (create_all)")
