from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.core import config


def build_engine(database_url: str, timeout_seconds: float = config.STORAGE_TIMEOUT_SECONDS):
    """
    Create the quota-store engine with a bounded round trip.

    Postgres gets a connect timeout and a server-side statement timeout so a
    stalled database surfaces as an error instead of hanging the request.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": timeout_seconds},
        )

    connect_args = {}
    if database_url.startswith("postgresql"):
        connect_args = {
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
        }
    return create_engine(
        database_url,
        connect_args=connect_args,
        pool_pre_ping=True,
        pool_timeout=timeout_seconds,
    )


engine = build_engine(config.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
