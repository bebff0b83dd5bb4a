# pr_reviewers/database.py

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from pr_reviewers.core.settings import settings

def _connect_args(url: str) -> dict:
    # SQLite connections are handed between the request thread and rebalance workers
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.DATABASE_URL),
)

# One short-lived session per repository call, safe to use from worker threads
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)

def init_db() -> None:
    import pr_reviewers.models  # noqa: F401  registers every table on Base.metadata
    from pr_reviewers.models.base import Base
    Base.metadata.create_all(bind=engine)
