"""
Database engine, session management, and base model.

Every model inherits from Base. Every request gets a session
from get_db(), and that session's transaction is the boundary
for one operation: services flush, endpoints commit or roll back.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from opsdesk.config import get_settings

settings = get_settings()


def _connect_args(database_url: str) -> dict:
    # The statement timeout is how a caller's deadline reaches the
    # database: a statement running past it is cancelled and the
    # request's transaction rolls back.
    if database_url.startswith("postgresql") and settings.DB_STATEMENT_TIMEOUT_MS:
        return {"options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"}
    return {}


# --- Engine ---
# pool_pre_ping=True tests connections before using them,
# which handles cases where the database restarted or a
# connection went stale.
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.DATABASE_URL),
)

# --- Session Factory ---
# autocommit=False: the endpoint decides when a change is saved,
# so an association rewrite and its audit record land together
# or not at all.
# autoflush=False: SQL is only sent on explicit flush or commit.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


# --- Dependency for FastAPI ---
def get_db():
    """
    Provide a database session for a single request.

    The try/finally pattern ensures the session is always
    closed, preventing connection leaks. Closing a session
    with an open transaction rolls it back.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
