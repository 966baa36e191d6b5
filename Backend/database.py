from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool

from config import DATABASE_URL, DB_STATEMENT_TIMEOUT_MS


def _connect_args(url: str) -> dict:
    if url.startswith("postgresql"):
        # Bound every query; a slow aggregate must not hang a request.
        return {"options": f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}"}
    if url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": DB_STATEMENT_TIMEOUT_MS / 1000}
    return {}


# NullPool: each request gets a fresh connection, no pool sharing across
# Gunicorn forked workers. Prevents SSL errors on Render.
engine = create_engine(
    DATABASE_URL,
    poolclass=NullPool,
    pool_pre_ping=True,
    connect_args=_connect_args(DATABASE_URL),
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
