# Export entry for scripts / ad-hoc table creation

from .session import engine, SessionLocal, get_db, dispose_engine, session_scope
from app.db.model import *  # load every model into Base.metadata
from .base import Base


# development only; production uses Alembic migrations
"""
    Create tables on an empty database:
        python -c "from app.db import create_all; create_all()"
    In production run `alembic upgrade head` instead.
"""
def create_all() -> None:
    Base.metadata.create_all(bind=engine)
