# backend/app/db/init_db.py

from sqlalchemy.engine import Engine

from app.db.session import engine
from app.db.base_class import Base

# Import models so they are registered with Base.metadata
from app.models import analysis_result, user_correlation  # noqa: F401


def init_db(bind: Engine | None = None) -> None:
    """
    Create all tables (development only).
    In production, replace this with Alembic migrations.
    """
    Base.metadata.create_all(bind=bind or engine)
