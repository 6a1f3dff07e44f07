# backend/app/db/session.py

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings

# Postgres in deployment; DATABASE_URL_OVERRIDE may point at sqlite for dev.
# create_engine does not connect until first use.
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
)

# Shared by the correlation store and the analysis result store
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)
