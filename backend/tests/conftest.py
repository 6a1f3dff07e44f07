import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.init_db import init_db
from app.services.store.analysis_result_service import AnalysisResultService
from app.services.store.correlation_store_service import SqlCorrelationStore


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return SqlCorrelationStore(session_factory)


@pytest.fixture
def result_service(session_factory):
    return AnalysisResultService(session_factory)
