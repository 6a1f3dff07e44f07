# backend/app/services/store/analysis_result_service.py

import logging
from datetime import datetime
from typing import Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.errors import StoreUnavailable
from app.db.session import SessionLocal
from app.models.analysis_result import AnalysisResultRecord
from app.schemas.alerts import AnalysisResult

logger = logging.getLogger(__name__)


class AnalysisResultService:
    """
    Stores one AnalysisResult bundle per alert id. A later run for the same
    alert replaces the earlier bundle.
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def _get_db(self) -> Session:
        return self._session_factory()

    def store_result(self, result: AnalysisResult) -> None:
        # Make it JSON-safe (datetimes -> isoformat, enums/sets -> values)
        payload = jsonable_encoder(result)

        db = self._get_db()
        try:
            dialect = db.get_bind().dialect.name
            insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
            table = AnalysisResultRecord.__table__
            stmt = insert(table).values(
                alert_id=result.alert_id,
                project_id=result.project_id,
                result_data=payload,
                created_at=datetime.utcnow(),
            )
            db.execute(
                stmt.on_conflict_do_update(
                    index_elements=[table.c.alert_id],
                    set_={
                        "project_id": stmt.excluded.project_id,
                        "result_data": stmt.excluded.result_data,
                        "created_at": stmt.excluded.created_at,
                    },
                )
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to store analysis result for alert %s", result.alert_id)
            raise StoreUnavailable(f"analysis result write failed: {exc}") from exc
        finally:
            db.close()

    def get_result(self, alert_id: str) -> Optional[AnalysisResult]:
        db = self._get_db()
        try:
            record = db.get(AnalysisResultRecord, alert_id)
            if record is None:
                return None
            return AnalysisResult.model_validate(record.result_data)
        except SQLAlchemyError as exc:
            logger.exception("Failed to load analysis result for alert %s", alert_id)
            raise StoreUnavailable(f"analysis result read failed: {exc}") from exc
        finally:
            db.close()


analysis_result_service = AnalysisResultService()
