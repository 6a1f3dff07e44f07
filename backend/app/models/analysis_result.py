# backend/app/models/analysis_result.py
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB

from app.db.base_class import Base


class AnalysisResultRecord(Base):
    __tablename__ = "analysis_results"

    alert_id = Column(String(255), primary_key=True, index=True)
    project_id = Column(String(255), nullable=False, index=True)

    # Full AnalysisResult bundle; JSONB on Postgres, JSON elsewhere (sqlite)
    result_data = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
