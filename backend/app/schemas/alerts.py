# backend/app/schemas/alerts.py
from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from app.schemas.correlation import Correlation
from app.schemas.logs import NormalizedLogRecord


class AnalysisState(str, Enum):
    QUEUED = "queued"
    FETCHING_LOGS = "fetching_logs"
    NORMALIZING = "normalizing"
    CORRELATING = "correlating"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


class Alert(BaseModel):
    """A triggering alert, as queued for analysis."""
    id: str
    timestamp: datetime
    source: str
    severity: str = "low"
    message: Optional[str] = None
    project_id: str
    raw_data: Dict[str, Any] = Field(default_factory=dict)


class AlertIngestRequest(BaseModel):
    """
    Payload POSTed by SIEM / WAF integrations. The backend assigns the
    alert id and timestamp.
    """
    source: str = Field(..., description="Origin system, e.g. aws_waf")
    severity: str = "low"
    message: Optional[str] = None
    project_id: str = Field(..., description="Tenant / project scope for log queries")
    raw_data: Dict[str, Any] = Field(default_factory=dict)


class AlertIngestResponse(BaseModel):
    alert_id: str
    status: str = "queued_for_analysis"


class AnalysisResult(BaseModel):
    """
    Bundle stored once per alert (later runs for the same alert replace it).
    """
    alert_id: str
    project_id: str
    correlated_logs: List[NormalizedLogRecord] = Field(default_factory=list)
    user_correlations: List[Correlation] = Field(default_factory=list)
    enrichment_data: Dict[str, Any] = Field(default_factory=dict)
    analysis_timestamp: datetime
    processing_time_ms: int
