# backend/app/api/v1/routes_alerts.py

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, status

from app.schemas.alerts import Alert, AlertIngestRequest, AlertIngestResponse
from app.services.analysis.analysis_pipeline_service import (
    AnalysisPipelineService,
    analysis_pipeline_service,
)
from app.services.dispatch.analysis_dispatcher import dispatch_analysis

router = APIRouter(
    prefix="/alerts",
    tags=["alerts"],
)


def get_analysis_pipeline() -> AnalysisPipelineService:
    return analysis_pipeline_service


@router.post(
    "",
    response_model=AlertIngestResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue an alert for correlation analysis",
)
async def ingest_alert(
    payload: AlertIngestRequest,
    background_tasks: BackgroundTasks,
    pipeline: AnalysisPipelineService = Depends(get_analysis_pipeline),
) -> AlertIngestResponse:
    """
    Assigns an alert id and timestamp, then runs the analysis
    (Loki fetch -> normalize -> correlate -> persist) in the background.
    """
    alert = Alert(
        id=str(uuid.uuid4()),
        timestamp=datetime.now(timezone.utc),
        **payload.model_dump(),
    )
    background_tasks.add_task(dispatch_analysis, pipeline, alert)
    return AlertIngestResponse(alert_id=alert.id)
