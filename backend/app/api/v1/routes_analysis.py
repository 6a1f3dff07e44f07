# backend/app/api/v1/routes_analysis.py

from fastapi import APIRouter, Depends, HTTPException, status

from app.schemas.alerts import AnalysisResult
from app.services.store.analysis_result_service import (
    AnalysisResultService,
    analysis_result_service,
)

router = APIRouter(
    prefix="/analysis",
    tags=["analysis"],
)


def get_result_service() -> AnalysisResultService:
    return analysis_result_service


@router.get(
    "/{alert_id}",
    response_model=AnalysisResult,
    summary="Get the stored analysis for an alert",
)
def get_analysis_result(
    alert_id: str,
    results: AnalysisResultService = Depends(get_result_service),
) -> AnalysisResult:
    result = results.get_result(alert_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Analysis result for alert {alert_id} not found",
        )
    return result
