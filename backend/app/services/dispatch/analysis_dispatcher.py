# backend/app/services/dispatch/analysis_dispatcher.py
import logging

from app.core.errors import CorrelationError
from app.schemas.alerts import Alert
from app.services.analysis.analysis_pipeline_service import AnalysisPipelineService

logger = logging.getLogger(__name__)


async def dispatch_analysis(pipeline: AnalysisPipelineService, alert: Alert) -> bool:
    """
    Background-task entry point for one alert. A failed run is reported in
    the log and leaves no AnalysisResult; re-queueing is up to the caller.
    Returns True when a result was stored.
    """
    try:
        await pipeline.process_alert(alert)
    except CorrelationError:
        logger.exception("Analysis failed for alert %s; no result stored.", alert.id)
        return False
    return True
