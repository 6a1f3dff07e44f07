# backend/app/services/analysis/analysis_pipeline_service.py

import logging
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.core.errors import CorrelationError, LogSourceUnavailable
from app.schemas.alerts import Alert, AnalysisResult, AnalysisState
from app.schemas.correlation import CorrelationResult
from app.schemas.logs import RawLogRecord
from app.services.correlation.correlation_engine import CorrelationEngine, correlation_engine
from app.services.logs.loki_client import LokiClient, loki_client
from app.services.normalization.log_normalizer import LogNormalizer, log_normalizer
from app.services.store.analysis_result_service import (
    AnalysisResultService,
    analysis_result_service,
)

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS = {
    AnalysisState.QUEUED: {AnalysisState.FETCHING_LOGS},
    AnalysisState.FETCHING_LOGS: {AnalysisState.NORMALIZING},
    AnalysisState.NORMALIZING: {AnalysisState.CORRELATING},
    AnalysisState.CORRELATING: {AnalysisState.PERSISTING},
    AnalysisState.PERSISTING: {AnalysisState.COMPLETED},
    AnalysisState.COMPLETED: set(),
    AnalysisState.FAILED: set(),
}
TERMINAL_STATES = {AnalysisState.COMPLETED, AnalysisState.FAILED}


class AnalysisRun:
    """Lifecycle of one alert's analysis."""

    def __init__(self, alert_id: str) -> None:
        self.alert_id = alert_id
        self.state = AnalysisState.QUEUED
        self.error: Optional[str] = None

    def advance(self, new_state: AnalysisState) -> None:
        if new_state is AnalysisState.FAILED:
            if self.state in TERMINAL_STATES:
                raise ValueError(f"cannot fail a run that is already {self.state.value}")
        elif new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise ValueError(
                f"illegal analysis transition {self.state.value} -> {new_state.value}"
            )
        logger.debug("Alert %s: %s -> %s", self.alert_id, self.state.value, new_state.value)
        self.state = new_state

    def fail(self, reason: str) -> None:
        self.advance(AnalysisState.FAILED)
        self.error = reason


class AnalysisPipelineService:
    """
    End-to-end analysis for a single alert:

      1. Fetch logs in [alert - 15m, alert + 15m] from Loki
         (Loki down -> continue with no evidence)
      2. Normalize (corrupt lines are skipped)
      3. Correlate identities <-> addresses, merged with stored history
      4. Persist correlations, then the AnalysisResult bundle
      5. Return the AnalysisResult

    A store failure marks the run failed, is logged and re-raised; no
    AnalysisResult is written for that alert. Correlations upserted before
    the failure stay persisted.
    """

    def __init__(
        self,
        logs: LokiClient = loki_client,
        normalizer: LogNormalizer = log_normalizer,
        engine: CorrelationEngine = correlation_engine,
        results: AnalysisResultService = analysis_result_service,
    ) -> None:
        self.logs = logs
        self.normalizer = normalizer
        self.engine = engine
        self.results = results

    async def process_alert(self, alert: Alert) -> AnalysisResult:
        run = AnalysisRun(alert.id)
        logger.info("Processing alert analysis for alert ID: %s", alert.id)
        started = time.monotonic()

        try:
            run.advance(AnalysisState.FETCHING_LOGS)
            raw_logs = await self._fetch_logs(alert)

            run.advance(AnalysisState.NORMALIZING)
            normalized = self.normalizer.normalize_batch(raw_logs)

            run.advance(AnalysisState.CORRELATING)
            correlation = self.engine.correlate_logs_for_alert(alert, normalized)

            run.advance(AnalysisState.PERSISTING)
            self.engine.persist(correlation)
            result = AnalysisResult(
                alert_id=alert.id,
                project_id=alert.project_id,
                correlated_logs=correlation.related_logs,
                user_correlations=correlation.user_correlations,
                enrichment_data=build_enrichment_data(alert, correlation),
                analysis_timestamp=datetime.now(timezone.utc),
                processing_time_ms=int((time.monotonic() - started) * 1000),
            )
            self.results.store_result(result)
        except CorrelationError as exc:
            failed_in = run.state
            run.fail(str(exc))
            logger.error("Analysis for alert %s failed in %s: %s", alert.id, failed_in.value, exc)
            raise

        run.advance(AnalysisState.COMPLETED)
        logger.info(
            "Completed analysis for alert %s in %dms", alert.id, result.processing_time_ms
        )
        return result

    async def _fetch_logs(self, alert: Alert) -> List[RawLogRecord]:
        try:
            return await self.logs.query_logs_around_time(
                alert.project_id, alert.timestamp, settings.ANALYSIS_WINDOW_MINUTES
            )
        except LogSourceUnavailable as exc:
            logger.warning(
                "Log source unavailable for alert %s, continuing without evidence: %s",
                alert.id,
                exc,
            )
            return []


def build_enrichment_data(alert: Alert, result: CorrelationResult) -> Dict[str, Any]:
    threshold = settings.HIGH_CONFIDENCE_THRESHOLD

    source_counts = Counter(log.source_system.value for log in result.related_logs)
    users = sorted({u for log in result.related_logs for u in log.identity_strings})
    ips = sorted({ip for log in result.related_logs for ip in log.network_addresses})

    return {
        "alert_source": alert.source,
        "alert_severity": alert.severity,
        "analysis_window": {
            "start": result.time_window.start,
            "end": result.time_window.end,
        },
        "correlation_stats": {
            "total_logs_analyzed": len(result.related_logs),
            "user_correlations_found": len(result.user_correlations),
            "correlation_score": result.correlation_score,
        },
        "source_breakdown": dict(source_counts),
        "high_confidence_correlations": [
            c for c in result.user_correlations if c.confidence > threshold
        ],
        "involved_users": users,
        "involved_ips": ips,
    }


analysis_pipeline_service = AnalysisPipelineService()
