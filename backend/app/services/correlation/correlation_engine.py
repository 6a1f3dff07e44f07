# backend/app/services/correlation/correlation_engine.py
import logging
from datetime import timedelta
from typing import List, Sequence

from app.core.config import settings
from app.schemas.alerts import Alert
from app.schemas.correlation import AnalysisWindow, Correlation, CorrelationResult
from app.schemas.logs import NormalizedLogRecord
from app.services.correlation.correlation_builder import build_correlations
from app.services.correlation.correlation_merger import aggregate_score, merge_correlations
from app.services.store.correlation_store_service import (
    CorrelationStore,
    correlation_store_service,
)

logger = logging.getLogger(__name__)


class CorrelationEngine:
    """
    Identity <-> address correlation for one alert.

    Steps:
      1. Derive fresh correlations from the window's normalized logs.
      2. Fetch stored correlations touching any identity OR address seen.
      3. Merge (max confidence, union of sources) and score the analysis.
      4. persist(): upsert merged rows for every key that had fresh evidence.

    Store failures surface as StoreUnavailable; nothing is retried here.
    """

    ANALYSIS_WINDOW_MINUTES = settings.ANALYSIS_WINDOW_MINUTES
    GROUP_WINDOW = timedelta(minutes=settings.CORRELATION_WINDOW_MINUTES)

    def __init__(self, store: CorrelationStore = correlation_store_service) -> None:
        self.store = store

    def derive(self, logs: Sequence[NormalizedLogRecord]) -> List[Correlation]:
        return build_correlations(logs, self.GROUP_WINDOW)

    def fetch_historical(self, logs: Sequence[NormalizedLogRecord]) -> List[Correlation]:
        identities = {i for log in logs for i in log.identity_strings}
        addresses = {a for log in logs for a in log.network_addresses}
        if not identities and not addresses:
            return []
        return self.store.read_candidates(identities, addresses)

    def correlate_logs_for_alert(
        self,
        alert: Alert,
        logs: Sequence[NormalizedLogRecord],
    ) -> CorrelationResult:
        """Build, fetch and merge; does not write anything."""
        window = AnalysisWindow.around(alert.timestamp, self.ANALYSIS_WINDOW_MINUTES)

        fresh = self.derive(logs)
        historical = self.fetch_historical(logs)
        merged = merge_correlations(fresh, historical)

        score = aggregate_score(logs, merged)
        logger.info(
            "Alert %s: %d logs, %d fresh / %d historical correlations, score=%.2f",
            alert.id,
            len(logs),
            len(fresh),
            len(historical),
            score,
        )

        return CorrelationResult(
            time_window=window,
            related_logs=list(logs),
            fresh_correlations=fresh,
            user_correlations=merged,
            correlation_score=score,
        )

    def persist(self, result: CorrelationResult) -> int:
        """
        Upsert the merged rows for every key that had fresh evidence; they
        become the new historical baseline. Returns the number of rows written.
        """
        fresh_keys = {c.key for c in result.fresh_correlations}
        to_write = [c for c in result.user_correlations if c.key in fresh_keys]
        self.store.write_many(to_write)
        return len(to_write)


correlation_engine = CorrelationEngine()
