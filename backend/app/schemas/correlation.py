# backend/app/schemas/correlation.py
from typing import List, Tuple
from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.logs import NormalizedLogRecord


class CorrelationMethod(str, Enum):
    DIRECT = "direct"                  # one record carried both values
    TIME_PROXIMITY = "time_proximity"  # two records in the same time group
    HISTORICAL = "historical"          # read back from the correlation store


# Tie-break order when two candidates for the same key score the same
METHOD_RANK = {
    CorrelationMethod.DIRECT: 2,
    CorrelationMethod.TIME_PROXIMITY: 1,
    CorrelationMethod.HISTORICAL: 0,
}


class Correlation(BaseModel):
    """
    A scored hypothesis that `identity` was using `address`.

    (identity, address) is the natural key: a result set never holds two
    correlations with the same pair.
    """
    model_config = ConfigDict(frozen=True)

    identity: str
    address: str
    first_observed: datetime
    last_observed: datetime
    confidence: float = Field(ge=0.0, le=1.0)
    evidence_sources: frozenset[str] = frozenset()
    method: CorrelationMethod

    @property
    def key(self) -> Tuple[str, str]:
        return (self.identity, self.address)


class AnalysisWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @classmethod
    def around(cls, alert_time: datetime, minutes: int = 15) -> "AnalysisWindow":
        delta = timedelta(minutes=minutes)
        return cls(start=alert_time - delta, end=alert_time + delta)


class CorrelationResult(BaseModel):
    """
    Output of one correlation run for an alert.
    """
    time_window: AnalysisWindow
    related_logs: List[NormalizedLogRecord] = Field(default_factory=list)
    fresh_correlations: List[Correlation] = Field(default_factory=list)
    user_correlations: List[Correlation] = Field(default_factory=list)
    correlation_score: float = 0.0
