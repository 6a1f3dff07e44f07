# backend/app/services/correlation/correlation_merger.py
from typing import Dict, Iterable, List, Sequence, Tuple

from app.schemas.correlation import Correlation
from app.schemas.logs import NormalizedLogRecord
from app.services.correlation.correlation_builder import outranks


def merge_correlations(
    fresh: Iterable[Correlation],
    historical: Iterable[Correlation],
) -> List[Correlation]:
    """
    Fold freshly derived correlations into the historical ones.

    Per (identity, address):
      - confidence       = max of both sides
      - evidence_sources = union of both sides
      - method / timestamps come from the side that is kept (higher
        confidence, then method rank, then the fresh side)
    """
    merged: Dict[Tuple[str, str], Correlation] = {}

    for correlation in historical:
        existing = merged.get(correlation.key)
        merged[correlation.key] = (
            correlation if existing is None else _combine(existing, correlation)
        )

    for correlation in fresh:
        existing = merged.get(correlation.key)
        merged[correlation.key] = (
            correlation if existing is None else _combine(correlation, existing)
        )

    return [merged[key] for key in sorted(merged)]


def _combine(preferred: Correlation, other: Correlation) -> Correlation:
    kept = other if outranks(other, preferred) else preferred
    return kept.model_copy(
        update={
            "confidence": max(preferred.confidence, other.confidence),
            "evidence_sources": preferred.evidence_sources | other.evidence_sources,
        }
    )


def aggregate_score(
    records: Sequence[NormalizedLogRecord],
    correlations: Sequence[Correlation],
) -> float:
    """
    Overall correlation strength for one analysis, 0.0 - 1.0.

      + 0.1 per correlation
      + 0.2 per correlation above 0.8 confidence (0.1 above 0.6)
      + 0.3 if evidence spans more than 2 source systems (0.2 if more than 1)
    """
    if not records:
        return 0.0

    score = 0.1 * len(correlations)

    for correlation in correlations:
        if correlation.confidence > 0.8:
            score += 0.2
        elif correlation.confidence > 0.6:
            score += 0.1

    sources = {r.source_system for r in records}
    if len(sources) > 2:
        score += 0.3
    elif len(sources) > 1:
        score += 0.2

    return round(min(score, 1.0), 2)
