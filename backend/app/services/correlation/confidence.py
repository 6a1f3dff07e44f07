# backend/app/services/correlation/confidence.py
from datetime import timedelta
from typing import Optional

from app.schemas.logs import NormalizedLogRecord

DIRECT_CONFIDENCE = 0.9
TIME_PROXIMITY_BASE = 0.5

# (max gap, bonus), checked in order
TIME_GAP_BONUSES = (
    (timedelta(minutes=1), 0.3),
    (timedelta(minutes=5), 0.2),
    (timedelta(minutes=15), 0.1),
)

SAME_COMPANY_BONUS = 0.2
SAME_HOST_BONUS = 0.1


def _clamp(score: float) -> float:
    # All weights are multiples of 0.1; rounding keeps 0.5 + 0.3 == 0.8
    return round(min(score, 1.0), 2)


def score_direct() -> float:
    return DIRECT_CONFIDENCE


def score_time_proximity(
    identity_record: NormalizedLogRecord,
    address_record: NormalizedLogRecord,
) -> float:
    """
    Confidence that the identity in one record used the address in another.

    Base 0.5, plus a bonus for how close the two records are in time, plus
    context bonuses for a shared company code and a shared host.
    """
    score = TIME_PROXIMITY_BASE

    gap = abs(identity_record.timestamp - address_record.timestamp)
    for max_gap, bonus in TIME_GAP_BONUSES:
        if gap <= max_gap:
            score += bonus
            break

    a_ctx = identity_record.context
    b_ctx = address_record.context
    if a_ctx.company_code and a_ctx.company_code == b_ctx.company_code:
        score += SAME_COMPANY_BONUS
    if a_ctx.host and a_ctx.host == b_ctx.host:
        score += SAME_HOST_BONUS

    return _clamp(score)


def score(
    evidence_a: NormalizedLogRecord,
    evidence_b: Optional[NormalizedLogRecord] = None,
) -> float:
    """Direct score for a single record, time-proximity score for a pair."""
    if evidence_b is None:
        return score_direct()
    return score_time_proximity(evidence_a, evidence_b)
