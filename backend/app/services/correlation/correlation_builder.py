# backend/app/services/correlation/correlation_builder.py
from datetime import timedelta
from typing import Dict, Iterable, List, Sequence, Tuple

from app.schemas.correlation import METHOD_RANK, Correlation, CorrelationMethod
from app.schemas.logs import NormalizedLogRecord
from app.services.correlation.confidence import score_direct, score_time_proximity
from app.services.correlation.temporal_grouper import DEFAULT_GROUP_WINDOW, group_by_time


def outranks(candidate: Correlation, current: Correlation) -> bool:
    """
    True when `candidate` should replace `current` for the same key:
    higher confidence first, then direct > time_proximity > historical.
    Full ties keep `current`.
    """
    if candidate.confidence != current.confidence:
        return candidate.confidence > current.confidence
    return METHOD_RANK[candidate.method] > METHOD_RANK[current.method]


def derive_direct(records: Iterable[NormalizedLogRecord]) -> List[Correlation]:
    """One correlation per (identity, address) pair found inside a single record."""
    out: List[Correlation] = []
    for record in records:
        if not (record.has_identities and record.has_addresses):
            continue
        for identity in sorted(record.identity_strings):
            for address in sorted(record.network_addresses):
                out.append(
                    Correlation(
                        identity=identity,
                        address=address,
                        first_observed=record.timestamp,
                        last_observed=record.timestamp,
                        confidence=score_direct(),
                        evidence_sources=frozenset({record.source_system.value}),
                        method=CorrelationMethod.DIRECT,
                    )
                )
    return out


def derive_time_proximity(
    records: Sequence[NormalizedLogRecord],
    window: timedelta = DEFAULT_GROUP_WINDOW,
) -> List[Correlation]:
    """
    Pair identity-bearing records with address-bearing records that fall in
    the same time group.

    first_observed is always the identity record's timestamp and
    last_observed the address record's, whichever came first on the wall
    clock. A record is not paired with itself; that is direct evidence.
    """
    out: List[Correlation] = []

    for group in group_by_time(records, window):
        identity_logs = [r for r in group if r.has_identities]
        address_logs = [r for r in group if r.has_addresses]

        for identity_log in identity_logs:
            for address_log in address_logs:
                if address_log is identity_log:
                    continue
                confidence = score_time_proximity(identity_log, address_log)
                sources = frozenset(
                    {identity_log.source_system.value, address_log.source_system.value}
                )
                for identity in sorted(identity_log.identity_strings):
                    for address in sorted(address_log.network_addresses):
                        out.append(
                            Correlation(
                                identity=identity,
                                address=address,
                                first_observed=identity_log.timestamp,
                                last_observed=address_log.timestamp,
                                confidence=confidence,
                                evidence_sources=sources,
                                method=CorrelationMethod.TIME_PROXIMITY,
                            )
                        )

    return out


def deduplicate(correlations: Iterable[Correlation]) -> List[Correlation]:
    """Collapse by (identity, address), keeping the best-ranked candidate."""
    best: Dict[Tuple[str, str], Correlation] = {}
    for correlation in correlations:
        current = best.get(correlation.key)
        if current is None or outranks(correlation, current):
            best[correlation.key] = correlation
    return [best[key] for key in sorted(best)]


def build_correlations(
    records: Sequence[NormalizedLogRecord],
    window: timedelta = DEFAULT_GROUP_WINDOW,
) -> List[Correlation]:
    """Direct pass, then time-proximity pass, then dedup by key."""
    candidates = derive_direct(records)
    candidates.extend(derive_time_proximity(records, window))
    return deduplicate(candidates)
