# backend/app/services/correlation/temporal_grouper.py
from datetime import timedelta
from typing import List, Sequence

from app.schemas.logs import NormalizedLogRecord

DEFAULT_GROUP_WINDOW = timedelta(minutes=5)


def group_by_time(
    records: Sequence[NormalizedLogRecord],
    window: timedelta = DEFAULT_GROUP_WINDOW,
) -> List[List[NormalizedLogRecord]]:
    """
    Greedy, anchor-based time grouping.

    Records are sorted by timestamp (stable), then walked once. Each group is
    anchored at its first record; a record joins the current group while
    `ts - anchor <= window`, otherwise it opens a new group. Members are
    therefore within `window` of the group's first record, not of each other.
    """
    if not records:
        return []

    ordered = sorted(records, key=lambda r: r.timestamp)

    groups: List[List[NormalizedLogRecord]] = []
    current = [ordered[0]]
    anchor = ordered[0].timestamp

    for record in ordered[1:]:
        if record.timestamp - anchor <= window:
            current.append(record)
        else:
            groups.append(current)
            current = [record]
            anchor = record.timestamp

    groups.append(current)
    return groups
