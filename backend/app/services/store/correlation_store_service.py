# backend/app/services/store/correlation_store_service.py

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Protocol, Set, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.errors import StoreUnavailable
from app.db.session import SessionLocal
from app.models.user_correlation import CorrelationSourceRecord, UserCorrelationRecord
from app.schemas.correlation import Correlation, CorrelationMethod

logger = logging.getLogger(__name__)


class CorrelationStore(Protocol):
    def write(self, correlation: Correlation) -> None: ...

    def write_many(self, correlations: Iterable[Correlation]) -> None: ...

    def read_candidates(
        self, identities: Iterable[str], addresses: Iterable[str]
    ) -> List[Correlation]: ...


def _to_db_time(value: datetime) -> datetime:
    # Stored as naive UTC
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db_time(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlCorrelationStore:
    """
    SQLAlchemy-backed correlation baseline (Postgres, sqlite for dev/tests).

    Every write is a single INSERT ... ON CONFLICT statement per table, so
    concurrent analysis runs touching the same (identity, address) converge:
      - last_seen / confidence keep the greater value
      - first_seen keeps the earlier value
      - evidence sources only ever grow (one row per source)
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def _get_db(self) -> Session:
        return self._session_factory()

    # --------------------------------------------------------
    # Write (upsert)
    # --------------------------------------------------------
    def write(self, correlation: Correlation) -> None:
        self.write_many([correlation])

    def write_many(self, correlations: Iterable[Correlation]) -> None:
        correlations = list(correlations)
        if not correlations:
            return

        db = self._get_db()
        try:
            dialect = db.get_bind().dialect.name
            for correlation in correlations:
                db.execute(self._upsert_correlation(dialect, correlation))
                sources = self._insert_sources(dialect, correlation)
                if sources is not None:
                    db.execute(sources)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to upsert %d correlations", len(correlations))
            raise StoreUnavailable(f"correlation upsert failed: {exc}") from exc
        finally:
            db.close()

    @staticmethod
    def _insert_fn(dialect: str):
        if dialect == "postgresql":
            return postgresql.insert
        if dialect == "sqlite":
            return sqlite.insert
        raise StoreUnavailable(f"unsupported database dialect for upserts: {dialect}")

    def _upsert_correlation(self, dialect: str, correlation: Correlation):
        table = UserCorrelationRecord.__table__
        greatest = func.greatest if dialect == "postgresql" else func.max
        least = func.least if dialect == "postgresql" else func.min

        stmt = self._insert_fn(dialect)(table).values(
            user_identifier=correlation.identity,
            ip_address=correlation.address,
            first_seen=_to_db_time(correlation.first_observed),
            last_seen=_to_db_time(correlation.last_observed),
            confidence_score=correlation.confidence,
        )
        return stmt.on_conflict_do_update(
            index_elements=[table.c.user_identifier, table.c.ip_address],
            set_={
                "first_seen": least(table.c.first_seen, stmt.excluded.first_seen),
                "last_seen": greatest(table.c.last_seen, stmt.excluded.last_seen),
                "confidence_score": greatest(
                    table.c.confidence_score, stmt.excluded.confidence_score
                ),
            },
        )

    def _insert_sources(self, dialect: str, correlation: Correlation):
        if not correlation.evidence_sources:
            return None
        table = CorrelationSourceRecord.__table__
        stmt = self._insert_fn(dialect)(table).values(
            [
                {
                    "user_identifier": correlation.identity,
                    "ip_address": correlation.address,
                    "source_system": source,
                }
                for source in sorted(correlation.evidence_sources)
            ]
        )
        return stmt.on_conflict_do_nothing(
            index_elements=[
                table.c.user_identifier,
                table.c.ip_address,
                table.c.source_system,
            ]
        )

    # --------------------------------------------------------
    # Read
    # --------------------------------------------------------
    def read_candidates(
        self, identities: Iterable[str], addresses: Iterable[str]
    ) -> List[Correlation]:
        """
        Every stored correlation whose identity is in `identities` OR whose
        address is in `addresses`. Returned with method=historical.
        """
        identities = sorted(set(identities))
        addresses = sorted(set(addresses))
        if not identities and not addresses:
            return []

        db = self._get_db()
        try:
            rows = db.execute(
                select(UserCorrelationRecord)
                .where(
                    or_(
                        UserCorrelationRecord.user_identifier.in_(identities),
                        UserCorrelationRecord.ip_address.in_(addresses),
                    )
                )
                .order_by(
                    UserCorrelationRecord.user_identifier,
                    UserCorrelationRecord.ip_address,
                )
            ).scalars().all()

            sources = self._load_sources(db, rows)

            return [
                Correlation(
                    identity=r.user_identifier,
                    address=r.ip_address,
                    first_observed=_from_db_time(r.first_seen),
                    last_observed=_from_db_time(r.last_seen),
                    confidence=r.confidence_score,
                    evidence_sources=frozenset(sources[(r.user_identifier, r.ip_address)]),
                    method=CorrelationMethod.HISTORICAL,
                )
                for r in rows
            ]
        except SQLAlchemyError as exc:
            logger.exception("Failed to read stored correlations")
            raise StoreUnavailable(f"correlation lookup failed: {exc}") from exc
        finally:
            db.close()

    @staticmethod
    def _load_sources(
        db: Session, rows: List[UserCorrelationRecord]
    ) -> Dict[Tuple[str, str], Set[str]]:
        out: Dict[Tuple[str, str], Set[str]] = defaultdict(set)
        if not rows:
            return out

        identities = {r.user_identifier for r in rows}
        addresses = {r.ip_address for r in rows}
        wanted = {(r.user_identifier, r.ip_address) for r in rows}

        q = select(CorrelationSourceRecord).where(
            CorrelationSourceRecord.user_identifier.in_(identities),
            CorrelationSourceRecord.ip_address.in_(addresses),
        )
        for src in db.execute(q).scalars():
            key = (src.user_identifier, src.ip_address)
            if key in wanted:
                out[key].add(src.source_system)
        return out


correlation_store_service = SqlCorrelationStore()
