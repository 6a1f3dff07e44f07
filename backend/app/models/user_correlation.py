# backend/app/models/user_correlation.py
from sqlalchemy import Column, DateTime, Float, ForeignKeyConstraint, String

from app.db.base_class import Base


class UserCorrelationRecord(Base):
    """Historical baseline for one (identity, address) pair."""
    __tablename__ = "user_correlations"

    user_identifier = Column(String(255), primary_key=True, index=True)
    ip_address = Column(String(64), primary_key=True, index=True)

    first_seen = Column(DateTime, nullable=False)   # naive UTC
    last_seen = Column(DateTime, nullable=False)    # naive UTC
    confidence_score = Column(Float, nullable=False)


class CorrelationSourceRecord(Base):
    """
    One row per evidence source of a correlation. Inserting with
    ON CONFLICT DO NOTHING gives an atomic, append-only set union.
    """
    __tablename__ = "correlation_sources"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_identifier", "ip_address"],
            ["user_correlations.user_identifier", "user_correlations.ip_address"],
            ondelete="CASCADE",
        ),
    )

    user_identifier = Column(String(255), primary_key=True)
    ip_address = Column(String(64), primary_key=True)
    source_system = Column(String(64), primary_key=True)
