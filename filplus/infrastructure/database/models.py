# filplus/infrastructure/database/models.py

from sqlalchemy import JSON, BigInteger, Column, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from filplus.infrastructure.database.session import Base

# JSONB on PostgreSQL, plain JSON elsewhere.
JsonDocument = JSON().with_variant(JSONB(), "postgresql")


class DomainEventRow(Base):
    """One row per domain event. The unique constraint is the optimistic concurrency check."""

    __tablename__ = "domain_events"
    __table_args__ = (
        UniqueConstraint("aggregate_id", "sequence_number", name="uq_domain_events_aggregate_seq"),
    )

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    aggregate_id = Column(String, nullable=False, index=True)
    sequence_number = Column(Integer, nullable=False)
    event_type = Column(String, nullable=False)
    payload = Column(JsonDocument, nullable=False)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ApplicationDetailsRow(Base):
    """Read-model document per application. status is copied out of the document for filtering."""

    __tablename__ = "application_details"

    id = Column(String, primary_key=True)
    status = Column(String, nullable=True, index=True)
    document = Column(JsonDocument, nullable=False)
    last_sequence_number = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
