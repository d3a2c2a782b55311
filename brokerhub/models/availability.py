"""Availability model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, JSON, String
from brokerhub.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BrokerAvailability(Base):
    """Weekly recurring availability document of a broker."""
    __tablename__ = "broker_availability"

    broker_id = Column(String, ForeignKey("users.id"), primary_key=True)
    weekly = Column(JSON, nullable=True)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
