"""Appointment model definitions."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, text
from brokerhub.database import Base


class Appointment(Base):
    """Represents an appointment booked with a broker."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_broker_date", "broker_id", "date"),
        Index("idx_appointments_client_date", "client_id", "date"),
        # One live booking per broker slot; cancelled rows free the slot.
        Index(
            "uq_appointments_active_slot",
            "broker_id",
            "date",
            "start_time",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
    )

    id = Column(String, primary_key=True, default=lambda: uuid.uuid4().hex)
    broker_id = Column(String, ForeignKey("users.id"), nullable=False)
    client_id = Column(String, ForeignKey("users.id"), nullable=False)
    client_name = Column(String, default="")
    client_email = Column(String, default="")
    client_phone = Column(String, default="")
    date = Column(String(10), nullable=False)  # YYYY-MM-DD
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)
    status = Column(String, default="confirmed")
    title = Column(String, default="")
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
