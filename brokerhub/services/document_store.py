"""Read access to broker availability documents and appointment records."""

from typing import Protocol, Sequence

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from brokerhub.models.appointment import Appointment
from brokerhub.models.availability import BrokerAvailability
from brokerhub.schemas.availability import WeeklyAvailability


class StoreError(Exception):
    """Raised when the backing store cannot be read."""


class DocumentStore(Protocol):
    def get_broker_availability(self, broker_id: str) -> WeeklyAvailability | None:
        ...

    def list_broker_appointments(self, broker_id: str, start_date: str, end_date: str) -> Sequence[Appointment]:
        ...


class SqlDocumentStore:
    def __init__(self, db: Session):
        self.db = db

    def get_broker_availability(self, broker_id: str) -> WeeklyAvailability | None:
        try:
            record = self.db.query(BrokerAvailability).filter(
                BrokerAvailability.broker_id == broker_id,
            ).first()
        except SQLAlchemyError as exc:
            raise StoreError(f'Could not read availability of broker {broker_id}') from exc

        if record is None or not record.weekly:
            return None

        try:
            return WeeklyAvailability.model_validate(record.weekly)
        except ValidationError as exc:
            raise StoreError(f'Stored availability of broker {broker_id} is not a weekly template') from exc

    def list_broker_appointments(self, broker_id: str, start_date: str, end_date: str) -> list[Appointment]:
        """Appointments of a broker whose date lies in [start_date, end_date].

        Dates are zero-padded YYYY-MM-DD strings, so string comparison is
        chronological.
        """
        try:
            return self.db.query(Appointment).filter(
                Appointment.broker_id == broker_id,
                Appointment.date >= start_date,
                Appointment.date <= end_date,
            ).order_by(Appointment.date.asc(), Appointment.start_time.asc()).all()
        except SQLAlchemyError as exc:
            raise StoreError(f'Could not read appointments of broker {broker_id}') from exc
