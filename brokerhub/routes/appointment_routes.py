import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from brokerhub.auth.dependencies import get_current_user
from brokerhub.auth.permissions import can_manage_broker
from brokerhub.core import config
from brokerhub.core.clock import Clock
from brokerhub.models.appointment import Appointment
from brokerhub.models.user import User
from brokerhub.routes.availability_routes import (
    DATABASE_UNAVAILABLE_DETAIL,
    ensure_database_ready,
    get_broker_or_404,
    get_clock,
    get_db,
)
from brokerhub.schemas.appointment import (
    AppointmentResponse,
    AppointmentStatus,
    CreateAppointmentRequest,
    UpdateAppointmentRequest,
)
from brokerhub.services.document_store import SqlDocumentStore
from brokerhub.services.slot_generator import compute_available_slots

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

SLOT_TAKEN_DETAIL = 'This time is no longer available.'


def get_appointment_or_404(db: Session, appointment_id: str) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()

    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )

    return appointment


def find_bookable_slot(db: Session, broker_id: str, slot_date: str, start_time: str, clock: Clock):
    slots = compute_available_slots(
        broker_id,
        SqlDocumentStore(db),
        clock=clock,
        horizon_days=config.BOOKING_HORIZON_DAYS,
    )

    for slot in slots:
        if not slot.is_empty and slot.date == slot_date and slot.start_time == start_time:
            return slot

    return None


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    if current_user.id == data.broker_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Brokers cannot book appointments with themselves.',
        )

    ensure_database_ready()

    try:
        broker = get_broker_or_404(db, data.broker_id)

        slot = find_bookable_slot(db, broker.id, data.date, data.start_time, clock)
        if slot is None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=SLOT_TAKEN_DETAIL,
            )

        appointment = Appointment(
            broker_id=broker.id,
            client_id=current_user.id,
            client_name=data.client_name or current_user.full_name,
            client_email=data.client_email or current_user.email or '',
            client_phone=data.client_phone or current_user.phone or '',
            date=slot.date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            status=AppointmentStatus.CONFIRMED.value,
            title=data.title or f'Appointment with {broker.full_name}',
            notes=data.notes,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        logger.info('Appointment %s booked with broker %s on %s %s', appointment.id, broker.id, slot.date, slot.start_time)

        return appointment
    except IntegrityError as exc:
        # A concurrent booking took the slot between the check and the insert.
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=SLOT_TAKEN_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/mine', response_model=list[AppointmentResponse])
def list_my_appointments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return db.query(Appointment).filter(
            Appointment.client_id == current_user.id,
        ).order_by(Appointment.date.asc(), Appointment.start_time.asc()).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/broker/{broker_id}', response_model=list[AppointmentResponse])
def list_broker_appointments(
    broker_id: str,
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        if not can_manage_broker(db, current_user.id, broker_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='You are not allowed to view this broker appointments.',
            )

        query = db.query(Appointment).filter(Appointment.broker_id == broker_id)
        if start_date:
            query = query.filter(Appointment.date >= start_date)
        if end_date:
            query = query.filter(Appointment.date <= end_date)

        return query.order_by(Appointment.date.asc(), Appointment.start_time.asc()).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: str,
    data: UpdateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)

        if not can_manage_broker(db, current_user.id, appointment.broker_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the broker can update this appointment.',
            )

        if data.title is not None:
            appointment.title = data.title.strip()
        if data.notes is not None:
            appointment.notes = data.notes
        if data.status is not None:
            appointment.status = data.status.value

        db.commit()
        db.refresh(appointment)

        return appointment
    except IntegrityError as exc:
        # Reactivating a cancelled appointment whose slot was rebooked.
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=SLOT_TAKEN_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)

        is_owner = appointment.client_id == current_user.id
        if not is_owner and not can_manage_broker(db, current_user.id, appointment.broker_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the client who booked this appointment or its broker can cancel it.',
            )

        if appointment.status != AppointmentStatus.CANCELLED.value:
            appointment.status = AppointmentStatus.CANCELLED.value
            db.commit()
            db.refresh(appointment)
            logger.info('Appointment %s cancelled by %s', appointment.id, current_user.id)

        return appointment
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)

        if not can_manage_broker(db, current_user.id, appointment.broker_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the broker can delete this appointment.',
            )

        db.delete(appointment)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
