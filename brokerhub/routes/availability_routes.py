import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from brokerhub.auth.dependencies import get_current_user
from brokerhub.auth.permissions import BROKER_ACCOUNT_TYPE, can_manage_broker, is_cabinet_manager
from brokerhub.core import config
from brokerhub.core.clock import Clock, SystemClock
from brokerhub.database import SessionLocal, ensure_appointment_schema
from brokerhub.models.availability import BrokerAvailability
from brokerhub.models.user import User
from brokerhub.schemas.availability import (
    AvailableSlot,
    BrokerAvailabilityResponse,
    UpdateAvailabilityRequest,
    WeeklyAvailability,
    default_weekly_availability,
)
from brokerhub.services.document_store import SqlDocumentStore, StoreError
from brokerhub.services.slot_generator import compute_available_slots

router = APIRouter(tags=['availability'])

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock() -> Clock:
    return SystemClock()


def get_broker_or_404(db: Session, broker_id: str) -> User:
    broker = db.query(User).filter(
        User.id == broker_id,
        User.account_type == BROKER_ACCOUNT_TYPE,
    ).first()

    if not broker:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Broker not found.',
        )

    return broker


def load_weekly_availability(db: Session, broker_id: str) -> WeeklyAvailability:
    """Stored template of a broker, or the default one when nothing usable is stored."""
    try:
        stored = SqlDocumentStore(db).get_broker_availability(broker_id)
    except StoreError:
        logger.exception('Falling back to the default availability for broker %s', broker_id)
        return default_weekly_availability()

    return stored or default_weekly_availability()


@router.get('/cabinet/brokers', response_model=list[BrokerAvailabilityResponse])
def list_cabinet_brokers_availability(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not current_user.cabinet_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='You do not belong to a cabinet.',
        )

    if not is_cabinet_manager(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only cabinet admins and managers can view their brokers availability.',
        )

    ensure_database_ready()

    try:
        brokers = db.query(User).filter(
            User.cabinet_id == current_user.cabinet_id,
            User.account_type == BROKER_ACCOUNT_TYPE,
        ).order_by(User.last_name.asc(), User.first_name.asc()).all()

        return [
            BrokerAvailabilityResponse(
                broker_id=broker.id,
                first_name=broker.first_name or '',
                last_name=broker.last_name or '',
                cabinet_role=broker.cabinet_role or 'employee',
                availability=load_weekly_availability(db, broker.id),
            )
            for broker in brokers
        ]
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/{broker_id}', response_model=WeeklyAvailability)
def get_broker_availability(broker_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        get_broker_or_404(db, broker_id)
        return load_weekly_availability(db, broker_id)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.put('/{broker_id}', response_model=WeeklyAvailability)
def update_broker_availability(
    broker_id: str,
    data: UpdateAvailabilityRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        get_broker_or_404(db, broker_id)

        if not can_manage_broker(db, current_user.id, broker_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='You are not allowed to change this broker availability.',
            )

        weekly = data.availability.model_dump()
        record = db.query(BrokerAvailability).filter(BrokerAvailability.broker_id == broker_id).first()
        if record is None:
            record = BrokerAvailability(broker_id=broker_id, weekly=weekly)
            db.add(record)
        else:
            record.weekly = weekly

        db.commit()
        logger.info('Availability of broker %s updated by %s', broker_id, current_user.id)

        return data.availability
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/{broker_id}/slots', response_model=list[AvailableSlot])
def list_available_slots(
    broker_id: str,
    days: int = Query(default=config.DEFAULT_HORIZON_DAYS, ge=1, le=config.MAX_HORIZON_DAYS),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return compute_available_slots(broker_id, SqlDocumentStore(db), clock=clock, horizon_days=days)
