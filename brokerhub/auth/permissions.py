"""Who may act on a broker's calendar."""

from sqlalchemy.orm import Session

from brokerhub.models.user import User

BROKER_ACCOUNT_TYPE = "broker"
CABINET_MANAGER_ROLES = {"admin", "manager"}


def is_cabinet_manager(user: User | None) -> bool:
    return user is not None and bool(user.cabinet_id) and user.cabinet_role in CABINET_MANAGER_ROLES


def can_manage_broker(db: Session, acting_user_id: str, broker_id: str) -> bool:
    """A broker manages their own calendar; cabinet admins and managers manage their colleagues'."""
    if acting_user_id == broker_id:
        return True

    acting_user = db.query(User).filter(User.id == acting_user_id).first()
    if not is_cabinet_manager(acting_user):
        return False

    broker = db.query(User).filter(User.id == broker_id).first()
    if broker is None or not broker.cabinet_id:
        return False

    return broker.cabinet_id == acting_user.cabinet_id
