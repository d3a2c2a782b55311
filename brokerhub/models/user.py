"""User model definitions."""

import uuid

from sqlalchemy import Column, String
from brokerhub.database import Base


class User(Base):
    """Represents a client or broker account."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: uuid.uuid4().hex)
    email = Column(String, unique=True, index=True)
    first_name = Column(String, default="")
    last_name = Column(String, default="")
    phone = Column(String, default="")
    account_type = Column(String)  # client/broker
    cabinet_id = Column(String, nullable=True, index=True)
    cabinet_role = Column(String, nullable=True)  # admin/manager/associate/employee

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()
