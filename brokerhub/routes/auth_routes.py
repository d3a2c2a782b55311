from fastapi import APIRouter, Depends
from pydantic import BaseModel

from brokerhub.auth.dependencies import get_current_user
from brokerhub.models.user import User

router = APIRouter(tags=["auth"])


class CurrentUserResponse(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    phone: str
    account_type: str
    cabinet_id: str | None = None
    cabinet_role: str | None = None


@router.get("/me", response_model=CurrentUserResponse)
def me(current_user: User = Depends(get_current_user)):
    return CurrentUserResponse(
        id=current_user.id,
        email=current_user.email or "",
        first_name=current_user.first_name or "",
        last_name=current_user.last_name or "",
        phone=current_user.phone or "",
        account_type=current_user.account_type or "client",
        cabinet_id=current_user.cabinet_id,
        cabinet_role=current_user.cabinet_role,
    )
