"""
users.py — User Administration Endpoints (API Layer)

All routes are admin-only (action `manage-users`).

- GET    /users
- GET    /users/with-assignments
- GET    /users/{user_id}
- PUT    /users/{user_id}
- DELETE /users/{user_id}   (cascades assignments + audit trail)
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.orm import Session

from portal.api.deps import require_action
from portal.core.database import get_db
from portal.services import users as user_service
from portal.services.policy import Action

router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(require_action(Action.MANAGE_USERS))],
)


class UpdateUserRequest(BaseModel):
    name: Optional[str] = None
    loginName: Optional[str] = Field(default=None, validation_alias=AliasChoices("loginName", "username"))
    password: Optional[str] = None
    role: Optional[str] = None


@router.get("")
def list_users(db: Session = Depends(get_db)):
    users = user_service.list_users(db)
    return {"success": True, "users": [u.to_dict() for u in users]}


# Declared before /{user_id} so the literal path wins
@router.get("/with-assignments")
def list_users_with_assignments(db: Session = Depends(get_db)):
    return {"success": True, "users": user_service.list_users_with_assignments(db)}


@router.get("/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db)):
    return {"success": True, "user": user_service.get_user_with_assignments(db, user_id)}


@router.put("/{user_id}")
def update_user(user_id: int, payload: UpdateUserRequest, db: Session = Depends(get_db)):
    user = user_service.update_user(
        db,
        user_id,
        name=payload.name,
        login_name=payload.loginName,
        password=payload.password,
        role=payload.role,
    )
    return {"success": True, "user": user.to_dict()}


@router.delete("/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db)):
    user_service.delete_user(db, user_id)
    return {"success": True, "message": "User deleted successfully"}
