"""
users.py — User Administration

Purpose:
- Admin-side reads and mutations of user accounts.
- delete_user() removes the user together with every row that references
  it (file audit, folder grants, container grants) in one transaction.

Audit cascade:
- Deleting a user also deletes that user's audit trail rows.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal.core.database import atomic
from portal.core.errors import DuplicateLogin, InvalidRole, NotFoundError, ValidationError
from portal.core.logging import get_logger
from portal.core.security import hash_password
from portal.models.assignment import ContainerAssignment, FolderAssignment
from portal.models.file_audit import FileAudit
from portal.models.user import User
from portal.services.assignments import AssignmentStore
from portal.services.policy import REGISTRABLE_ROLES, Role, parse_role

logger = get_logger(__name__)


def list_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.id).all()


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def get_user_with_assignments(db: Session, user_id: int) -> Dict[str, Any]:
    user = get_user(db, user_id)
    data = user.to_dict()
    data.update(AssignmentStore(db).list_for_user(user.id).to_dict())
    return data


def list_users_with_assignments(db: Session) -> List[Dict[str, Any]]:
    """Every non-admin user with their container and folder grants."""
    store = AssignmentStore(db)
    result = []
    users = db.query(User).filter(User.role != Role.ADMIN.value).order_by(User.id).all()
    for user in users:
        data = user.to_dict()
        data.update(store.list_for_user(user.id).to_dict())
        result.append(data)
    return result


def update_user(
    db: Session,
    user_id: int,
    name: Optional[str] = None,
    login_name: Optional[str] = None,
    password: Optional[str] = None,
    role: Optional[str] = None,
) -> User:
    """
    Update any subset of name / login name / password / role.

    Empty strings count as "not given", matching how the admin form submits.
    """
    if role:
        parsed_role = parse_role(role)
        if parsed_role is None or parsed_role not in REGISTRABLE_ROLES:
            raise InvalidRole()

    user = get_user(db, user_id)

    if not any([name, login_name, password, role]):
        raise ValidationError("No fields to update")

    if login_name:
        taken = (
            db.query(User.id)
            .filter(User.username == login_name, User.id != user_id)
            .first()
        )
        if taken is not None:
            raise DuplicateLogin()

    with atomic(db):
        if name:
            user.name = name
        if login_name:
            user.username = login_name
        if password:
            user.password_hash = hash_password(password)
        if role:
            user.role = parsed_role.value
        try:
            db.flush()
        except IntegrityError as e:
            raise DuplicateLogin() from e

    logger.info("Updated user %s", user_id)
    return user


def delete_user(db: Session, user_id: int) -> None:
    with atomic(db):
        user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        audit_rows = db.query(FileAudit).filter(FileAudit.user_id == user_id).delete(synchronize_session=False)
        folder_rows = (
            db.query(FolderAssignment)
            .filter(FolderAssignment.user_id == user_id)
            .delete(synchronize_session=False)
        )
        container_rows = (
            db.query(ContainerAssignment)
            .filter(ContainerAssignment.user_id == user_id)
            .delete(synchronize_session=False)
        )
        db.delete(user)

    logger.info(
        "Deleted user %s (%d container, %d folder, %d audit rows)",
        user_id, container_rows, folder_rows, audit_rows,
    )
