"""
assignments.py — Assignment Store

Purpose:
- Persist and query which users may reach which containers and folders.
- Own the transactional grant / revoke operations.

Operations:
- assign_container(user_id, container)          → ContainerAssignment
- assign_folders(user_id, container, folders)   → [FolderAssignment] (new rows only)
- revoke(assignment_id, kind)                   → None
- list_for_user(user_id)                        → UserAssignments
- has_access(user_id, container, folder=None)   → bool

Invariants kept here:
- A folder grant requires the container grant for the same (user, container).
- Revoking a container grant deletes its folder grants in the same
  transaction, so no orphan folder rows are ever visible.
- Folder grants are idempotent per (user, container, folder): existing rows
  are skipped, not duplicated and not treated as errors.

Concurrency:
- No in-process locking. Concurrent grant/revoke for the same user race at
  the database; unique constraints stop duplicates and the last committed
  transaction wins otherwise.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal.core.database import atomic
from portal.core.errors import AlreadyAssigned, ContainerNotAssigned, NotFoundError, ValidationError
from portal.core.logging import get_logger
from portal.models.assignment import ContainerAssignment, FolderAssignment
from portal.models.user import User
from portal.services.policy import is_admin
from portal.storage.naming import Folder, validate_container_name
from portal.storage.object_store import ObjectStore

logger = get_logger(__name__)


class AssignmentKind(str, Enum):
    CONTAINER = "container"
    FOLDER = "folder"


@dataclass
class UserAssignments:
    container_assignments: List[ContainerAssignment] = field(default_factory=list)
    folder_assignments: List[FolderAssignment] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "containerAssignments": [a.to_dict() for a in self.container_assignments],
            "folderAssignments": [a.to_dict() for a in self.folder_assignments],
        }

    def nested(self) -> List[Dict[str, Any]]:
        """Containers, each carrying the folders assigned beneath it."""
        result = []
        for container in self.container_assignments:
            entry = container.to_dict()
            entry["folders"] = [
                f.to_dict() for f in self.folder_assignments
                if f.container_name == container.container_name
            ]
            result.append(entry)
        return result


def parse_kind(value: Optional[str]) -> AssignmentKind:
    try:
        return AssignmentKind(value)
    except ValueError as e:
        raise ValidationError("Assignment type required (container or folder)") from e


class AssignmentStore:
    def __init__(self, db: Session, object_store: Optional[ObjectStore] = None):
        self._db = db
        self._object_store = object_store

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_user(self, user_id: int) -> User:
        user = self._db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _container_assignment(self, user_id: int, container: str) -> Optional[ContainerAssignment]:
        return (
            self._db.query(ContainerAssignment)
            .filter(
                ContainerAssignment.user_id == user_id,
                ContainerAssignment.container_name == container,
            )
            .first()
        )

    # -------------------------------------------------------------------------
    # Grants
    # -------------------------------------------------------------------------

    def assign_container(self, user_id: int, container: str) -> ContainerAssignment:
        container = validate_container_name(container)
        self.get_user(user_id)

        if self._object_store is None:
            raise RuntimeError("AssignmentStore needs an object store to verify containers")
        if not self._object_store.container_exists(container):
            raise NotFoundError("Container not found")

        if self._container_assignment(user_id, container) is not None:
            raise AlreadyAssigned()

        assignment = ContainerAssignment(user_id=user_id, container_name=container)
        with atomic(self._db):
            self._db.add(assignment)
            try:
                self._db.flush()
            except IntegrityError as e:
                raise AlreadyAssigned() from e

        logger.info("Assigned container %s to user %s", container, user_id)
        return assignment

    def assign_folders(self, user_id: int, container: str, folder_names: Sequence[str]) -> List[FolderAssignment]:
        container = validate_container_name(container)
        if not isinstance(folder_names, (list, tuple)) or not folder_names:
            raise ValidationError("User ID and folder names array required")

        # Validate every name before touching the database; keep first-seen order
        folders: List[Folder] = []
        for name in folder_names:
            folder = Folder(name)
            if folder not in folders:
                folders.append(folder)

        created: List[FolderAssignment] = []
        with atomic(self._db):
            self.get_user(user_id)
            if self._container_assignment(user_id, container) is None:
                raise ContainerNotAssigned()

            existing = {
                row.folder_name
                for row in self._db.query(FolderAssignment.folder_name).filter(
                    FolderAssignment.user_id == user_id,
                    FolderAssignment.container_name == container,
                    FolderAssignment.folder_name.in_([f.name for f in folders]),
                )
            }

            for folder in folders:
                if folder.name in existing:
                    continue
                assignment = FolderAssignment(
                    user_id=user_id,
                    container_name=container,
                    folder_name=folder.name,
                )
                self._db.add(assignment)
                created.append(assignment)
            self._db.flush()

        logger.info("Assigned %d folder(s) in %s to user %s", len(created), container, user_id)
        return created

    # -------------------------------------------------------------------------
    # Revocation
    # -------------------------------------------------------------------------

    def revoke(self, assignment_id: int, kind: AssignmentKind) -> None:
        kind = parse_kind(kind.value if isinstance(kind, AssignmentKind) else kind)

        with atomic(self._db):
            if kind is AssignmentKind.CONTAINER:
                assignment = self._db.get(ContainerAssignment, assignment_id)
                if assignment is None:
                    raise NotFoundError("Assignment not found")

                removed = (
                    self._db.query(FolderAssignment)
                    .filter(
                        FolderAssignment.user_id == assignment.user_id,
                        FolderAssignment.container_name == assignment.container_name,
                    )
                    .delete(synchronize_session=False)
                )
                self._db.delete(assignment)
                logger.info(
                    "Revoked container %s from user %s (%d folder grant(s) removed)",
                    assignment.container_name, assignment.user_id, removed,
                )
            else:
                assignment = self._db.get(FolderAssignment, assignment_id)
                if assignment is None:
                    raise NotFoundError("Assignment not found")
                self._db.delete(assignment)
                logger.info(
                    "Revoked folder %s/%s from user %s",
                    assignment.container_name, assignment.folder_name, assignment.user_id,
                )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_for_user(self, user_id: int) -> UserAssignments:
        containers = (
            self._db.query(ContainerAssignment)
            .filter(ContainerAssignment.user_id == user_id)
            .order_by(ContainerAssignment.container_name)
            .all()
        )
        folders = (
            self._db.query(FolderAssignment)
            .filter(FolderAssignment.user_id == user_id)
            .order_by(FolderAssignment.container_name, FolderAssignment.folder_name)
            .all()
        )
        return UserAssignments(container_assignments=containers, folder_assignments=folders)

    def has_access(self, user_id: int, container: str, folder: Optional[str] = None) -> bool:
        """
        Admins: always True. Everyone else: a container grant must exist and,
        when a folder is named, a matching folder grant too.
        """
        user = self._db.get(User, user_id)
        if user is None:
            return False
        if is_admin(user.role):
            return True

        if self._container_assignment(user_id, container) is None:
            return False

        if folder:
            folder_row = (
                self._db.query(FolderAssignment.id)
                .filter(
                    FolderAssignment.user_id == user_id,
                    FolderAssignment.container_name == container,
                    FolderAssignment.folder_name == folder,
                )
                .first()
            )
            if folder_row is None:
                return False

        return True
