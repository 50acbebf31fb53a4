"""
assignments.py — Container / Folder Assignment Endpoints (API Layer)

Admin-only (action `manage-assignments`):
- GET    /assignments/containers
- GET    /assignments/containers/{container_name}/folders
- POST   /assignments/containers/{container_name}/users/{user_id}
- POST   /assignments/containers/{container_name}/folders
- GET    /assignments/users/{user_id}
- DELETE /assignments/{assignment_id}?type=container|folder

Any authenticated user (action `view-own-assignments`):
- GET    /assignments/my-assignments

Grant and revoke logic lives in services/assignments.py; container and folder
discovery goes straight to the object store.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from portal.api.deps import get_assignment_store, get_object_store, get_settings, require_action
from portal.core.config import Settings
from portal.core.errors import NotFoundError
from portal.models.user import User
from portal.services.assignments import AssignmentStore, parse_kind
from portal.services.policy import Action
from portal.storage.naming import validate_container_name
from portal.storage.object_store import ObjectStore

router = APIRouter(
    prefix="/assignments",
    tags=["assignments"]
)

admin_only = require_action(Action.MANAGE_ASSIGNMENTS)


class AssignFoldersRequest(BaseModel):
    userId: int
    folderNames: List[str]


# -----------------------------------------------------------------------------
# Discovery
# -----------------------------------------------------------------------------

@router.get("/containers", dependencies=[Depends(admin_only)])
def list_containers(
    object_store: ObjectStore = Depends(get_object_store),
    settings: Settings = Depends(get_settings),
):
    return {
        "success": True,
        "containers": object_store.list_containers(settings.CONTAINER_PREFIX),
    }


@router.get("/containers/{container_name}/folders", dependencies=[Depends(admin_only)])
def list_container_folders(
    container_name: str,
    object_store: ObjectStore = Depends(get_object_store),
    settings: Settings = Depends(get_settings),
):
    container_name = validate_container_name(container_name)
    if not object_store.container_exists(container_name):
        raise NotFoundError("Container not found")
    return {
        "success": True,
        "folders": object_store.list_folders(container_name, settings.FOLDER_PREFIX),
    }


# -----------------------------------------------------------------------------
# Grants
# -----------------------------------------------------------------------------

@router.post(
    "/containers/{container_name}/users/{user_id}",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
def assign_container(
    container_name: str,
    user_id: int,
    store: AssignmentStore = Depends(get_assignment_store),
):
    assignment = store.assign_container(user_id, container_name)
    return {"success": True, "assignment": assignment.to_dict()}


@router.post(
    "/containers/{container_name}/folders",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
def assign_folders(
    container_name: str,
    payload: AssignFoldersRequest,
    store: AssignmentStore = Depends(get_assignment_store),
):
    created = store.assign_folders(payload.userId, container_name, payload.folderNames)
    return {
        "success": True,
        "message": f"{len(created)} folders assigned to user",
        "assignments": [a.to_dict() for a in created],
    }


# -----------------------------------------------------------------------------
# Queries
# -----------------------------------------------------------------------------

@router.get("/my-assignments")
def my_assignments(
    user: User = Depends(require_action(Action.VIEW_OWN_ASSIGNMENTS)),
    store: AssignmentStore = Depends(get_assignment_store),
):
    return {
        "success": True,
        "user": {"id": user.id, "name": user.name, "role": user.role},
        "assignments": store.list_for_user(user.id).nested(),
    }


@router.get("/users/{user_id}", dependencies=[Depends(admin_only)])
def user_assignments(
    user_id: int,
    store: AssignmentStore = Depends(get_assignment_store),
):
    user = store.get_user(user_id)
    return {
        "success": True,
        "user": user.to_dict(),
        **store.list_for_user(user.id).to_dict(),
    }


# -----------------------------------------------------------------------------
# Revocation
# -----------------------------------------------------------------------------

@router.delete("/{assignment_id}", dependencies=[Depends(admin_only)])
def revoke_assignment(
    assignment_id: int,
    type: Optional[str] = Query(default=None, description="container | folder"),
    store: AssignmentStore = Depends(get_assignment_store),
):
    kind = parse_kind(type)
    store.revoke(assignment_id, kind)
    return {"success": True, "message": f"{kind.value} assignment revoked"}
