"""
blobs.py — File Access Endpoints (API Layer)

Routes:
- GET    /blobs/audit                                   admin: paginated audit trail
- GET    /blobs/{container}/{folder}                    list files        (list-container)
- GET    /blobs/{container}/{folder}/{blob}/url         issue capability  (read-file)
- POST   /blobs/{container}/{folder}                    upload (multipart) (upload-file)
- DELETE /blobs/{container}/{folder}/{blob}             delete            (delete-file)

Sequence for every storage route:
1. authenticate (live user row)
2. access gate: role policy, then assignment lookup → 403 on deny
3. storage call(s)
4. audit record, queued only once the storage outcome is known

A request denied at step 2 never reaches storage and is never audited.
"""

import datetime
import os
import shutil
import tempfile
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from portal.api.deps import (
    get_access_gate,
    get_audit_recorder,
    get_capability_issuer,
    get_current_user,
    get_object_store,
    get_settings,
    require_action,
)
from portal.core.config import Settings
from portal.core.database import get_db
from portal.core.errors import NotFoundError, ValidationError
from portal.core.logging import get_logger
from portal.models.user import User
from portal.services.access_gate import AccessGate
from portal.services.audit import FOLDER_LISTING, AuditOperation, AuditQuery, AuditRecorder, query_audit
from portal.services.capabilities import CapabilityIssuer
from portal.services.policy import Action, authorize
from portal.storage.naming import Folder, validate_blob_name, validate_container_name
from portal.storage.object_store import ObjectStore

logger = get_logger(__name__)

router = APIRouter(
    prefix="/blobs",
    tags=["blobs"]
)


def _require_container(object_store: ObjectStore, container_name: str) -> None:
    if not object_store.container_exists(container_name):
        raise NotFoundError("Container not found")


# -----------------------------------------------------------------------------
# Audit trail (declared first so "/audit" is not read as a container name)
# -----------------------------------------------------------------------------

@router.get("/audit")
def get_audit_logs(
    userId: Optional[int] = Query(default=None),
    containerName: Optional[str] = Query(default=None),
    folderName: Optional[str] = Query(default=None),
    operation: Optional[str] = Query(default=None),
    startDate: Optional[datetime.datetime] = Query(default=None),
    endDate: Optional[datetime.datetime] = Query(default=None),
    limit: int = Query(default=100),
    offset: int = Query(default=0),
    db: Session = Depends(get_db),
    _admin: User = Depends(require_action(Action.VIEW_AUDIT)),
):
    result = query_audit(db, AuditQuery(
        user_id=userId,
        container_name=containerName,
        folder_name=folderName,
        operation=operation,
        start_date=startDate,
        end_date=endDate,
        limit=limit,
        offset=offset,
    ))
    return {"success": True, **result}


# -----------------------------------------------------------------------------
# Listing
# -----------------------------------------------------------------------------

@router.get("/{container_name}/{folder_name}")
def list_blobs(
    container_name: str,
    folder_name: str,
    user: User = Depends(get_current_user),
    gate: AccessGate = Depends(get_access_gate),
    object_store: ObjectStore = Depends(get_object_store),
    recorder: AuditRecorder = Depends(get_audit_recorder),
):
    container_name = validate_container_name(container_name)
    folder = Folder(folder_name)

    gate.require_access(user, Action.LIST_CONTAINER, container_name, folder.name)
    _require_container(object_store, container_name)

    blobs = object_store.list_blobs(container_name, folder)

    recorder.record(user.id, container_name, folder.name, FOLDER_LISTING, AuditOperation.LIST)
    return {
        "success": True,
        "containerName": container_name,
        "folderName": folder.name,
        "blobs": blobs,
    }


# -----------------------------------------------------------------------------
# Capability (download URL)
# -----------------------------------------------------------------------------

@router.get("/{container_name}/{folder_name}/{blob_name}/url")
def get_blob_url(
    container_name: str,
    folder_name: str,
    blob_name: str,
    user: User = Depends(get_current_user),
    gate: AccessGate = Depends(get_access_gate),
    object_store: ObjectStore = Depends(get_object_store),
    issuer: CapabilityIssuer = Depends(get_capability_issuer),
    recorder: AuditRecorder = Depends(get_audit_recorder),
):
    container_name = validate_container_name(container_name)
    folder = Folder(folder_name)
    key = folder.key_for(blob_name)

    gate.require_access(user, Action.READ_FILE, container_name, folder.name)
    _require_container(object_store, container_name)
    if not object_store.blob_exists(container_name, key):
        raise NotFoundError("Blob not found")

    capability = issuer.issue(container_name, key, user.role)

    recorder.record(user.id, container_name, folder.name, blob_name, AuditOperation.DOWNLOAD)
    return {
        "success": True,
        **capability.to_dict(),
        "canModify": authorize(user.role, Action.DELETE_FILE),
        "canUpload": authorize(user.role, Action.UPLOAD_FILE),
    }


# -----------------------------------------------------------------------------
# Upload
# -----------------------------------------------------------------------------

@router.post("/{container_name}/{folder_name}", status_code=status.HTTP_201_CREATED)
def upload_blob(
    container_name: str,
    folder_name: str,
    file: Optional[UploadFile] = File(default=None),
    filename: Optional[str] = Form(default=None),
    user: User = Depends(get_current_user),
    gate: AccessGate = Depends(get_access_gate),
    object_store: ObjectStore = Depends(get_object_store),
    recorder: AuditRecorder = Depends(get_audit_recorder),
    settings: Settings = Depends(get_settings),
):
    staged_path: Optional[str] = None
    try:
        if file is None:
            raise ValidationError("No file uploaded")

        container_name = validate_container_name(container_name)
        folder = Folder(folder_name)
        blob_name = validate_blob_name(filename or f"{uuid.uuid4()}-{file.filename or 'upload'}")
        key = folder.key_for(blob_name)

        gate.require_access(user, Action.UPLOAD_FILE, container_name, folder.name)
        _require_container(object_store, container_name)

        os.makedirs(settings.UPLOAD_TMP_DIR, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=settings.UPLOAD_TMP_DIR, prefix="upload-", delete=False) as staged:
            staged_path = staged.name
            shutil.copyfileobj(file.file, staged)
            size = staged.tell()

        object_store.upload_file(container_name, key, staged_path, file.content_type)
        logger.info("User %s uploaded %s/%s (%d bytes)", user.id, container_name, key, size)

        recorder.record(user.id, container_name, folder.name, blob_name, AuditOperation.UPLOAD)
        return {
            "success": True,
            "containerName": container_name,
            "folderName": folder.name,
            "blobName": blob_name,
            "fullPath": key,
            "contentType": file.content_type,
            "size": size,
            "uploadedBy": {"id": user.id, "role": user.role, "name": user.name},
        }
    finally:
        if staged_path and os.path.exists(staged_path):
            os.unlink(staged_path)
        if file is not None:
            file.file.close()


# -----------------------------------------------------------------------------
# Delete
# -----------------------------------------------------------------------------

@router.delete("/{container_name}/{folder_name}/{blob_name}")
def delete_blob(
    container_name: str,
    folder_name: str,
    blob_name: str,
    user: User = Depends(get_current_user),
    gate: AccessGate = Depends(get_access_gate),
    object_store: ObjectStore = Depends(get_object_store),
    recorder: AuditRecorder = Depends(get_audit_recorder),
):
    container_name = validate_container_name(container_name)
    folder = Folder(folder_name)
    key = folder.key_for(blob_name)

    gate.require_access(user, Action.DELETE_FILE, container_name, folder.name)
    _require_container(object_store, container_name)
    if not object_store.blob_exists(container_name, key):
        raise NotFoundError("Blob not found")

    object_store.delete_blob(container_name, key)
    logger.info("User %s deleted %s/%s", user.id, container_name, key)

    recorder.record(user.id, container_name, folder.name, blob_name, AuditOperation.DELETE)
    return {
        "success": True,
        "message": "Blob deleted successfully",
        "containerName": container_name,
        "folderName": folder.name,
        "blobName": blob_name,
    }
