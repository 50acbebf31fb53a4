"""
object_store.py — S3-Compatible Object Store Adapter

Purpose:
- Wrap one long-lived boto3 S3 client behind the narrow interface the portal
  needs: discover containers, list folders and blobs, check existence,
  upload, delete, presign.
- Translate botocore failures into portal errors:
    * "does not exist" → False from the *_exists() helpers
    * anything else    → StorageError (detail logged, never sent to clients)

Mapping:
- container  → bucket
- folder     → key prefix "{folder}/"
- blob       → key "{folder}/{blobName}"

The client is created once at startup (see portal/main.py) and shared by all
requests; boto3 clients are thread-safe.
"""

import mimetypes
from typing import Any, Dict, List, Optional

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from portal.core.errors import StorageError, ValidationError
from portal.core.logging import get_logger
from portal.storage.naming import DELIMITER, Folder

logger = get_logger(__name__)

_MISSING_CODES = {"404", "NoSuchBucket", "NoSuchKey", "NotFound"}


def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


def create_s3_client(
    region: str,
    endpoint_url: Optional[str] = None,
    access_key_id: Optional[str] = None,
    secret_access_key: Optional[str] = None,
) -> BaseClient:
    """
    Build the boto3 S3 client. Credentials fall back to the default AWS chain
    (env vars, instance profile) when not given explicitly.
    """
    return boto3.client(
        "s3",
        region_name=region,
        endpoint_url=endpoint_url,
        aws_access_key_id=access_key_id,
        aws_secret_access_key=secret_access_key,
        config=Config(signature_version="s3v4"),
    )


class ObjectStore:
    """
    Thin wrapper providing typed helpers around an S3 client.
    """

    def __init__(self, client: BaseClient):
        self._client = client

    # -------------------------------------------------------------------------
    # Containers
    # -------------------------------------------------------------------------

    def list_containers(self, prefix: str = "") -> List[str]:
        try:
            response = self._client.list_buckets()
        except (ClientError, BotoCoreError) as e:
            raise StorageError(detail=f"list_buckets failed: {e}") from e
        names = [bucket["Name"] for bucket in response.get("Buckets", [])]
        return sorted(name for name in names if name.startswith(prefix))

    def container_exists(self, container: str) -> bool:
        try:
            self._client.head_bucket(Bucket=container)
            return True
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return False
            raise StorageError(detail=f"head_bucket {container} failed: {e}") from e
        except BotoCoreError as e:
            raise StorageError(detail=f"head_bucket {container} failed: {e}") from e

    # -------------------------------------------------------------------------
    # Folders
    # -------------------------------------------------------------------------

    def list_folders(self, container: str, prefix: str = "") -> List[str]:
        """
        Top-level "folders" of a container whose names start with `prefix`.
        """
        folders = set()
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=container, Delimiter=DELIMITER):
                for common in page.get("CommonPrefixes", []):
                    raw = common["Prefix"]
                    if not raw.startswith(prefix):
                        continue
                    try:
                        folders.add(Folder.from_prefix(raw).name)
                    except ValidationError as e:
                        logger.debug("Skipping unusable prefix %r in %s: %s", raw, container, e.message)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(detail=f"list folders in {container} failed: {e}") from e
        return sorted(folders)

    # -------------------------------------------------------------------------
    # Blobs
    # -------------------------------------------------------------------------

    def list_blobs(self, container: str, folder: Folder) -> List[Dict[str, Any]]:
        blobs: List[Dict[str, Any]] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=container, Prefix=folder.prefix):
                for obj in page.get("Contents", []):
                    key = obj["Key"]
                    # Skip the folder marker object itself
                    if key == folder.prefix:
                        continue
                    name = folder.relative_name(key)
                    last_modified = obj.get("LastModified")
                    blobs.append({
                        "name": name,
                        "fullPath": key,
                        "contentType": mimetypes.guess_type(name)[0],
                        "contentLength": obj.get("Size"),
                        "lastModified": last_modified.isoformat() if last_modified else None,
                    })
        except (ClientError, BotoCoreError) as e:
            raise StorageError(detail=f"list blobs in {container}/{folder} failed: {e}") from e
        return blobs

    def blob_exists(self, container: str, key: str) -> bool:
        try:
            self._client.head_object(Bucket=container, Key=key)
            return True
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return False
            raise StorageError(detail=f"head_object {container}/{key} failed: {e}") from e
        except BotoCoreError as e:
            raise StorageError(detail=f"head_object {container}/{key} failed: {e}") from e

    def upload_file(self, container: str, key: str, path: str, content_type: Optional[str] = None) -> None:
        extra_args = {"ContentType": content_type} if content_type else None
        try:
            self._client.upload_file(path, container, key, ExtraArgs=extra_args)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(detail=f"upload {container}/{key} failed: {e}") from e
        logger.info("Uploaded %s/%s", container, key)

    def delete_blob(self, container: str, key: str) -> None:
        try:
            self._client.delete_object(Bucket=container, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(detail=f"delete {container}/{key} failed: {e}") from e
        logger.info("Deleted %s/%s", container, key)

    # -------------------------------------------------------------------------
    # Signing
    # -------------------------------------------------------------------------

    def presign(self, client_method: str, container: str, key: str, expires_in: int) -> str:
        """
        Presigned URL for one S3 operation on one key. Signing is local; no
        request is sent to the store.
        """
        try:
            return self._client.generate_presigned_url(
                ClientMethod=client_method,
                Params={"Bucket": container, "Key": key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(detail=f"presign {client_method} {container}/{key} failed: {e}") from e

    def close(self) -> None:
        close = getattr(self._client, "close", None)
        if callable(close):
            close()
