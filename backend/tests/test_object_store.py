"""
Tests for the S3 object store adapter using botocore's Stubber.
"""

import datetime

import pytest
from botocore.stub import Stubber

from portal.core.errors import StorageError
from portal.storage.naming import Folder
from portal.storage.object_store import ObjectStore, create_s3_client

MODIFIED = datetime.datetime(2024, 2, 1, 9, 30, tzinfo=datetime.timezone.utc)


@pytest.fixture
def client():
    return create_s3_client(region="us-east-1", access_key_id="testing", secret_access_key="testing")


@pytest.fixture
def stubber(client):
    with Stubber(client) as stub:
        yield stub
        stub.assert_no_pending_responses()


@pytest.fixture
def store(client) -> ObjectStore:
    return ObjectStore(client)


# ============================================================================
# Containers
# ============================================================================

def test_list_containers_filters_by_prefix(store, stubber):
    stubber.add_response("list_buckets", {
        "Buckets": [
            {"Name": "cph-container3", "CreationDate": MODIFIED},
            {"Name": "logs-bucket", "CreationDate": MODIFIED},
            {"Name": "cph-container1", "CreationDate": MODIFIED},
        ],
    })

    assert store.list_containers("cph-container") == ["cph-container1", "cph-container3"]


def test_container_exists(store, stubber):
    stubber.add_response("head_bucket", {}, {"Bucket": "cph-container3"})
    assert store.container_exists("cph-container3")


def test_missing_container(store, stubber):
    stubber.add_client_error("head_bucket", service_error_code="404", http_status_code=404)
    assert not store.container_exists("cph-container404")


def test_container_check_other_error(store, stubber):
    stubber.add_client_error("head_bucket", service_error_code="AccessDenied", http_status_code=403)
    with pytest.raises(StorageError):
        store.container_exists("cph-container3")


# ============================================================================
# Folders & blobs
# ============================================================================

def test_list_folders(store, stubber):
    stubber.add_response(
        "list_objects_v2",
        {
            "CommonPrefixes": [
                {"Prefix": "Patient_Data_002/"},
                {"Prefix": "Patient_Data_001/"},
                {"Prefix": "scratch/"},
            ],
        },
        {"Bucket": "cph-container3", "Delimiter": "/"},
    )

    assert store.list_folders("cph-container3", "Patient_Data") == ["Patient_Data_001", "Patient_Data_002"]


def test_list_folders_skips_unusable_prefixes(store, stubber):
    stubber.add_response(
        "list_objects_v2",
        {
            "CommonPrefixes": [
                {"Prefix": "Patient_Data_001/"},
                {"Prefix": "/"},
                {"Prefix": "../"},
                {"Prefix": "Patient_Data_\\bad/"},
            ],
        },
        {"Bucket": "cph-container3", "Delimiter": "/"},
    )

    assert store.list_folders("cph-container3") == ["Patient_Data_001"]


def test_list_blobs_skips_folder_marker(store, stubber):
    stubber.add_response(
        "list_objects_v2",
        {
            "Contents": [
                {"Key": "Patient_Data_001/", "Size": 0, "LastModified": MODIFIED},
                {"Key": "Patient_Data_001/scan.pdf", "Size": 2048, "LastModified": MODIFIED},
                {"Key": "Patient_Data_001/notes.txt", "Size": 12, "LastModified": MODIFIED},
            ],
        },
        {"Bucket": "cph-container3", "Prefix": "Patient_Data_001/"},
    )

    blobs = store.list_blobs("cph-container3", Folder("Patient_Data_001"))

    assert [b["name"] for b in blobs] == ["scan.pdf", "notes.txt"]
    assert blobs[0] == {
        "name": "scan.pdf",
        "fullPath": "Patient_Data_001/scan.pdf",
        "contentType": "application/pdf",
        "contentLength": 2048,
        "lastModified": MODIFIED.isoformat(),
    }


def test_blob_exists(store, stubber):
    stubber.add_response("head_object", {}, {"Bucket": "cph-container3", "Key": "Patient_Data_001/scan.pdf"})
    stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)

    assert store.blob_exists("cph-container3", "Patient_Data_001/scan.pdf")
    assert not store.blob_exists("cph-container3", "Patient_Data_001/missing.pdf")


def test_delete_blob(store, stubber):
    stubber.add_response("delete_object", {}, {"Bucket": "cph-container3", "Key": "Patient_Data_001/scan.pdf"})
    store.delete_blob("cph-container3", "Patient_Data_001/scan.pdf")


def test_delete_failure_is_storage_error(store, stubber):
    stubber.add_client_error("delete_object", service_error_code="AccessDenied", http_status_code=403)
    with pytest.raises(StorageError) as exc:
        store.delete_blob("cph-container3", "Patient_Data_001/scan.pdf")
    assert exc.value.status_code == 500
    assert exc.value.message == "Server error"


def test_presign_is_local(store):
    url = store.presign("get_object", "cph-container3", "Patient_Data_001/scan.pdf", 3600)
    assert "X-Amz-Signature=" in url
    assert "X-Amz-Expires=3600" in url
