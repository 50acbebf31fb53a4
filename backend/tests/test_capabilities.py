"""
Tests for the capability issuer, signed with a real boto3 client.

Presigning is local, so dummy credentials are enough and no request leaves
the process.
"""

import datetime
from urllib.parse import parse_qs, urlparse

import pytest

from portal.services.capabilities import CAPABILITY_TTL, CapabilityIssuer, Permission, permissions_for
from portal.storage.object_store import ObjectStore, create_s3_client

FIXED_NOW = datetime.datetime(2024, 3, 1, 12, 0, tzinfo=datetime.timezone.utc)


@pytest.fixture
def s3_store() -> ObjectStore:
    client = create_s3_client(
        region="us-east-1",
        access_key_id="testing",
        secret_access_key="testing",
    )
    yield ObjectStore(client)


@pytest.fixture
def issuer(s3_store) -> CapabilityIssuer:
    return CapabilityIssuer(s3_store, clock=lambda: FIXED_NOW)


def _query(url: str) -> dict:
    return parse_qs(urlparse(url).query)


def test_permissions_by_role():
    assert permissions_for("admin") == set(Permission)
    assert permissions_for("doctor") == {Permission.READ, Permission.CREATE, Permission.WRITE}
    assert permissions_for("nurse") == {Permission.READ, Permission.CREATE, Permission.WRITE}
    assert permissions_for("assistant") == {Permission.READ}
    assert permissions_for("unknown") == {Permission.READ}


def test_capability_expires_in_one_hour(issuer):
    cap = issuer.issue("cph-container3", "Patient_Data_001/scan.pdf", "doctor")

    assert cap.expires_at - cap.issued_at == CAPABILITY_TTL == datetime.timedelta(hours=1)
    assert cap.to_dict()["expiresAt"] == "2024-03-01T13:00:00+00:00"
    for url in cap.urls.values():
        assert _query(url)["X-Amz-Expires"] == ["3600"]


def test_capability_is_scoped_to_one_blob(issuer):
    cap = issuer.issue("cph-container3", "Patient_Data_001/scan.pdf", "assistant")

    parsed = urlparse(cap.url)
    assert "cph-container3" in parsed.netloc + parsed.path
    assert parsed.path.endswith("Patient_Data_001/scan.pdf")


def test_assistant_capability_is_read_only(issuer):
    cap = issuer.issue("cph-container3", "Patient_Data_001/scan.pdf", "assistant")

    assert cap.permissions == {Permission.READ}
    assert set(cap.urls) == {"read"}
    assert cap.to_dict()["permissions"] == ["read"]


def test_admin_capability_carries_all_permissions(issuer):
    cap = issuer.issue("cph-container3", "Patient_Data_001/scan.pdf", "admin")

    assert cap.to_dict()["permissions"] == ["create", "delete", "read", "write"]
    assert set(cap.urls) == {"read", "upload", "delete"}


def test_doctor_capability_cannot_delete(issuer):
    cap = issuer.issue("cph-container3", "Patient_Data_001/scan.pdf", "doctor")

    assert Permission.DELETE not in cap.permissions
    assert "delete" not in cap.urls
    assert "upload" in cap.urls


def test_to_dict_shape(issuer):
    body = issuer.issue("cph-container3", "Patient_Data_001/scan.pdf", "nurse").to_dict()

    assert set(body) == {"sasUrl", "permissions", "expiresAt", "urls"}
    assert body["sasUrl"] == body["urls"]["read"]
