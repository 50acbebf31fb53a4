"""
Tests for the audit recorder (fire-and-forget writes) and the audit query.
"""

import datetime

import pytest

from portal.core.errors import ValidationError
from portal.models.file_audit import FileAudit
from portal.services.audit import FOLDER_LISTING, AuditOperation, AuditQuery, AuditRecorder, query_audit


@pytest.fixture
def recorder(database):
    rec = AuditRecorder(database.session)
    rec.start()
    yield rec
    rec.stop()


# ============================================================================
# Recorder
# ============================================================================

def test_record_is_written_by_worker(recorder, db_session, doctor):
    recorder.record(doctor.id, "cph-container3", "Patient_Data_001", "scan.pdf", AuditOperation.DOWNLOAD)
    recorder.flush()

    rows = db_session.query(FileAudit).all()
    assert len(rows) == 1
    assert rows[0].user_id == doctor.id
    assert rows[0].operation == "DOWNLOAD"
    assert rows[0].blob_name == "scan.pdf"


def test_record_accepts_operation_string(recorder, db_session, doctor):
    recorder.record(doctor.id, "cph-container3", "Patient_Data_001", FOLDER_LISTING, "LIST")
    recorder.flush()

    assert db_session.query(FileAudit).one().blob_name == FOLDER_LISTING


def test_write_failure_does_not_raise(recorder, db_session, doctor):
    # No such user: the foreign key rejects the row inside the worker
    recorder.record(424242, "cph-container3", "Patient_Data_001", "scan.pdf", AuditOperation.UPLOAD)
    recorder.record(doctor.id, "cph-container3", "Patient_Data_001", "scan.pdf", AuditOperation.UPLOAD)
    recorder.flush()

    assert [r.user_id for r in db_session.query(FileAudit).all()] == [doctor.id]


def test_session_factory_failure_does_not_raise(doctor):
    def broken_factory():
        raise RuntimeError("database unavailable")

    rec = AuditRecorder(broken_factory)
    rec.start()
    try:
        rec.record(doctor.id, "cph-container3", None, None, AuditOperation.LIST)
        rec.flush()
    finally:
        rec.stop()


def test_invalid_operation_is_dropped(recorder, db_session, doctor):
    recorder.record(doctor.id, "cph-container3", None, None, "RENAME")
    recorder.flush()
    assert db_session.query(FileAudit).count() == 0


def test_full_queue_drops_new_records(database, db_session, doctor):
    rec = AuditRecorder(database.session, max_pending=1)
    rec.record(doctor.id, "cph-container3", "Patient_Data_001", "a.pdf", AuditOperation.UPLOAD)
    rec.record(doctor.id, "cph-container3", "Patient_Data_001", "b.pdf", AuditOperation.UPLOAD)
    rec.flush()

    assert [r.blob_name for r in db_session.query(FileAudit).all()] == ["a.pdf"]


def test_stop_drains_pending_records(database, db_session, doctor):
    rec = AuditRecorder(database.session)
    rec.start()
    for i in range(5):
        rec.record(doctor.id, "cph-container3", "Patient_Data_001", f"{i}.pdf", AuditOperation.UPLOAD)
    rec.stop()

    assert not rec.running
    assert db_session.query(FileAudit).count() == 5


# ============================================================================
# Query
# ============================================================================

def _row(db_session, user, operation, minutes_ago, container="cph-container3", folder="Patient_Data_001"):
    db_session.add(FileAudit(
        user_id=user.id,
        container_name=container,
        folder_name=folder,
        blob_name="scan.pdf",
        operation=operation,
        timestamp=datetime.datetime(2024, 1, 1, 12, 0) - datetime.timedelta(minutes=minutes_ago),
    ))
    db_session.commit()


@pytest.fixture
def history(db_session, doctor, nurse):
    _row(db_session, doctor, "UPLOAD", 30)
    _row(db_session, doctor, "DOWNLOAD", 20)
    _row(db_session, nurse, "LIST", 10, folder="Patient_Data_002")
    _row(db_session, nurse, "DOWNLOAD", 0, container="cph-container1")


def test_query_newest_first_with_user_fields(db_session, history, nurse):
    result = query_audit(db_session, AuditQuery())

    logs = result["auditLogs"]
    assert [log["operation"] for log in logs] == ["DOWNLOAD", "LIST", "DOWNLOAD", "UPLOAD"]
    assert logs[0]["loginName"] == nurse.username
    assert logs[0]["name"] == nurse.name
    assert logs[0]["role"] == "nurse"
    assert result["pagination"] == {"limit": 100, "offset": 0, "total": 4}


def test_query_filters(db_session, history, doctor):
    by_user = query_audit(db_session, AuditQuery(user_id=doctor.id))["auditLogs"]
    assert {log["userId"] for log in by_user} == {doctor.id}

    by_op = query_audit(db_session, AuditQuery(operation="download"))["auditLogs"]
    assert len(by_op) == 2

    by_folder = query_audit(db_session, AuditQuery(folder_name="Patient_Data_002"))["auditLogs"]
    assert [log["operation"] for log in by_folder] == ["LIST"]

    by_container = query_audit(db_session, AuditQuery(container_name="cph-container1"))["auditLogs"]
    assert len(by_container) == 1


def test_query_date_range(db_session, history):
    result = query_audit(db_session, AuditQuery(
        start_date=datetime.datetime(2024, 1, 1, 11, 35),
        end_date=datetime.datetime(2024, 1, 1, 11, 55),
    ))
    assert [log["operation"] for log in result["auditLogs"]] == ["LIST", "DOWNLOAD"]


def test_query_timezone_aware_dates(db_session, history):
    result = query_audit(db_session, AuditQuery(
        start_date=datetime.datetime(2024, 1, 1, 11, 55, tzinfo=datetime.timezone.utc),
    ))
    assert len(result["auditLogs"]) == 1


def test_query_pagination_total_is_page_size(db_session, history):
    result = query_audit(db_session, AuditQuery(limit=3, offset=2))
    assert len(result["auditLogs"]) == 2
    assert result["pagination"] == {"limit": 3, "offset": 2, "total": 2}


@pytest.mark.parametrize(
    "filters",
    [
        AuditQuery(operation="RENAME"),
        AuditQuery(limit=0),
        AuditQuery(limit=5000),
        AuditQuery(offset=-1),
        AuditQuery(start_date=datetime.datetime(2024, 2, 1), end_date=datetime.datetime(2024, 1, 1)),
    ],
)
def test_query_rejects_bad_filters(db_session, filters):
    with pytest.raises(ValidationError):
        query_audit(db_session, filters)
