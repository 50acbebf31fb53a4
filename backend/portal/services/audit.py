"""
audit.py — Audit Recorder

Purpose:
- record(): append one FileAudit row per storage access that went ahead.
- query():  admin-side filtered, paginated read of the trail.

Write path:
- record() only enqueues; it never touches the database, never blocks and
  never raises. A single background worker thread drains the queue and
  writes each record in its own session/transaction.
- Worker failures are logged and the record is dropped; the request that
  produced it has already completed and is not affected.
- A full queue drops the new record with a warning.
- stop() drains what is queued before the process exits.

Read path:
- Filters: user, container, folder, operation, date range.
- Pagination by offset/limit, newest first.
- `total` in the pagination block is the size of the returned page, not a
  separate COUNT(*); existing clients rely on this.
"""

import datetime
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from portal.core.errors import ValidationError
from portal.core.logging import get_logger
from portal.models.file_audit import FileAudit
from portal.models.user import User

logger = get_logger(__name__)

# Blob name recorded for folder listings
FOLDER_LISTING = "FOLDER_LISTING"

DEFAULT_LIMIT = 100
MAX_LIMIT = 1000


class AuditOperation(str, Enum):
    LIST = "LIST"
    UPLOAD = "UPLOAD"
    DOWNLOAD = "DOWNLOAD"
    DELETE = "DELETE"


@dataclass(frozen=True)
class AuditEvent:
    user_id: int
    container_name: str
    folder_name: Optional[str]
    blob_name: Optional[str]
    operation: AuditOperation
    timestamp: datetime.datetime


def _naive_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is not None:
        value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return value


# -----------------------------------------------------------------------------
# Recorder (write side)
# -----------------------------------------------------------------------------

class AuditRecorder:
    """
    Fire-and-forget audit writer backed by a bounded queue and one worker thread.

    `session_factory` returns a new SQLAlchemy Session per write.
    """

    _STOP = object()

    def __init__(self, session_factory: Callable[[], Session], max_pending: int = 1000):
        self._session_factory = session_factory
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=max_pending)
        self._worker: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._worker = threading.Thread(target=self._run, name="audit-recorder", daemon=True)
            self._worker.start()
        logger.info("Audit recorder started")

    def stop(self, timeout: float = 10.0) -> None:
        """Drain queued records, then stop the worker."""
        with self._lock:
            worker = self._worker
            if worker is None:
                return
            self._queue.put(self._STOP)
            worker.join(timeout)
            if worker.is_alive():
                logger.warning("Audit recorder did not drain within %.1fs", timeout)
            self._worker = None
        logger.info("Audit recorder stopped")

    def flush(self) -> None:
        """Block until every record queued so far has been handled."""
        if self.running:
            self._queue.join()
        else:
            self._drain_inline()

    def record(
        self,
        user_id: int,
        container_name: str,
        folder_name: Optional[str],
        blob_name: Optional[str],
        operation: AuditOperation,
    ) -> None:
        """
        Queue one audit record. Never raises and never waits.
        """
        try:
            event = AuditEvent(
                user_id=user_id,
                container_name=container_name,
                folder_name=folder_name,
                blob_name=blob_name,
                operation=AuditOperation(operation),
                timestamp=datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None),
            )
            self._queue.put_nowait(event)
        except queue.Full:
            logger.warning(
                "Audit queue full; dropped %s by user %s on %s/%s",
                operation, user_id, container_name, folder_name,
            )
        except Exception:
            logger.exception("Could not queue audit record for user %s", user_id)

    # -------------------------------------------------------------------------
    # Worker
    # -------------------------------------------------------------------------

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is self._STOP:
                    return
                self._write(item)
            finally:
                self._queue.task_done()

    def _drain_inline(self) -> None:
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return
            try:
                if item is not self._STOP:
                    self._write(item)
            finally:
                self._queue.task_done()

    def _write(self, event: AuditEvent) -> None:
        db = None
        try:
            db = self._session_factory()
            db.add(FileAudit(
                user_id=event.user_id,
                container_name=event.container_name,
                folder_name=event.folder_name,
                blob_name=event.blob_name,
                operation=event.operation.value,
                timestamp=event.timestamp,
            ))
            db.commit()
        except Exception:
            if db is not None:
                db.rollback()
            logger.exception(
                "Error logging file operation %s for user %s on %s",
                event.operation.value, event.user_id, event.container_name,
            )
        finally:
            if db is not None:
                db.close()


# -----------------------------------------------------------------------------
# Query (read side)
# -----------------------------------------------------------------------------

@dataclass
class AuditQuery:
    user_id: Optional[int] = None
    container_name: Optional[str] = None
    folder_name: Optional[str] = None
    operation: Optional[str] = None
    start_date: Optional[datetime.datetime] = None
    end_date: Optional[datetime.datetime] = None
    limit: int = DEFAULT_LIMIT
    offset: int = 0

    def validate(self) -> "AuditQuery":
        if self.operation is not None:
            try:
                self.operation = AuditOperation(self.operation.upper()).value
            except ValueError as e:
                raise ValidationError("Invalid operation filter") from e
        if self.limit < 1 or self.limit > MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}")
        if self.offset < 0:
            raise ValidationError("offset must not be negative")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError("startDate must not be after endDate")
        return self


def query_audit(db: Session, filters: AuditQuery) -> Dict[str, Any]:
    """
    Run an audit query and return `{"auditLogs": [...], "pagination": {...}}`.
    """
    filters.validate()

    q = db.query(FileAudit, User).join(User, FileAudit.user_id == User.id)

    if filters.user_id is not None:
        q = q.filter(FileAudit.user_id == filters.user_id)
    if filters.container_name:
        q = q.filter(FileAudit.container_name == filters.container_name)
    if filters.folder_name:
        q = q.filter(FileAudit.folder_name == filters.folder_name)
    if filters.operation:
        q = q.filter(FileAudit.operation == filters.operation)
    if filters.start_date:
        q = q.filter(FileAudit.timestamp >= _naive_utc(filters.start_date))
    if filters.end_date:
        q = q.filter(FileAudit.timestamp <= _naive_utc(filters.end_date))

    rows = (
        q.order_by(FileAudit.timestamp.desc(), FileAudit.id.desc())
        .offset(filters.offset)
        .limit(filters.limit)
        .all()
    )

    logs: List[Dict[str, Any]] = []
    for audit, user in rows:
        entry = audit.to_dict()
        entry.update({"name": user.name, "loginName": user.username, "role": user.role})
        logs.append(entry)

    return {
        "auditLogs": logs,
        "pagination": {
            "limit": filters.limit,
            "offset": filters.offset,
            # Page size, not a full count
            "total": len(logs),
        },
    }
