"""
file_audit.py — ORM Model for the File Access Audit Trail

Purpose:
- Append-only record of every storage access that was allowed to proceed
  (LIST / UPLOAD / DOWNLOAD / DELETE).
- Written only by services/audit.py, from its background worker.

Lifecycle:
- Never updated.
- Deleted only as part of deleting the owning user.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String

from portal.models.base import Base, utcnow


class FileAudit(Base):
    __tablename__ = "file_audit"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    container_name = Column(String(255), nullable=False)
    folder_name = Column(String(255), nullable=True)
    blob_name = Column(String(1024), nullable=True)

    # LIST | UPLOAD | DOWNLOAD | DELETE
    operation = Column(String(16), nullable=False)

    timestamp = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_file_audit_timestamp", "timestamp"),
        Index("idx_file_audit_container", "container_name"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "containerName": self.container_name,
            "folderName": self.folder_name,
            "blobName": self.blob_name,
            "operation": self.operation,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<FileAudit {self.operation} | {self.user_id} | {self.container_name}/{self.blob_name}>"
