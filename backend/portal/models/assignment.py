"""
assignment.py — ORM Models for Container / Folder Assignments

Purpose:
- ContainerAssignment: "user may access this container", narrowed by folders.
- FolderAssignment: "user may access this folder inside an assigned container".

Containers are not owned here. They are buckets in the object store and are
referenced by name only.

Invariants:
- At most one ContainerAssignment per (user_id, container_name).
- At most one FolderAssignment per (user_id, container_name, folder_name).
- A FolderAssignment never exists without the matching ContainerAssignment.
  That rule is enforced by services/assignments.py at grant time and by the
  revoke cascade; the unique constraints below only guard duplicates.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from portal.models.base import Base, utcnow


class ContainerAssignment(Base):
    __tablename__ = "container_assignments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    container_name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "container_name", name="uq_container_assignment"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "containerName": self.container_name,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ContainerAssignment {self.user_id} -> {self.container_name}>"


class FolderAssignment(Base):
    __tablename__ = "folder_assignments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    container_name = Column(String(255), nullable=False)
    folder_name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "container_name", "folder_name", name="uq_folder_assignment"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "containerName": self.container_name,
            "folderName": self.folder_name,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<FolderAssignment {self.user_id} -> {self.container_name}/{self.folder_name}>"
