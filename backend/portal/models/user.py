"""
user.py — ORM Model for Portal Users

Purpose:
- Represent staff accounts (admin, doctor, nurse, assistant).
- Stores the salted bcrypt hash only, never the raw password.

Invariants:
- `username` (the login name) is globally unique.
- `role` is one of portal.services.policy.Role.

Used by:
- services/credentials.py (login / register)
- services/identity.py (per-request re-fetch)
- services/users.py (admin CRUD + cascade delete)
"""

from sqlalchemy import Column, DateTime, Integer, String

from portal.models.base import Base, utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # Display
    name = Column(String(255), nullable=False)

    # Authentication fields
    username = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)

    # admin | doctor | nurse | assistant
    role = Column(String(32), nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    def to_dict(self) -> dict:
        """Public representation; never includes the password hash."""
        return {
            "id": self.id,
            "name": self.name,
            "loginName": self.username,
            "role": self.role,
        }

    def __repr__(self):
        return f"<User {self.username} | {self.role}>"
