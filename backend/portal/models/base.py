"""
base.py — Shared Declarative Base

All portal models register on this one metadata so foreign keys between
users, assignments and audit rows resolve, and `create_all()` builds the
whole schema in one call.
"""

import datetime

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp; every stored datetime uses this convention."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
