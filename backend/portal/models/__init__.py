"""
models package — SQLAlchemy ORM models for users, assignments and file audit.
"""
