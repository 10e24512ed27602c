# backend/app/db/base.py
"""
SQLAlchemy declarative base.

All ORM models inherit from Base. Session handling lives in db/session.py.
"""
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Usage:
        class User(Base):
            __tablename__ = "users"
            id = Column(Integer, primary_key=True)
            ...
    """
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
