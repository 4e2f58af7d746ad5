"""
Module: clinic_stock.db.base
Responsibility: Declarative base class for all SQLAlchemy ORM models and
    the column types shared by them.
Architecture position: DB.  Lowest-level import target for models/.  MUST
    NOT import from models/, repositories/, services/ or selectors/.

Invariants enforced:
    - Timestamps are timezone-aware UTC on the way in and on the way out,
      whatever the dialect stores (SQLite drops tzinfo; PostgreSQL keeps it).
    - Natural keys: supplies are keyed by code, users by legajo, services
      and movements by integer id.  There is no surrogate UUID column.
"""

from datetime import date, datetime, timezone
from typing import ClassVar

from sqlalchemy import Date, DateTime, Integer
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetime on every dialect.

    Guarantees:
        - process_bind_param: aware datetime -> converted to UTC.
          Naive datetimes are rejected (ambiguous local time).
        - process_result_value: naive values from SQLite get UTC attached.
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime not allowed: {value!r}")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - datetime maps to UTCDateTime -- always timezone-aware.
        - date maps to Date; int maps to Integer.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        date: Date,
        int: Integer,
    }
