"""
db/base.py

Declarative base, shared column types and mixins for all SQLAlchemy models.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, DateTime, Numeric, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in unit tests).
JSONPayload = JSON().with_variant(JSONB(), "postgresql")

# Monetary columns keep four decimal places, matching the core banking export.
Money = Numeric(19, 4)


class Base(DeclarativeBase):
    """Declarative base for every reconciliation table. Decimal maps to Money."""

    type_annotation_map: dict[type, Any] = {
        Decimal: Money,
    }


class TimestampMixin:
    """created_at / updated_at audit columns; updated_at moves on every ORM update."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )
