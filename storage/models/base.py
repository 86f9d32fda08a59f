"""
Base ORM Model and Mixins.

============================================================
PURPOSE
============================================================
Declarative base and shared column helpers for the trading
journal tables.

============================================================
COMPONENTS
============================================================
- Base: SQLAlchemy declarative base for all models
- TimestampMixin: created_at / updated_at columns
- money_column / quantity_column: float-valued Numeric columns

============================================================
"""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Numeric
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from core.clock import now_utc


class Base(DeclarativeBase):
    """Declarative base for all journal models."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class TimestampMixin:
    """
    Adds created_at and updated_at columns.

    Timestamps are set client-side with microsecond precision so
    created_at can order rows written within the same second.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now_utc,
        comment="Record creation timestamp (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now_utc,
        onupdate=now_utc,
        comment="Last update timestamp (UTC)"
    )


def money_column(**kwargs: Any):
    """Numeric column that loads as float."""
    return mapped_column(Numeric(28, 10, asdecimal=False), **kwargs)


def quantity_column(**kwargs: Any):
    return mapped_column(Numeric(38, 18, asdecimal=False), **kwargs)
