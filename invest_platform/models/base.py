"""
Declarative base and shared mixins for all models.
"""

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base holding the metadata for every table."""


class BaseModel(Base):
    """Abstract base model with a dict helper."""

    __abstract__ = True

    def to_dict(self) -> Dict[str, Any]:
        """Return column values keyed by column name."""
        return {
            column.name: getattr(self, column.key)
            for column in self.__table__.columns
        }


class TimestampMixin:
    """Adds created_at/updated_at columns maintained by the database."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )
