"""Base model with common fields."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Numeric
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.utcnow()


def decimal_column(nullable: bool = True) -> Column:
    """Fixed precision column for actual values, targets and scores."""
    return Column(Numeric(18, 4, asdecimal=True), nullable=nullable)


class TimestampMixin(SQLModel):
    """Mixin for timestamp fields."""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = Field(default=None)


class AuditMixin(SQLModel):
    """Mixin for audit fields."""
    created_by: Optional[str] = Field(default=None, max_length=36)
    updated_by: Optional[str] = Field(default=None, max_length=36)


class SoftDeleteMixin(SQLModel):
    """Mixin for soft delete functionality."""
    deleted_at: Optional[datetime] = Field(default=None)
    deleted_by: Optional[str] = Field(default=None, max_length=36)


class BaseModel(TimestampMixin, SoftDeleteMixin, AuditMixin):
    """Base model with all common fields."""
    pass
