"""Declarative base shared by all models."""
from sqlalchemy import Column, DateTime, Integer, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class IdMixin:
    """Auto-incrementing integer primary key."""

    id = Column(Integer, primary_key=True, autoincrement=True)


class TimestampMixin:
    """``created_at``/``updated_at`` maintained by the database."""

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
