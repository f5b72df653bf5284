"""Declarative base and column mixins."""
from .base import Base, IdMixin, TimestampMixin

__all__ = ["Base", "IdMixin", "TimestampMixin"]
