"""Configuration module for HoYoMusic."""
from .settings import Settings, StorageMode, get_settings

__all__ = ["Settings", "StorageMode", "get_settings"]
